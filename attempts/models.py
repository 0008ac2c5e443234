# attempts/models.py
from django.db import models
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from mocktests.models import MockTest, Section, Question

class Attempt(models.Model):
    """
    One learner's run through a mock test.

    While `is_completed` is False the answers may be saved over and over.
    Submission scores the attempt and freezes it; afterwards only `rank`
    and `total_attempts` change, whenever the test's leaderboard is rebuilt.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='test_attempts')
    # Kept when the test is deleted so historical results survive
    test = models.ForeignKey(MockTest, on_delete=models.SET_NULL, null=True, related_name='attempts')

    started_at = models.DateTimeField(default=timezone.now)
    submitted_at = models.DateTimeField(null=True, blank=True)
    is_completed = models.BooleanField(default=False)
    is_auto_submitted = models.BooleanField(default=False)

    # Filled in at submission
    score = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    total_marks = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    percentage = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    accuracy = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    time_spent = models.PositiveIntegerField(default=0, help_text="Minutes between start and submission")
    total_questions = models.PositiveIntegerField(default=0)
    attempted_questions = models.PositiveIntegerField(default=0)
    correct_answers = models.PositiveIntegerField(default=0)
    wrong_answers = models.PositiveIntegerField(default=0)
    skipped_questions = models.PositiveIntegerField(default=0)

    # Leaderboard snapshot, rewritten for the whole test on every submission
    rank = models.PositiveIntegerField(null=True, blank=True)
    total_attempts = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'test'],
                condition=Q(is_completed=False),
                name='one_open_attempt_per_user_and_test'
            )
        ]
        indexes = [
            models.Index(fields=['test', 'is_completed'], name='attempt_test_completed_idx'),
            models.Index(fields=['user', 'submitted_at'], name='attempt_user_submitted_idx'),
        ]

    def __str__(self):
        return f"{self.user} - {self.test.title if self.test else 'deleted test'}"

    @property
    def status(self):
        return "completed" if self.is_completed else "in_progress"


class AttemptAnswer(models.Model):
    attempt = models.ForeignKey(Attempt, related_name='answers', on_delete=models.CASCADE)
    question = models.ForeignKey(Question, on_delete=models.CASCADE)
    # Index into question.options; null means skipped
    selected_answer = models.PositiveIntegerField(null=True, blank=True)

    # Grading, set at submission
    is_correct = models.BooleanField(default=False)
    marks_awarded = models.DecimalField(max_digits=12, decimal_places=4, default=0)

    class Meta:
        unique_together = ('attempt', 'question')


class SectionResult(models.Model):
    attempt = models.ForeignKey(Attempt, related_name='section_results', on_delete=models.CASCADE)
    section = models.ForeignKey(Section, null=True, on_delete=models.SET_NULL)
    section_title = models.CharField(max_length=255)
    order = models.PositiveIntegerField(default=1)

    total_questions = models.PositiveIntegerField(default=0)
    attempted_questions = models.PositiveIntegerField(default=0)
    correct_answers = models.PositiveIntegerField(default=0)
    wrong_answers = models.PositiveIntegerField(default=0)
    skipped_questions = models.PositiveIntegerField(default=0)
    marks_obtained = models.DecimalField(max_digits=12, decimal_places=4, default=0)
    total_marks = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    accuracy = models.DecimalField(max_digits=5, decimal_places=2, default=0)

    class Meta:
        ordering = ['order', 'id']
