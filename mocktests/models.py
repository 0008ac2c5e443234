# mocktests/models.py
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils.text import slugify


class Difficulty(models.TextChoices):
    EASY = "easy", "Easy"
    MEDIUM = "medium", "Medium"
    HARD = "hard", "Hard"
    MIXED = "mixed", "Mixed"


class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    class Meta:
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


class MockTest(models.Model):
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField()
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='tests')
    exam_type = models.CharField(max_length=100, blank=True)
    difficulty = models.CharField(max_length=20, choices=Difficulty.choices, default=Difficulty.MIXED)
    instructions = models.JSONField(default=list, blank=True)

    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    # Fraction of a question's own marks deducted for a wrong answer
    negative_marking = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0.00'),
                                           validators=[MinValueValidator(0)])
    # Derived: sum of every question's marks, see recalculate_total_marks()
    total_marks = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    is_active = models.BooleanField(default=True)
    is_paid = models.BooleanField(default=False)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    attempt_count = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True,
                                   related_name='created_tests')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active'], name='mocktest_active_idx'),
            models.Index(fields=['exam_type'], name='mocktest_exam_type_idx'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug or self._title_changed():
            self.slug = self._unique_slug()
        super().save(*args, **kwargs)

    def _title_changed(self):
        if self.pk is None:
            return True
        old_title = MockTest.objects.filter(pk=self.pk).values_list('title', flat=True).first()
        return old_title != self.title

    def _unique_slug(self):
        base = slugify(self.title) or 'test'
        slug, n = base, 2
        while MockTest.objects.filter(slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base}-{n}"
            n += 1
        return slug

    def recalculate_total_marks(self):
        total = Question.objects.filter(section__test=self).aggregate(total=Sum('marks'))['total']
        self.total_marks = total or Decimal('0.00')
        MockTest.objects.filter(pk=self.pk).update(total_marks=self.total_marks)
        return self.total_marks

    @property
    def total_questions(self):
        return Question.objects.filter(section__test=self).count()


class Section(models.Model):
    test = models.ForeignKey(MockTest, related_name='sections', on_delete=models.CASCADE)
    title = models.CharField(max_length=255)
    order = models.PositiveIntegerField(default=1)
    # Optional per-section limit in minutes
    time_limit_minutes = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.test.title} / {self.title}"


class Question(models.Model):
    section = models.ForeignKey(Section, related_name='questions', on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=1)

    text = models.TextField()
    options = models.JSONField(default=list)  # ordered option texts
    correct_answer = models.PositiveIntegerField(help_text="Index into options")
    explanation = models.TextField(blank=True)
    marks = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal('1.00'))

    difficulty = models.CharField(max_length=20, choices=Difficulty.choices[:3], default=Difficulty.MEDIUM)
    subject = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.text[:50]}..."

    def clean(self):
        if len(self.options) < 2:
            raise ValidationError({'options': "A question needs at least 2 options."})
        if self.correct_answer >= len(self.options):
            raise ValidationError({'correct_answer': "Correct answer index must be within options range."})
        if self.marks is not None and self.marks <= 0:
            raise ValidationError({'marks': "Marks must be a positive number."})
