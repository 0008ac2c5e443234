"""
Attempt lifecycle: start, save progress, submit, rank, review.

    start          (none)       -> in progress   resumes an open attempt if one exists
    save progress  in progress  -> in progress
    submit         in progress  -> submitted     scores, then re-ranks the whole test

A submitted attempt never goes back to in progress.

Submission runs in a single transaction holding row locks on the attempt and
on its test. A failure while scoring rolls every write back, and two
submissions for the same test rank one after the other, so the second ranking
pass always sees the first one's score.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from mocktests.models import MockTest
from .exceptions import (
    AttemptNotFound, AttemptForbidden, AlreadySubmitted, AttemptStartConflict, InvalidAttempt,
    MockTestNotFound, MockTestInactive
)
from .models import Attempt, AttemptAnswer, SectionResult
from .ranking import RankEntry, dense_ranks
from .scoring import (
    AnswerKey, SectionKey, QuestionKey, ScoringError,
    check_answers, score_attempt, minutes_between
)

logger = logging.getLogger(__name__)


# --- Loading ---

def build_answer_key(test):
    sections = []
    for section in test.sections.prefetch_related('questions'):
        questions = tuple(
            QuestionKey(id=q.pk, correct_answer=q.correct_answer, marks=q.marks, option_count=len(q.options))
            for q in section.questions.all()
        )
        sections.append(SectionKey(id=section.pk, title=section.title, questions=questions))
    return AnswerKey(sections=tuple(sections), negative_marking=test.negative_marking)


def answers_to_map(answers):
    """[{question_id, selected_answer}, ...] -> {question_id: selected_answer}."""
    answer_map = {}
    for item in answers or []:
        question_id = item['question_id']
        if question_id in answer_map:
            raise InvalidAttempt(f"Question {question_id} is answered more than once.")
        answer_map[question_id] = item.get('selected_answer')
    return answer_map


def _get_attempt(attempt_id, lock=False):
    queryset = Attempt.objects.select_for_update() if lock else Attempt.objects.all()
    try:
        return queryset.get(pk=attempt_id)
    except Attempt.DoesNotExist:
        raise AttemptNotFound()


def _check_owner(attempt, user):
    if attempt.user_id != user.pk:
        logger.warning("User %s tried to use attempt %s owned by user %s", user.pk, attempt.pk, attempt.user_id)
        raise AttemptForbidden()


def _validated_map(key, answers):
    answer_map = answers_to_map(answers)
    try:
        check_answers(key, answer_map)
    except ScoringError as e:
        raise InvalidAttempt(str(e))
    return answer_map


def _write_answers(attempt, answer_map, marked=None):
    marked = marked or {}
    attempt.answers.all().delete()
    AttemptAnswer.objects.bulk_create([
        AttemptAnswer(
            attempt=attempt,
            question_id=question_id,
            selected_answer=selected,
            is_correct=marked[question_id].is_correct if question_id in marked else False,
            marks_awarded=marked[question_id].marks_awarded if question_id in marked else 0,
        )
        for question_id, selected in answer_map.items()
    ])


# --- Lifecycle ---

def start_attempt(user, test_id):
    """
    Returns (attempt, created). An open attempt for the same user and test is
    handed back instead of creating a second one.
    """
    try:
        test = MockTest.objects.get(pk=test_id)
    except MockTest.DoesNotExist:
        raise MockTestNotFound()
    if not test.is_active:
        raise MockTestInactive()

    existing = Attempt.objects.filter(user=user, test=test, is_completed=False).first()
    if existing:
        logger.info("Resuming attempt %s for user %s on test %s", existing.pk, user.pk, test.pk)
        return existing, False

    try:
        with transaction.atomic():
            attempt = Attempt.objects.create(
                user=user,
                test=test,
                started_at=timezone.now(),
                total_questions=test.total_questions,
                total_marks=test.total_marks
            )
            MockTest.objects.filter(pk=test.pk).update(attempt_count=F('attempt_count') + 1)
    except IntegrityError:
        # A parallel start for the same user and test got there first
        existing = Attempt.objects.filter(user=user, test=test, is_completed=False).first()
        if existing is None:
            logger.warning("Start of test %s for user %s raced with another request", test.pk, user.pk)
            raise AttemptStartConflict()
        return existing, False

    logger.info("Started attempt %s for user %s on test %s", attempt.pk, user.pk, test.pk)
    return attempt, True


def save_progress(attempt_id, user, answers, test_id=None):
    """Replace the stored answers of an open attempt."""
    with transaction.atomic():
        attempt = _get_attempt(attempt_id, lock=True)
        if test_id is not None and attempt.test_id is not None and attempt.test_id != int(test_id):
            raise AttemptNotFound()
        _check_owner(attempt, user)
        if attempt.is_completed:
            raise AlreadySubmitted()
        if attempt.test is None:
            raise MockTestNotFound()

        answer_map = _validated_map(build_answer_key(attempt.test), answers)
        _write_answers(attempt, answer_map)
    return attempt


def submit_attempt(attempt_id, user, answers=None, is_auto_submit=False, test_id=None):
    """
    Score and freeze an attempt, then rebuild the test's leaderboard.

    `answers=None` scores whatever was last saved with save_progress.
    `is_auto_submit` marks a time-expired submission; scoring is identical.
    """
    with transaction.atomic():
        attempt = _get_attempt(attempt_id, lock=True)
        if test_id is not None and attempt.test_id is not None and attempt.test_id != int(test_id):
            raise AttemptNotFound()
        _check_owner(attempt, user)
        if attempt.is_completed:
            logger.warning("Rejected re-submission of attempt %s", attempt.pk)
            raise AlreadySubmitted()

        test = MockTest.objects.select_for_update().filter(pk=attempt.test_id).first()
        if test is None:
            raise MockTestNotFound()

        key = build_answer_key(test)
        if answers is None:
            answer_map = {a.question_id: a.selected_answer for a in attempt.answers.all()}
        else:
            answer_map = answers_to_map(answers)
        try:
            check_answers(key, answer_map)
            card = score_attempt(key, answer_map)
        except ScoringError as e:
            raise InvalidAttempt(str(e))

        _write_answers(attempt, answer_map, {m.question_id: m for m in card.answers})
        attempt.section_results.all().delete()
        SectionResult.objects.bulk_create([
            SectionResult(
                attempt=attempt,
                section_id=section.section_id,
                section_title=section.section_title,
                order=index,
                total_questions=section.total_questions,
                attempted_questions=section.attempted_questions,
                correct_answers=section.correct_answers,
                wrong_answers=section.wrong_answers,
                skipped_questions=section.skipped_questions,
                marks_obtained=section.marks_obtained,
                total_marks=section.total_marks,
                accuracy=section.accuracy,
            )
            for index, section in enumerate(card.sections, start=1)
        ])

        attempt.submitted_at = timezone.now()
        attempt.is_completed = True
        attempt.is_auto_submitted = bool(is_auto_submit)
        attempt.time_spent = minutes_between(attempt.started_at, attempt.submitted_at)
        attempt.score = card.score
        attempt.total_marks = card.total_marks
        attempt.percentage = card.percentage
        attempt.accuracy = card.accuracy
        attempt.total_questions = card.total_questions
        attempt.attempted_questions = card.attempted_questions
        attempt.correct_answers = card.correct_answers
        attempt.wrong_answers = card.wrong_answers
        attempt.skipped_questions = card.skipped_questions
        attempt.save()

        recompute_rankings(test.pk)
        attempt.refresh_from_db(fields=['rank', 'total_attempts'])

    logger.info(
        "Attempt %s submitted%s: score %s/%s, rank %s of %s",
        attempt.pk, " (auto)" if attempt.is_auto_submitted else "",
        card.score, card.total_marks, attempt.rank, attempt.total_attempts
    )
    return attempt


def recompute_rankings(test_id):
    """Rewrite rank and total_attempts on every completed attempt of a test."""
    with transaction.atomic():
        # Serialises ranking passes for the same test
        list(MockTest.objects.select_for_update().filter(pk=test_id).values_list('pk', flat=True))

        completed = list(
            Attempt.objects.filter(test_id=test_id, is_completed=True).only('id', 'score', 'submitted_at')
        )
        ranks = dense_ranks(RankEntry(a.pk, a.score, a.submitted_at) for a in completed)
        for attempt in completed:
            attempt.rank = ranks[attempt.pk]
            attempt.total_attempts = len(completed)
        Attempt.objects.bulk_update(completed, ['rank', 'total_attempts'])

    logger.debug("Ranked %d attempts for test %s", len(completed), test_id)
    return ranks


# --- Review ---

def get_viewable_attempt(attempt_id, user):
    """Owners see their own attempts, admins see everyone's."""
    attempt = _get_attempt(attempt_id)
    if attempt.user_id != user.pk and not getattr(user, 'is_platform_admin', False):
        raise AttemptForbidden()
    return attempt


def get_answer_key(attempt_id, user):
    """Correct answers and explanations next to the learner's own answers."""
    attempt = get_viewable_attempt(attempt_id, user)
    if not attempt.is_completed:
        raise AttemptForbidden("Test must be completed to view answers")
    test = attempt.test
    if test is None:
        raise MockTestNotFound()

    user_answers = {a.question_id: a for a in attempt.answers.all()}
    answer_key = []
    for section in test.sections.prefetch_related('questions'):
        questions = []
        for question in section.questions.all():
            given = user_answers.get(question.pk)
            questions.append({
                'question_id': question.pk,
                'text': question.text,
                'options': question.options,
                'correct_answer': question.correct_answer,
                'explanation': question.explanation,
                'marks': question.marks,
                'difficulty': question.difficulty,
                'subject': question.subject,
                'user_answer': {
                    'selected_answer': given.selected_answer,
                    'is_correct': given.is_correct,
                    'marks_awarded': given.marks_awarded,
                } if given else None,
            })
        answer_key.append({
            'section_id': section.pk,
            'section_title': section.title,
            'questions': questions,
        })

    return {
        'attempt_id': attempt.pk,
        'test_title': test.title,
        'negative_marking': test.negative_marking,
        'answer_key': answer_key,
    }
