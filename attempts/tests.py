from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import AuditLog
from mocktests.models import MockTest, Section, Question
from attempts import services
from attempts.exceptions import (
    AttemptNotFound, AttemptForbidden, AlreadySubmitted, AttemptStartConflict, InvalidAttempt,
    MockTestNotFound, MockTestInactive
)
from attempts.models import Attempt, AttemptAnswer, SectionResult
from attempts.ranking import RankEntry, dense_ranks, leaderboard_order
from attempts.scoring import (
    AnswerKey, SectionKey, QuestionKey, ScoringError,
    CORRECT, INCORRECT, SKIPPED,
    evaluate_answer, score_attempt, check_answers, compute_accuracy, minutes_between
)

User = get_user_model()


def make_user(email, role=User.Role.STUDENT):
    return User.objects.create_user(username=email, email=email, password='pass12345', role=role)


def make_test(title='Aptitude Mock', negative_marking='0.50', sections=((5, 5), (5, 5)), is_active=True):
    """Every question has options A-D with A correct."""
    test = MockTest.objects.create(
        title=title,
        description='Practice paper',
        duration_minutes=60,
        negative_marking=Decimal(negative_marking),
        is_active=is_active,
    )
    for s_index, marks_list in enumerate(sections, start=1):
        section = Section.objects.create(test=test, title=f'Section {s_index}', order=s_index)
        for q_index, marks in enumerate(marks_list, start=1):
            Question.objects.create(
                section=section,
                order=q_index,
                text=f'Question {s_index}.{q_index}',
                options=['A', 'B', 'C', 'D'],
                correct_answer=0,
                explanation='A is right',
                marks=Decimal(str(marks)),
            )
    test.recalculate_total_marks()
    return test


def question_ids(test):
    return list(Question.objects.filter(section__test=test).order_by('section__order', 'order').values_list('id', flat=True))


def single_question_key(marks=4, rate='0.25'):
    return AnswerKey(
        sections=(SectionKey(id=1, title='Only', questions=(QuestionKey(id=10, correct_answer=2, marks=marks, option_count=4),)),),
        negative_marking=Decimal(rate),
    )


def two_section_key():
    return AnswerKey(
        sections=(
            SectionKey(id=1, title='Quant', questions=(
                QuestionKey(id=1, correct_answer=0, marks=5, option_count=4),
                QuestionKey(id=2, correct_answer=1, marks=5, option_count=4),
            )),
            SectionKey(id=2, title='Verbal', questions=(
                QuestionKey(id=3, correct_answer=2, marks=5, option_count=4),
                QuestionKey(id=4, correct_answer=3, marks=5, option_count=4),
            )),
        ),
        negative_marking=Decimal('0.5'),
    )


class ScoringTestCase(SimpleTestCase):

    def test_evaluate_answer(self):
        question = QuestionKey(id=1, correct_answer=2, marks=1)
        self.assertEqual(evaluate_answer(question, 2), CORRECT)
        self.assertEqual(evaluate_answer(question, 0), INCORRECT)
        self.assertEqual(evaluate_answer(question, None), SKIPPED)

    def test_single_question_negative_marking(self):
        key = single_question_key()
        self.assertEqual(score_attempt(key, {10: 1}).score, Decimal('-1'))
        self.assertEqual(score_attempt(key, {10: 2}).score, Decimal('4'))
        self.assertEqual(score_attempt(key, {}).score, Decimal('0'))
        self.assertEqual(score_attempt(key, {10: None}).score, Decimal('0'))

    def test_negative_score_is_not_clamped(self):
        card = score_attempt(single_question_key(), {10: 0})
        self.assertEqual(card.score, Decimal('-1'))
        self.assertEqual(card.percentage, Decimal('-25.00'))

    def test_two_section_scenario(self):
        card = score_attempt(two_section_key(), {1: 0, 2: 3, 4: 3})

        self.assertEqual(card.score, Decimal('7.5'))
        self.assertEqual(card.total_marks, Decimal('20'))
        self.assertEqual(card.percentage, Decimal('37.50'))
        self.assertEqual(card.correct_answers, 2)
        self.assertEqual(card.wrong_answers, 1)
        self.assertEqual(card.skipped_questions, 1)
        self.assertEqual(card.attempted_questions, 3)
        self.assertEqual(card.accuracy, Decimal('66.67'))

        quant, verbal = card.sections
        self.assertEqual(quant.section_title, 'Quant')
        self.assertEqual(quant.marks_obtained, Decimal('2.5'))
        self.assertEqual(quant.accuracy, Decimal('50.00'))
        self.assertEqual(verbal.marks_obtained, Decimal('5'))
        self.assertEqual(verbal.skipped_questions, 1)

    def test_counts_add_up_to_total_questions(self):
        key = two_section_key()
        for answers in ({}, {1: 0}, {1: 1, 2: 1, 3: 2, 4: None}, {1: 0, 2: 1, 3: 2, 4: 3}):
            card = score_attempt(key, answers)
            self.assertEqual(
                card.correct_answers + card.wrong_answers + card.skipped_questions,
                card.total_questions
            )
            self.assertEqual(card.total_questions, 4)
            self.assertEqual(len(card.answers), 4)

    def test_percentage_matches_score(self):
        # Stored to 2 decimal places, so it agrees with the exact ratio within half a hundredth
        key = AnswerKey(
            sections=(SectionKey(id=1, title='Thirds', questions=tuple(
                QuestionKey(id=i, correct_answer=0, marks=1, option_count=2) for i in (1, 2, 3)
            )),),
            negative_marking=Decimal('0.25'),
        )
        for answers in ({1: 0}, {1: 0, 2: 0}, {1: 0, 2: 1}, {1: 1, 2: 1, 3: 1}):
            card = score_attempt(key, answers)
            exact = card.score / card.total_marks * 100
            self.assertLessEqual(abs(card.percentage - exact), Decimal('0.005'))
            self.assertEqual(card.percentage.as_tuple().exponent, -2)
        self.assertEqual(score_attempt(key, {1: 0}).percentage, Decimal('33.33'))
        self.assertEqual(score_attempt(key, {1: 0, 2: 0}).percentage, Decimal('66.67'))

    def test_accuracy_is_zero_without_attempts(self):
        self.assertEqual(compute_accuracy(0, 0), Decimal('0'))
        self.assertEqual(score_attempt(two_section_key(), {}).accuracy, Decimal('0'))

    def test_zero_total_marks_fails(self):
        key = single_question_key(marks=0)
        with self.assertRaises(ScoringError):
            score_attempt(key, {10: 2})

    def test_test_without_questions_fails(self):
        with self.assertRaises(ScoringError):
            score_attempt(AnswerKey(sections=()), {})
        with self.assertRaises(ScoringError):
            score_attempt(AnswerKey(sections=(SectionKey(id=1, title='Empty', questions=()),)), {})

    def test_check_answers(self):
        key = two_section_key()
        check_answers(key, {1: 0, 2: None})
        with self.assertRaises(ScoringError):
            check_answers(key, {99: 0})
        with self.assertRaises(ScoringError):
            check_answers(key, {1: 4})
        with self.assertRaises(ScoringError):
            check_answers(key, {1: -1})

    def test_minutes_between(self):
        start = datetime(2024, 1, 1, 10, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(minutes_between(start, start + timedelta(minutes=42, seconds=59)), 42)
        self.assertEqual(minutes_between(start, start - timedelta(minutes=5)), 0)
        self.assertEqual(minutes_between(start, None), 0)


class RankingTestCase(SimpleTestCase):

    def setUp(self):
        self.t0 = datetime(2024, 1, 1, 9, 0, tzinfo=dt_timezone.utc)

    def entry(self, attempt_id, score, minutes):
        return RankEntry(attempt_id, Decimal(str(score)), self.t0 + timedelta(minutes=minutes))

    def test_equal_scores_share_a_rank(self):
        ranks = dense_ranks([self.entry(1, 9, 5), self.entry(2, 9, 1), self.entry(3, 7, 0)])
        self.assertEqual(ranks, {1: 1, 2: 1, 3: 2})

    def test_higher_score_never_ranks_below(self):
        entries = [self.entry(i, score, i) for i, score in enumerate([3, 12.5, -2, 12.5, 0, 7, 3, 20], start=1)]
        ranks = dense_ranks(entries)
        for a in entries:
            for b in entries:
                if a.score > b.score:
                    self.assertLessEqual(ranks[a.attempt_id], ranks[b.attempt_id])
        self.assertEqual(ranks[8], 1)
        self.assertEqual(ranks[3], 6)

    def test_ties_listed_by_earliest_submission(self):
        ordered = leaderboard_order([self.entry(1, 5, 30), self.entry(2, 8, 40), self.entry(3, 5, 10)])
        self.assertEqual([e.attempt_id for e in ordered], [2, 3, 1])

    def test_empty(self):
        self.assertEqual(dense_ranks([]), {})


class AttemptServiceTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user('student@example.com')
        cls.other = make_user('other@example.com')
        cls.admin = make_user('admin@example.com', role=User.Role.ADMIN)
        cls.test = make_test()
        cls.q1, cls.q2, cls.q3, cls.q4 = question_ids(cls.test)

    def scenario_answers(self):
        # Q1 correct, Q2 wrong, Q3 skipped, Q4 correct
        return [
            {'question_id': self.q1, 'selected_answer': 0},
            {'question_id': self.q2, 'selected_answer': 2},
            {'question_id': self.q3, 'selected_answer': None},
            {'question_id': self.q4, 'selected_answer': 0},
        ]

    def test_start_is_idempotent(self):
        first, created = services.start_attempt(self.student, self.test.pk)
        second, created_again = services.start_attempt(self.student, self.test.pk)

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Attempt.objects.filter(user=self.student, test=self.test).count(), 1)
        self.test.refresh_from_db()
        self.assertEqual(self.test.attempt_count, 1)
        self.assertEqual(first.total_questions, 4)

    def test_start_after_submission_opens_a_new_attempt(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(attempt.pk, self.student, self.scenario_answers())

        again, created = services.start_attempt(self.student, self.test.pk)
        self.assertTrue(created)
        self.assertNotEqual(again.pk, attempt.pk)

    def test_start_missing_or_inactive_test(self):
        inactive = make_test(title='Closed', is_active=False)
        with self.assertRaises(MockTestInactive):
            services.start_attempt(self.student, inactive.pk)
        with self.assertRaises(MockTestNotFound):
            services.start_attempt(self.student, 999999)
        self.assertFalse(Attempt.objects.filter(user=self.student).exists())

    def test_start_race_without_open_attempt_conflicts(self):
        # The unique constraint fired, but the competing attempt is already submitted
        with patch.object(Attempt.objects, 'create', side_effect=IntegrityError):
            with self.assertRaises(AttemptStartConflict):
                services.start_attempt(self.student, self.test.pk)

        self.assertFalse(Attempt.objects.filter(user=self.student).exists())
        self.test.refresh_from_db()
        self.assertEqual(self.test.attempt_count, 0)

    def test_save_progress_replaces_answers(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.save_progress(attempt.pk, self.student, [{'question_id': self.q1, 'selected_answer': 1}])
        services.save_progress(attempt.pk, self.student, [
            {'question_id': self.q1, 'selected_answer': 0},
            {'question_id': self.q2, 'selected_answer': 3},
        ])

        saved = dict(attempt.answers.values_list('question_id', 'selected_answer'))
        self.assertEqual(saved, {self.q1: 0, self.q2: 3})
        attempt.refresh_from_db()
        self.assertFalse(attempt.is_completed)
        self.assertIsNone(attempt.score)

    def test_save_progress_by_someone_else_is_forbidden(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.save_progress(attempt.pk, self.student, [{'question_id': self.q1, 'selected_answer': 1}])

        with self.assertRaises(AttemptForbidden):
            services.save_progress(attempt.pk, self.other, [{'question_id': self.q1, 'selected_answer': 0}])
        self.assertEqual(attempt.answers.get().selected_answer, 1)

    def test_save_progress_after_submission_conflicts(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(attempt.pk, self.student, self.scenario_answers())

        with self.assertRaises(AlreadySubmitted):
            services.save_progress(attempt.pk, self.student, [{'question_id': self.q3, 'selected_answer': 0}])
        self.assertIsNone(attempt.answers.get(question_id=self.q3).selected_answer)

    def test_save_progress_rejects_foreign_question(self):
        other_test = make_test(title='Other', sections=((1,),))
        foreign_question = question_ids(other_test)[0]
        attempt, _ = services.start_attempt(self.student, self.test.pk)

        with self.assertRaises(InvalidAttempt):
            services.save_progress(attempt.pk, self.student, [{'question_id': foreign_question, 'selected_answer': 0}])
        with self.assertRaises(InvalidAttempt):
            services.save_progress(attempt.pk, self.student, [
                {'question_id': self.q1, 'selected_answer': 0},
                {'question_id': self.q1, 'selected_answer': 1},
            ])
        self.assertFalse(attempt.answers.exists())

    def test_submit_scores_attempt(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        result = services.submit_attempt(attempt.pk, self.student, self.scenario_answers())

        result.refresh_from_db()
        self.assertTrue(result.is_completed)
        self.assertFalse(result.is_auto_submitted)
        self.assertIsNotNone(result.submitted_at)
        self.assertEqual(result.score, Decimal('7.5'))
        self.assertEqual(result.total_marks, Decimal('20'))
        self.assertEqual(result.percentage, Decimal('37.50'))
        self.assertEqual(result.accuracy, Decimal('66.67'))
        self.assertEqual(result.correct_answers, 2)
        self.assertEqual(result.wrong_answers, 1)
        self.assertEqual(result.skipped_questions, 1)
        self.assertEqual(result.total_questions, 4)
        self.assertEqual(result.rank, 1)
        self.assertEqual(result.total_attempts, 1)
        self.assertEqual(result.status, 'completed')

        graded = {a.question_id: a for a in result.answers.all()}
        self.assertTrue(graded[self.q1].is_correct)
        self.assertEqual(graded[self.q2].marks_awarded, Decimal('-2.5'))
        self.assertEqual(graded[self.q3].marks_awarded, Decimal('0'))

        sections = list(result.section_results.all())
        self.assertEqual([s.section_title for s in sections], ['Section 1', 'Section 2'])
        self.assertEqual(sections[0].marks_obtained, Decimal('2.5'))
        self.assertEqual(sections[1].marks_obtained, Decimal('5'))

    def test_second_submit_conflicts_and_keeps_result(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        first = services.submit_attempt(attempt.pk, self.student, self.scenario_answers())
        first.refresh_from_db()

        all_correct = [{'question_id': q, 'selected_answer': 0} for q in (self.q1, self.q2, self.q3, self.q4)]
        with self.assertRaises(AlreadySubmitted):
            services.submit_attempt(attempt.pk, self.student, all_correct)

        attempt.refresh_from_db()
        self.assertEqual(attempt.score, first.score)
        self.assertEqual(attempt.submitted_at, first.submitted_at)
        self.assertEqual(attempt.correct_answers, 2)

    def test_submit_by_someone_else_is_forbidden(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        with self.assertRaises(AttemptForbidden):
            services.submit_attempt(attempt.pk, self.other, self.scenario_answers())

        attempt.refresh_from_db()
        self.assertFalse(attempt.is_completed)
        self.assertFalse(attempt.answers.exists())

    def test_submit_unknown_attempt(self):
        with self.assertRaises(AttemptNotFound):
            services.submit_attempt(999999, self.student, [])

    def test_submit_for_another_test_id(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        other_test = make_test(title='Other')
        with self.assertRaises(AttemptNotFound):
            services.submit_attempt(attempt.pk, self.student, [], test_id=other_test.pk)

    def test_submit_after_test_deleted(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        MockTest.objects.filter(pk=self.test.pk).delete()

        with self.assertRaises(MockTestNotFound):
            services.submit_attempt(attempt.pk, self.student, [])
        attempt.refresh_from_db()
        self.assertIsNone(attempt.test)
        self.assertFalse(attempt.is_completed)

    def test_submit_without_answers_scores_saved_progress(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.save_progress(attempt.pk, self.student, self.scenario_answers())

        result = services.submit_attempt(attempt.pk, self.student, answers=None)
        self.assertEqual(result.score, Decimal('7.5'))
        self.assertEqual(result.skipped_questions, 1)

    def test_auto_submit_is_flagged_and_scored_the_same(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        result = services.submit_attempt(attempt.pk, self.student, self.scenario_answers(), is_auto_submit=True)

        result.refresh_from_db()
        self.assertTrue(result.is_auto_submitted)
        self.assertEqual(result.score, Decimal('7.5'))

    def test_invalid_answers_leave_attempt_untouched(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.save_progress(attempt.pk, self.student, [{'question_id': self.q1, 'selected_answer': 0}])

        with self.assertRaises(InvalidAttempt):
            services.submit_attempt(attempt.pk, self.student, [{'question_id': self.q1, 'selected_answer': 7}])

        attempt.refresh_from_db()
        self.assertFalse(attempt.is_completed)
        self.assertIsNone(attempt.score)
        self.assertFalse(attempt.section_results.exists())
        self.assertEqual(attempt.answers.get().selected_answer, 0)

    def test_zero_mark_test_cannot_be_submitted(self):
        free_test = make_test(title='Unmarked', sections=((0, 0),))
        attempt, _ = services.start_attempt(self.student, free_test.pk)

        with self.assertRaises(InvalidAttempt):
            services.submit_attempt(attempt.pk, self.student, [])
        attempt.refresh_from_db()
        self.assertFalse(attempt.is_completed)

    def test_time_spent_in_minutes(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        Attempt.objects.filter(pk=attempt.pk).update(started_at=timezone.now() - timedelta(minutes=30, seconds=20))

        result = services.submit_attempt(attempt.pk, self.student, [])
        self.assertEqual(result.time_spent, 30)

    def test_ranks_are_recomputed_for_the_whole_test(self):
        third = make_user('third@example.com')
        all_correct = [{'question_id': q, 'selected_answer': 0} for q in (self.q1, self.q2, self.q3, self.q4)]

        first, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(first.pk, self.student, self.scenario_answers())
        first.refresh_from_db()
        self.assertEqual((first.rank, first.total_attempts), (1, 1))

        second, _ = services.start_attempt(self.other, self.test.pk)
        services.submit_attempt(second.pk, self.other, all_correct)

        last, _ = services.start_attempt(third, self.test.pk)
        services.submit_attempt(last.pk, third, all_correct)

        first.refresh_from_db()
        second.refresh_from_db()
        last.refresh_from_db()
        self.assertEqual(second.rank, 1)
        self.assertEqual(last.rank, 1)
        self.assertEqual(first.rank, 2)
        for attempt in (first, second, last):
            self.assertEqual(attempt.total_attempts, 3)

    def test_open_attempts_are_not_ranked(self):
        finished, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(finished.pk, self.student, self.scenario_answers())
        open_attempt, _ = services.start_attempt(self.other, self.test.pk)

        ranks = services.recompute_rankings(self.test.pk)
        self.assertEqual(ranks, {finished.pk: 1})
        open_attempt.refresh_from_db()
        self.assertIsNone(open_attempt.rank)

    def test_answer_key_requires_completion(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        with self.assertRaises(AttemptForbidden):
            services.get_answer_key(attempt.pk, self.student)

    def test_answer_key_for_owner_and_admin_only(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(attempt.pk, self.student, self.scenario_answers())

        with self.assertRaises(AttemptForbidden):
            services.get_answer_key(attempt.pk, self.other)

        key = services.get_answer_key(attempt.pk, self.student)
        self.assertEqual(key['attempt_id'], attempt.pk)
        self.assertEqual(key['test_title'], 'Aptitude Mock')
        self.assertEqual(len(key['answer_key']), 2)
        first_question = key['answer_key'][0]['questions'][0]
        self.assertEqual(first_question['correct_answer'], 0)
        self.assertEqual(first_question['explanation'], 'A is right')
        self.assertTrue(first_question['user_answer']['is_correct'])

        admin_view = services.get_answer_key(attempt.pk, self.admin)
        self.assertEqual(admin_view['attempt_id'], attempt.pk)

    def test_answer_key_marks_unanswered_questions(self):
        attempt, _ = services.start_attempt(self.student, self.test.pk)
        services.submit_attempt(attempt.pk, self.student, [{'question_id': self.q1, 'selected_answer': 0}])

        key = services.get_answer_key(attempt.pk, self.student)
        self.assertIsNone(key['answer_key'][1]['questions'][0]['user_answer'])


class AttemptApiTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user('learner@example.com')
        cls.other = make_user('rival@example.com')
        cls.test = make_test()
        cls.q1, cls.q2, cls.q3, cls.q4 = question_ids(cls.test)

    def setUp(self):
        self.client.force_authenticate(user=self.student)

    def start(self):
        return self.client.post(reverse('start-test', kwargs={'test_id': self.test.pk}))

    def submit(self, attempt_id, answers, **extra):
        payload = {'attempt_id': attempt_id, 'answers': answers, **extra}
        return self.client.post(reverse('submit-test', kwargs={'test_id': self.test.pk}), payload, format='json')

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_start_hides_correct_answers(self):
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['duration_minutes'], 60)
        self.assertEqual(response.data['saved_answers'], [])
        question = response.data['test']['sections'][0]['questions'][0]
        self.assertNotIn('correct_answer', question)
        self.assertNotIn('explanation', question)

        resumed = self.start()
        self.assertEqual(resumed.status_code, status.HTTP_200_OK)
        self.assertEqual(resumed.data['attempt_id'], response.data['attempt_id'])

    def test_start_unknown_test(self):
        response = self.client.post(reverse('start-test', kwargs={'test_id': 999999}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Test not found')

    def test_start_race_is_a_conflict(self):
        with patch.object(Attempt.objects, 'create', side_effect=IntegrityError):
            response = self.start()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)

    def test_save_progress_then_resume(self):
        attempt_id = self.start().data['attempt_id']
        response = self.client.post(
            reverse('save-progress', kwargs={'test_id': self.test.pk}),
            {'attempt_id': attempt_id, 'answers': [{'question_id': self.q2, 'selected_answer': 1}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'saved': True})

        resumed = self.start()
        self.assertEqual(resumed.data['saved_answers'], [{'question_id': self.q2, 'selected_answer': 1}])

    def test_submit_returns_result(self):
        attempt_id = self.start().data['attempt_id']
        response = self.submit(attempt_id, [
            {'question_id': self.q1, 'selected_answer': 0},
            {'question_id': self.q2, 'selected_answer': 2},
            {'question_id': self.q4, 'selected_answer': 0},
        ])

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['score']), Decimal('7.5'))
        self.assertEqual(Decimal(response.data['percentage']), Decimal('37.5'))
        self.assertEqual(response.data['rank'], 1)
        self.assertEqual(response.data['total_attempts'], 1)
        self.assertEqual(response.data['skipped_questions'], 1)
        self.assertEqual(len(response.data['section_results']), 2)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.SUBMIT, target_object_id=str(attempt_id)).exists())

    def test_resubmission_is_a_conflict(self):
        attempt_id = self.start().data['attempt_id']
        self.submit(attempt_id, [{'question_id': self.q1, 'selected_answer': 0}])

        response = self.submit(attempt_id, [])
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Test already submitted')

    def test_submit_someone_elses_attempt(self):
        attempt_id = self.start().data['attempt_id']
        self.client.force_authenticate(user=self.other)

        response = self.submit(attempt_id, [])
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Attempt.objects.get(pk=attempt_id).is_completed)

    def test_submit_rejects_bad_payload(self):
        attempt_id = self.start().data['attempt_id']
        response = self.submit(attempt_id, [{'question_id': self.q1, 'selected_answer': -1}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.submit(attempt_id, [{'question_id': self.q1, 'selected_answer': 9}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_history_and_detail(self):
        attempt_id = self.start().data['attempt_id']
        self.submit(attempt_id, [{'question_id': self.q1, 'selected_answer': 0}], is_auto_submit=True)
        services.start_attempt(self.student, make_test(title='Second').pk)

        response = self.client.get(reverse('attempt-history'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['id'], attempt_id)
        self.assertEqual(response.data['results'][0]['status'], 'completed')

        detail = self.client.get(reverse('attempt-detail', kwargs={'attempt_id': attempt_id}))
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertTrue(detail.data['is_auto_submitted'])
        self.assertEqual(len(detail.data['answers']), 1)

        self.client.force_authenticate(user=self.other)
        hidden = self.client.get(reverse('attempt-detail', kwargs={'attempt_id': attempt_id}))
        self.assertEqual(hidden.status_code, status.HTTP_403_FORBIDDEN)

    def test_answers_endpoint(self):
        attempt_id = self.start().data['attempt_id']
        url = reverse('attempt-answers', kwargs={'attempt_id': attempt_id})

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Test must be completed to view answers')

        self.submit(attempt_id, [])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['answer_key'][0]['questions'][0]['correct_answer'], 0)

    def test_stored_answer_rows(self):
        attempt_id = self.start().data['attempt_id']
        self.submit(attempt_id, [{'question_id': self.q1, 'selected_answer': 0}])
        self.assertEqual(AttemptAnswer.objects.filter(attempt_id=attempt_id).count(), 4)
        self.assertEqual(SectionResult.objects.filter(attempt_id=attempt_id).count(), 2)
