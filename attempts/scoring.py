"""
Answer evaluation and attempt scoring.

Plain data in, plain data out: nothing here touches the database, so the
arithmetic can be checked without one. `services.py` builds an `AnswerKey`
from the stored test and persists the returned `ScoreCard`.

Marks per question:
  correct    +marks
  incorrect  -(marks * negative_marking)
  skipped    0

The total is NOT clamped at zero, so heavy negative marking can produce a
negative score and a negative percentage.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

CORRECT = "correct"
INCORRECT = "incorrect"
SKIPPED = "skipped"

HUNDRED = Decimal('100')
TWO_PLACES = Decimal('0.01')


class ScoringError(ValueError):
    """The test definition cannot produce a meaningful score."""


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class QuestionKey:
    id: int
    correct_answer: int
    marks: Decimal
    option_count: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'marks', as_decimal(self.marks))


@dataclass(frozen=True)
class SectionKey:
    id: int
    title: str
    questions: Tuple[QuestionKey, ...]

    @property
    def total_marks(self) -> Decimal:
        return sum((q.marks for q in self.questions), Decimal('0'))


@dataclass(frozen=True)
class AnswerKey:
    """Everything the scorer needs to know about a test."""
    sections: Tuple[SectionKey, ...]
    negative_marking: Decimal = Decimal('0')

    def __post_init__(self):
        object.__setattr__(self, 'negative_marking', as_decimal(self.negative_marking))

    @property
    def total_marks(self) -> Decimal:
        return sum((s.total_marks for s in self.sections), Decimal('0'))

    @property
    def total_questions(self) -> int:
        return sum(len(s.questions) for s in self.sections)

    def questions(self):
        for section in self.sections:
            yield from section.questions


@dataclass
class MarkedAnswer:
    question_id: int
    selected_answer: Optional[int]
    outcome: str
    marks_awarded: Decimal

    @property
    def is_correct(self) -> bool:
        return self.outcome == CORRECT


@dataclass
class Tally:
    total_questions: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    skipped_questions: int = 0
    marks_obtained: Decimal = Decimal('0')
    total_marks: Decimal = Decimal('0')

    @property
    def attempted_questions(self) -> int:
        return self.correct_answers + self.wrong_answers

    @property
    def accuracy(self) -> Decimal:
        return compute_accuracy(self.correct_answers, self.wrong_answers)

    def add(self, question: QuestionKey, answer: MarkedAnswer):
        self.total_questions += 1
        self.total_marks += question.marks
        self.marks_obtained += answer.marks_awarded
        if answer.outcome == CORRECT:
            self.correct_answers += 1
        elif answer.outcome == INCORRECT:
            self.wrong_answers += 1
        else:
            self.skipped_questions += 1


@dataclass
class SectionScore(Tally):
    section_id: int = 0
    section_title: str = ''


@dataclass
class ScoreCard(Tally):
    percentage: Decimal = Decimal('0')
    sections: List[SectionScore] = field(default_factory=list)
    answers: List[MarkedAnswer] = field(default_factory=list)

    @property
    def score(self) -> Decimal:
        return self.marks_obtained


def evaluate_answer(question: QuestionKey, selected: Optional[int]) -> str:
    """Classify one submitted answer as correct, incorrect or skipped."""
    if selected is None:
        return SKIPPED
    if selected == question.correct_answer:
        return CORRECT
    return INCORRECT


def marks_for(question: QuestionKey, outcome: str, negative_marking) -> Decimal:
    if outcome == CORRECT:
        return question.marks
    if outcome == INCORRECT:
        return -(question.marks * as_decimal(negative_marking))
    return Decimal('0')


def compute_accuracy(correct: int, wrong: int) -> Decimal:
    attempted = correct + wrong
    if attempted == 0:
        return Decimal('0')
    return (Decimal(correct) / Decimal(attempted) * HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_percentage(score: Decimal, total_marks: Decimal) -> Decimal:
    if total_marks == 0:
        raise ScoringError("Test has zero total marks; cannot compute a percentage.")
    return (score / total_marks * HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def score_attempt(key: AnswerKey, answers: Dict[int, Optional[int]]) -> ScoreCard:
    """
    Score a set of answers (question id -> selected option index, or None)
    against `key`. Questions missing from `answers` count as skipped.

    Walks every question of every section exactly once.
    """
    if key.total_questions == 0:
        raise ScoringError("Test has no questions.")
    if key.total_marks == 0:
        raise ScoringError("Test has zero total marks; cannot compute a percentage.")

    card = ScoreCard()
    for section in key.sections:
        section_score = SectionScore(section_id=section.id, section_title=section.title)
        for question in section.questions:
            selected = answers.get(question.id)
            outcome = evaluate_answer(question, selected)
            marked = MarkedAnswer(
                question_id=question.id,
                selected_answer=selected,
                outcome=outcome,
                marks_awarded=marks_for(question, outcome, key.negative_marking),
            )
            section_score.add(question, marked)
            card.add(question, marked)
            card.answers.append(marked)
        card.sections.append(section_score)

    card.percentage = compute_percentage(card.score, card.total_marks)
    return card


def check_answers(key: AnswerKey, answers: Dict[int, Optional[int]]):
    """Reject answers for questions outside the test or options that do not exist."""
    questions = {q.id: q for q in key.questions()}
    for question_id, selected in answers.items():
        question = questions.get(question_id)
        if question is None:
            raise ScoringError(f"Question {question_id} does not belong to this test.")
        if selected is None:
            continue
        if selected < 0 or (question.option_count and selected >= question.option_count):
            raise ScoringError(f"Option {selected} does not exist for question {question_id}.")


def minutes_between(started_at, submitted_at) -> int:
    """Whole minutes spent on an attempt, never negative."""
    if started_at is None or submitted_at is None:
        return 0
    return max(0, int((submitted_at - started_at).total_seconds() // 60))
