"""
Scoring Engine
==============
Pure grading of a candidate's answers against parsed questions and
solutions, under the negative-marking scheme:

    - correct                       → +marks
    - wrong, single-answer MCQ      → -marks / 3
    - wrong, MSQ or NAT             → 0
    - not attempted                 → 0

NAT answers are compared with an absolute tolerance of 1e-4. Grading never
raises on bad data: unmapped solutions, non-numeric NAT input and missing
answers all count as incorrect or not attempted.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from .models import (
    AttemptStatus,
    AttemptSummary,
    CorrectAnswer,
    GradeReport,
    MultipleAnswer,
    NumericAnswer,
    NumericTextAnswer,
    Question,
    QuestionType,
    Result,
    Score,
    SingleAnswer,
    Solution,
    UserAnswer,
    user_answer_from_raw,
)

logger = logging.getLogger(__name__)

DEFAULT_MARKS = 1
NEGATIVE_MARKING_DIVISOR = 3
NUMERIC_TOLERANCE = 1e-4

# (threshold, letter), highest first
GRADE_BANDS = [
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
]
FAIL_GRADE = "F"

# Leading number, the way a browser's parseFloat reads "0.4551 cm"
LEADING_NUMBER_PATTERN = re.compile(
    r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
)


@dataclass(frozen=True)
class ScoringPolicy:
    """Single point of configuration for the marking scheme."""
    default_marks: int = DEFAULT_MARKS
    negative_marking_divisor: int = NEGATIVE_MARKING_DIVISOR
    numeric_tolerance: float = NUMERIC_TOLERANCE


DEFAULT_POLICY = ScoringPolicy()


# ─── Answer Comparison ────────────────────────────────────────────────────────


def coerce_number(answer: Any) -> Optional[float]:
    """Read a number out of an answer; None when it is not a number."""
    if isinstance(answer, NumericAnswer):
        return answer.value
    if isinstance(answer, NumericTextAnswer):
        text = answer.text
    elif isinstance(answer, SingleAnswer):
        text = answer.letter
    else:
        return None

    match = LEADING_NUMBER_PATTERN.match(text)
    if not match:
        return None
    value = float(match.group(0))
    return None if math.isnan(value) else value


def _as_list(answer: Any) -> list[str]:
    if isinstance(answer, MultipleAnswer):
        return list(answer.letters)
    return [_as_scalar(answer)]


def _as_scalar(answer: Any) -> str:
    if isinstance(answer, NumericAnswer):
        return str(answer.value)
    return answer.to_raw()


def compare_answers(
    user: Optional[UserAnswer],
    correct: Optional[CorrectAnswer],
    tolerance: float = NUMERIC_TOLERANCE,
) -> bool:
    """
    Decide whether a candidate answer matches the key.

    Multiple-letter answers match when they have the same length and the
    same sorted letters, so order does not matter but duplicates do. A
    scalar compared with a list is treated as a one-element list.
    """
    if user is None or correct is None:
        return False

    if isinstance(correct, NumericAnswer):
        value = coerce_number(user)
        if value is None:
            return False
        return abs(value - correct.value) <= tolerance

    if isinstance(user, MultipleAnswer) or isinstance(correct, MultipleAnswer):
        user_letters = _as_list(user)
        correct_letters = _as_list(correct)
        if len(user_letters) != len(correct_letters):
            return False
        return sorted(user_letters) == sorted(correct_letters)

    return _as_scalar(user) == _as_scalar(correct)


# ─── Grading ──────────────────────────────────────────────────────────────────


def format_fixed(value: float) -> str:
    """Two-decimal string with ties rounded away from zero."""
    return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def letter_grade(percentage: float) -> str:
    for threshold, letter in GRADE_BANDS:
        if percentage >= threshold:
            return letter
    return FAIL_GRADE


def _coerce_user_answers(
    user_answers: Optional[Mapping[Any, Any]],
) -> dict[str, Optional[UserAnswer]]:
    coerced: dict[str, Optional[UserAnswer]] = {}
    for key, raw in (user_answers or {}).items():
        try:
            coerced[str(key)] = user_answer_from_raw(raw)
        except ValueError as e:
            logger.warning(
                f"Ignoring unreadable answer for question {key}: {e}"
            )
            coerced[str(key)] = None
    return coerced


def marks_for(
    question: Question,
    correct: Optional[CorrectAnswer],
    is_correct: bool,
    is_attempted: bool,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> float:
    """Marks awarded for one question under the negative-marking scheme."""
    question_marks = question.marks or policy.default_marks

    if is_correct:
        return question_marks
    if not is_attempted:
        return 0
    if isinstance(correct, MultipleAnswer) or question.type == QuestionType.NAT:
        return 0
    return -(question_marks / policy.negative_marking_divisor)


def grade(
    questions: Iterable[Question],
    solutions: Iterable[Solution],
    user_answers: Optional[Mapping[Any, Any]],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> GradeReport:
    """
    Grade one attempt.

    Args:
        questions: Parsed questions, in presentation order.
        solutions: Parsed solutions; the first solution per id wins.
        user_answers: Question id → raw or typed answer. Empty strings and
            missing ids count as not attempted.
        policy: Marking scheme.

    Returns:
        GradeReport with one Result per question and the aggregate Score.
    """
    questions = list(questions)

    solutions_by_id: dict[str, Solution] = {}
    for solution in solutions:
        solutions_by_id.setdefault(solution.id, solution)

    answers = _coerce_user_answers(user_answers)

    results: list[Result] = []
    total_marks = 0
    earned_marks = 0.0

    for question in questions:
        user = answers.get(question.id)
        solution = solutions_by_id.get(question.id)
        correct = solution.answer if solution else None
        question_marks = question.marks or policy.default_marks

        is_correct = compare_answers(user, correct, policy.numeric_tolerance)
        is_attempted = user is not None
        marks_awarded = marks_for(
            question, correct, is_correct, is_attempted, policy
        )

        total_marks += question_marks
        earned_marks += marks_awarded

        if solution is None:
            logger.debug(f"No solution for question {question.id}")

        results.append(Result(
            question_id=question.id,
            question_text=question.text,
            options=question.options,
            type=question.type,
            marks=question_marks,
            marks_awarded=marks_awarded,
            user_answer=user,
            correct_answer=correct,
            explanation=solution.explanation if solution else None,
            is_correct=is_correct,
            is_attempted=is_attempted,
        ))

    correct_count = sum(1 for r in results if r.is_correct)
    attempted_count = sum(1 for r in results if r.is_attempted)
    percentage = earned_marks / total_marks * 100 if total_marks > 0 else 0

    score = Score(
        correct_count=correct_count,
        total_questions=len(questions),
        earned_marks=round(earned_marks, 2),
        total_marks=total_marks,
        percentage=format_fixed(percentage),
        attempted_count=attempted_count,
        incorrect_count=attempted_count - correct_count,
        grade=letter_grade(percentage),
    )

    logger.info(
        f"Graded {len(questions)} questions: {correct_count} correct, "
        f"{score.earned_marks}/{total_marks} marks ({score.percentage}%)"
    )
    return GradeReport(results=results, score=score)


def abandoned_score(
    questions: Iterable[Question],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> Score:
    """Score recorded when a candidate leaves a quiz without submitting."""
    questions = list(questions)
    return Score(
        correct_count=0,
        total_questions=len(questions),
        earned_marks=0.0,
        total_marks=sum(q.marks or policy.default_marks for q in questions),
        percentage="0.00",
        grade=FAIL_GRADE,
        status=AttemptStatus.ABANDONED,
    )


def summarize_attempts(scores: Iterable[Score]) -> AttemptSummary:
    """Average, best and cumulative marks across attempts."""
    scores = list(scores)
    if not scores:
        return AttemptSummary()

    percentages = [float(s.percentage) for s in scores]
    return AttemptSummary(
        total_attempts=len(scores),
        average_score=format_fixed(sum(percentages) / len(scores)),
        best_score=format_fixed(max(percentages)),
        total_marks_earned=format_fixed(sum(s.earned_marks for s in scores)),
        total_marks_possible=sum(s.total_marks for s in scores),
    )
