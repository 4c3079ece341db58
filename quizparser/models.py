"""
Data Models
===========
Pydantic models for parsed quiz entities and grading output.

Attributes are snake_case in Python and serialize to camelCase with
``model_dump(by_alias=True)``, which is the layout the storage and
presentation collaborators persist verbatim.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


# ─── Base ─────────────────────────────────────────────────────────────────────


class QuizModel(BaseModel):
    """Shared config: camelCase aliases, numeric ids coerced to str."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


# ─── Enums ────────────────────────────────────────────────────────────────────


class QuestionType(str, Enum):
    """Supported question formats."""
    MCQ = "MCQ"
    NAT = "NAT"


class AttemptStatus(str, Enum):
    """Outcome of a quiz session."""
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class DropReason(str, Enum):
    """Why a question-shaped block was left out of the result."""
    INSUFFICIENT_OPTIONS = "insufficient_options"
    MALFORMED_BLOCK = "malformed_block"


# ─── Answer Values ────────────────────────────────────────────────────────────


class SingleAnswer(BaseModel):
    """One option letter."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    letter: str

    def to_raw(self) -> str:
        return self.letter


class MultipleAnswer(BaseModel):
    """A set of option letters (MSQ). Order and duplicates are kept as given."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["multiple"] = "multiple"
    letters: list[str]

    def to_raw(self) -> list[str]:
        return list(self.letters)


class NumericAnswer(BaseModel):
    """The keyed value of a NAT question."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric"] = "numeric"
    value: float

    def to_raw(self) -> float:
        return self.value


class NumericTextAnswer(BaseModel):
    """Free text typed by a candidate, usually a number."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric_text"] = "numeric_text"
    text: str

    def to_raw(self) -> str:
        return self.text


CorrectAnswer = Union[SingleAnswer, MultipleAnswer, NumericAnswer]
UserAnswer = Union[SingleAnswer, MultipleAnswer, NumericTextAnswer]

_ANSWER_MODELS = (SingleAnswer, MultipleAnswer, NumericAnswer, NumericTextAnswer)
_CORRECT_ANSWER_ADAPTER = TypeAdapter(CorrectAnswer)
_USER_ANSWER_ADAPTER = TypeAdapter(UserAnswer)
_OPTION_LETTERS = frozenset("ABCD")


def answer_from_raw(value: Any) -> Optional[CorrectAnswer]:
    """
    Build a keyed answer from its persisted form.

    ``"B"`` → SingleAnswer, ``["A", "C"]`` → MultipleAnswer,
    ``0.455`` → NumericAnswer. Tagged dicts and model instances pass through.
    """
    if value is None or isinstance(value, _ANSWER_MODELS):
        return value
    if isinstance(value, dict):
        return _CORRECT_ANSWER_ADAPTER.validate_python(value)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported answer value: {value!r}")
    if isinstance(value, (int, float)):
        return NumericAnswer(value=float(value))
    if isinstance(value, str):
        return SingleAnswer(letter=value)
    if isinstance(value, (list, tuple)):
        return MultipleAnswer(letters=[str(v) for v in value])
    raise ValueError(f"Unsupported answer value: {value!r}")


def user_answer_from_raw(value: Any) -> Optional[UserAnswer]:
    """
    Coerce a raw candidate answer (as collected by the quiz session).

    Empty strings count as no answer. A lone option letter is a single
    choice; any other string is kept as numeric text for NAT comparison.
    """
    if value is None or isinstance(value, _ANSWER_MODELS):
        return value
    if isinstance(value, dict):
        return _USER_ANSWER_ADAPTER.validate_python(value)
    if isinstance(value, (list, tuple)):
        return MultipleAnswer(letters=[str(v) for v in value])
    if isinstance(value, bool):
        raise ValueError(f"Unsupported answer value: {value!r}")
    if isinstance(value, (int, float)):
        return NumericTextAnswer(text=str(value))
    if isinstance(value, str):
        if value == "":
            return None
        if value in _OPTION_LETTERS:
            return SingleAnswer(letter=value)
        return NumericTextAnswer(text=value)
    raise ValueError(f"Unsupported answer value: {value!r}")


def _dump_answer(answer):
    return answer.to_raw() if answer is not None else None


# ─── Question / Solution ──────────────────────────────────────────────────────


class Question(QuizModel):
    """A parsed question. Immutable once the parser has produced it."""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    type: QuestionType = QuestionType.MCQ
    options: dict[str, str] = Field(default_factory=dict)
    marks: Optional[int] = Field(
        default=None,
        gt=0,
        description="Declared marks; None means the scoring default applies",
    )
    passage: Optional[str] = None
    has_passage: bool = False


class Solution(QuizModel):
    """A keyed answer with an optional explanation."""
    model_config = ConfigDict(frozen=True)

    id: str
    answer: CorrectAnswer
    explanation: Optional[str] = None

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_answer(cls, value):
        return answer_from_raw(value)

    @field_serializer("answer")
    def _serialize_answer(self, answer):
        return _dump_answer(answer)


# ─── Grading Output ───────────────────────────────────────────────────────────


class Result(QuizModel):
    """Per-question grading outcome."""

    question_id: str
    question_text: str
    options: dict[str, str] = Field(default_factory=dict)
    type: QuestionType = QuestionType.MCQ
    marks: int
    marks_awarded: float
    user_answer: Optional[UserAnswer] = None
    correct_answer: Optional[CorrectAnswer] = None
    explanation: Optional[str] = None
    is_correct: bool = False
    is_attempted: bool = False

    @field_validator("user_answer", mode="before")
    @classmethod
    def _coerce_user_answer(cls, value):
        return user_answer_from_raw(value)

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _coerce_correct_answer(cls, value):
        return answer_from_raw(value)

    @field_serializer("user_answer", "correct_answer")
    def _serialize_answers(self, answer):
        return _dump_answer(answer)


class Score(QuizModel):
    """Aggregate score for one attempt."""

    correct_count: int = Field(ge=0)
    total_questions: int = Field(ge=0)
    earned_marks: float
    total_marks: int = Field(ge=0)
    percentage: str = Field(
        description="earned/total * 100 formatted with two decimals"
    )
    attempted_count: int = 0
    incorrect_count: int = 0
    grade: str = "F"
    status: AttemptStatus = AttemptStatus.COMPLETED

    @computed_field
    @property
    def unattempted_count(self) -> int:
        return self.total_questions - self.attempted_count


class GradeReport(QuizModel):
    """Everything the presentation layer needs after a submission."""

    results: list[Result] = Field(default_factory=list)
    score: Score


class AttemptSummary(QuizModel):
    """Aggregate over several attempts."""

    total_attempts: int = 0
    average_score: str = "0.00"
    best_score: str = "0.00"
    total_marks_earned: str = "0.00"
    total_marks_possible: int = 0


# ─── Diagnostics / Validation ─────────────────────────────────────────────────


class BlockDiagnostic(QuizModel):
    """A question-shaped block that was dropped during assembly."""

    question_id: str
    reason: DropReason
    message: str
    option_count: int = 0


class ValidationReport(QuizModel):
    """Post-parse consistency report across questions and solutions."""

    total_questions: int = 0
    total_solutions: int = 0
    duplicate_question_ids: list[str] = Field(default_factory=list)
    duplicate_solution_ids: list[str] = Field(default_factory=list)
    missing_question_numbers: list[int] = Field(default_factory=list)
    questions_without_solution: list[str] = Field(default_factory=list)
    solutions_without_question: list[str] = Field(default_factory=list)
    nat_without_numeric_answer: list[str] = Field(default_factory=list)
    dropped_blocks: list[BlockDiagnostic] = Field(default_factory=list)

    @computed_field
    @property
    def coverage_rate(self) -> float:
        """Share of questions that have a matching solution (0-100)."""
        if self.total_questions == 0:
            return 0.0
        covered = self.total_questions - len(self.questions_without_solution)
        return round(covered / self.total_questions * 100, 2)


# ─── Quiz / Parse Result Models ───────────────────────────────────────────────


class QuizMetadata(QuizModel):
    """Metadata about the uploaded document pair."""
    name: str = ""
    question_source: str = ""
    solution_source: str = ""
    question_hash: str = ""
    solution_hash: str = ""


class ParseVersion(QuizModel):
    """Version tracking for a parse run."""
    parser_version: str = "1.0.0"
    parse_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    question_line_count: int = 0
    solution_line_count: int = 0
    question_count: int = 0
    solution_count: int = 0


class QuizParseResult(QuizModel):
    """
    Complete output of parsing one question/solution document pair.
    This is the record handed to the storage collaborator.
    """
    quiz: QuizMetadata
    parse_version: ParseVersion
    questions: list[Question] = Field(default_factory=list)
    solutions: list[Solution] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)

    @staticmethod
    def compute_text_hash(text: str) -> str:
        """SHA-256 of the extracted text, used to spot re-uploads."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()
