"""
Error Taxonomy
==============
Exceptions raised by the parsing pipeline.

Every error carries a stable ``code`` so that the CLI and the HTTP service
can report it without string matching. Grading never raises for bad data;
only parsing and document extraction do.
"""

from __future__ import annotations

from typing import Optional


class ParseError(Exception):
    """Base class for all parsing failures."""

    code = "parse_error"

    def __init__(self, message: str, question_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.question_id = question_id

    def to_dict(self) -> dict:
        data = {"error": self.message, "code": self.code}
        if self.question_id is not None:
            data["question_id"] = self.question_id
        return data


class NoQuestionsFound(ParseError):
    code = "no_questions_found"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No questions found in the uploaded file. "
            "Please check the format."
        )


class NoAnswersFound(ParseError):
    code = "no_answers_found"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No answers found in the solution file. "
            "Please check the format."
        )


class InsufficientOptions(ParseError):
    """A question-shaped block yielded fewer than two options."""

    code = "insufficient_options"

    def __init__(self, question_id: str, option_count: int):
        super().__init__(
            f"Question {question_id} has {option_count} option(s); "
            f"at least 2 are required",
            question_id=question_id,
        )
        self.option_count = option_count


class MalformedBlock(ParseError):
    """A block whose leading id/type marker could not be recovered."""

    code = "malformed_block"

    def __init__(self, question_id: str, detail: str):
        super().__init__(
            f"Question {question_id} could not be parsed: {detail}",
            question_id=question_id,
        )


class ExtractionError(ParseError):
    """A source document could not be turned into text."""

    code = "extraction_failed"
