"""
Answer Block Parser
===================
State machine over a solutions document. Recognised layout:

    Q.1
    Answer: (B) Option text
    Explanation: first line
    further explanation lines ...
    Q.7 Answer: 0.455

Answer forms:
    - "0.455", "42"              → NumericAnswer
    - "(B)", "(A), (C)"          → letters in parentheses
    - "B", "A, C"                → bare leading letters
A single letter collapses to SingleAnswer; several give MultipleAnswer.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

from .models import (
    CorrectAnswer,
    MultipleAnswer,
    NumericAnswer,
    SingleAnswer,
    Solution,
)

logger = logging.getLogger(__name__)

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

QUESTION_PATTERN = re.compile(r"^Q\.?\s*(\d+)", re.IGNORECASE)

ANSWER_PATTERN = re.compile(r"^Answer:\s*(.+)", re.IGNORECASE)

EXPLANATION_PATTERN = re.compile(r"^Explanation:\s*(.*)", re.IGNORECASE)

INLINE_EXPLANATION_MARKER = "Explanation:"

# Unsigned only; "-3" is not a recognised answer
NUMERIC_ANSWER_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

PAREN_LETTER_PATTERN = re.compile(r"\(([A-D])\)", re.IGNORECASE)

# "A", "A, C", "B some trailing text"
STANDALONE_LETTERS_PATTERN = re.compile(
    r"^[A-D](?:\s*,\s*[A-D])*(?=\s|$)", re.IGNORECASE
)


class AnswerState(Enum):
    IDLE = "IDLE"
    IN_ANSWER = "IN_ANSWER"
    IN_EXPLANATION = "IN_EXPLANATION"


def _collapse(letters: list[str]) -> CorrectAnswer:
    if len(letters) == 1:
        return SingleAnswer(letter=letters[0])
    return MultipleAnswer(letters=letters)


def parse_answer_text(answer_text: str) -> Optional[CorrectAnswer]:
    """
    Interpret the text after "Answer:".

    Anything from an inline "Explanation:" onward is ignored. Returns None
    when no numeric value or option letter can be recovered.
    """
    if INLINE_EXPLANATION_MARKER in answer_text:
        answer_text = answer_text.split(INLINE_EXPLANATION_MARKER)[0]
    answer_text = answer_text.strip()

    if NUMERIC_ANSWER_PATTERN.match(answer_text):
        return NumericAnswer(value=float(answer_text))

    paren_letters = PAREN_LETTER_PATTERN.findall(answer_text)
    if paren_letters:
        return _collapse([letter.upper() for letter in paren_letters])

    standalone = STANDALONE_LETTERS_PATTERN.match(answer_text)
    if standalone:
        letters = re.findall(r"[A-D]", standalone.group(0), re.IGNORECASE)
        return _collapse([letter.upper() for letter in letters])

    return None


class AnswerStateMachine:
    """
    Transforms solutions-document text into ``Solution`` entities.
    Questions for which no answer was captured are skipped and remembered
    in ``skipped_ids``.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = AnswerState.IDLE
        self.current_id: Optional[str] = None
        self.current_answer: Optional[CorrectAnswer] = None
        self.explanation_lines: list[str] = []
        self.solutions: list[Solution] = []
        self.skipped_ids: list[str] = []

    def parse(self, text: str) -> list[Solution]:
        """Parse raw solutions text into solutions, in source order."""
        self.reset()

        for raw_line in text.split("\n"):
            self._process_line(raw_line.strip())

        self._flush()

        logger.info(
            f"Parsed {len(self.solutions)} answers "
            f"({len(self.skipped_ids)} questions without an answer)"
        )
        return self.solutions

    def _process_line(self, line: str):
        q_match = QUESTION_PATTERN.match(line)
        if q_match:
            self._flush()
            self.current_id = q_match.group(1)
            self.current_answer = None
            self.explanation_lines = []
            self.state = AnswerState.IDLE
            # "Q.7 Answer: 0.455" keeps the answer on the id line.
            remainder = line[q_match.end():].strip()
            if remainder and not QUESTION_PATTERN.match(remainder):
                self._process_line(remainder)
            return

        if self.current_id is None:
            return

        ans_match = ANSWER_PATTERN.match(line)
        if ans_match:
            answer = parse_answer_text(ans_match.group(1))
            if answer is not None:
                self.current_answer = answer
            else:
                logger.debug(
                    f"Unrecognised answer for question {self.current_id}: "
                    f"{ans_match.group(1)!r}"
                )
            self.state = AnswerState.IN_ANSWER
            return

        exp_match = EXPLANATION_PATTERN.match(line)
        if exp_match:
            self.state = AnswerState.IN_EXPLANATION
            if exp_match.group(1).strip():
                self.explanation_lines.append(exp_match.group(1))
            return

        if self.state == AnswerState.IN_EXPLANATION:
            self.explanation_lines.append(line)

    def _flush(self):
        """Emit the pending (id, answer, explanation) triple, if complete."""
        if self.current_id is None:
            return

        if self.current_answer is None:
            logger.debug(f"No answer captured for question {self.current_id}")
            self.skipped_ids.append(self.current_id)
        else:
            explanation = None
            if self.explanation_lines:
                explanation = "\n".join(self.explanation_lines).strip() or None
            self.solutions.append(Solution(
                id=self.current_id,
                answer=self.current_answer,
                explanation=explanation,
            ))

        self.current_id = None
        self.current_answer = None
        self.explanation_lines = []
