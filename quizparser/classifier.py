"""
Line Classifier
===============
Tags each trimmed, non-empty line of a question paper with its structural
role. The classifier is a pure function of (line, state); the assembler in
``state_machine`` owns the state and acts on the tags.

Rules are evaluated in priority order:
    1. Section header        "Section 2: Reasoning"
    2. Marks summary         "(10 Questions x 2 Marks each = 20 Marks)"
    3. Passage header        "(Questions 11 - 15): Read the passage ..."
    4. Passage label         "Passage 1:"
    5. Question start        "Q.16", "Q16.", "Q 16 (MCQ, 2 Marks) ..."
    6. Continuation / passage body / discard, depending on state
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# ─── Line Patterns ────────────────────────────────────────────────────────────

SECTION_PATTERN = re.compile(r"^Section\s+\d+:", re.IGNORECASE)

MARKS_SUMMARY_PATTERNS = [
    # "(10 Questions x 2 Marks each = 20 Marks)"
    re.compile(
        r"^\(\d+\s+Questions?\s+x\s+\d+\s+Marks?\s*(?:each)?\s*=\s*\d+\s+Marks?\)",
        re.IGNORECASE,
    ),
    # "Total: 25 Questions, 40 Marks"
    re.compile(r"^Total:\s*\d+\s+Questions?,\s*\d+\s+Marks?", re.IGNORECASE),
]

# "(Questions 11 - 15): Read", "Questions 11–15) Read", "Question 3-4 Read"
PASSAGE_HEADER_PATTERN = re.compile(
    r"^\(?Questions?\s+(\d+)\s*[-–]\s*\d+\s*\)?:?\s*Read",
    re.IGNORECASE,
)

PASSAGE_LABEL_PATTERN = re.compile(r"^Passage\s+\d+:", re.IGNORECASE)

# The leading "Q" is mandatory so numbered sub-lists never open a question.
QUESTION_START_PATTERN = re.compile(
    r"^Q\.?\s*(\d+)\.?\s*(?:\([A-Z]+[^)]*\))?\s*(.*)",
    re.IGNORECASE | re.DOTALL,
)


class ClassifierState(Enum):
    """Where the assembler currently is in the document."""
    NORMAL = "NORMAL"
    IN_PASSAGE = "IN_PASSAGE"
    IN_QUESTION_BLOCK = "IN_QUESTION_BLOCK"


class LineTag(Enum):
    SECTION_HEADER = "section_header"
    MARKS_SUMMARY = "marks_summary"
    PASSAGE_HEADER = "passage_header"
    PASSAGE_LABEL = "passage_label"
    QUESTION_START = "question_start"
    CONTINUATION = "continuation"
    PASSAGE_BODY = "passage_body"
    DISCARD = "discard"


# Tags that end the block currently being buffered.
FLUSH_TAGS = frozenset({
    LineTag.SECTION_HEADER,
    LineTag.PASSAGE_HEADER,
    LineTag.QUESTION_START,
})


@dataclass(frozen=True)
class ClassifiedLine:
    """A line together with its tag and any captured fields."""
    tag: LineTag
    line: str
    question_id: Optional[str] = None
    remainder: str = ""
    passage_start_id: Optional[str] = None

    @property
    def flushes(self) -> bool:
        return self.tag in FLUSH_TAGS


class LineClassifier:
    """Stateless line tagger. Safe to share between threads."""

    def classify(self, line: str, state: ClassifierState) -> ClassifiedLine:
        """
        Classify a single trimmed, non-empty line.

        Args:
            line: The line, already stripped of surrounding whitespace.
            state: The assembler's current state.

        Returns:
            ClassifiedLine with the tag and, for question starts and passage
            headers, the captured ids.
        """
        if SECTION_PATTERN.match(line):
            return ClassifiedLine(LineTag.SECTION_HEADER, line)

        if any(p.match(line) for p in MARKS_SUMMARY_PATTERNS):
            return ClassifiedLine(LineTag.MARKS_SUMMARY, line)

        header_match = PASSAGE_HEADER_PATTERN.match(line)
        if header_match:
            return ClassifiedLine(
                LineTag.PASSAGE_HEADER,
                line,
                passage_start_id=header_match.group(1),
            )

        if PASSAGE_LABEL_PATTERN.match(line):
            return ClassifiedLine(LineTag.PASSAGE_LABEL, line)

        q_match = QUESTION_START_PATTERN.match(line)
        if q_match:
            return ClassifiedLine(
                LineTag.QUESTION_START,
                line,
                question_id=q_match.group(1),
                remainder=q_match.group(2).strip(),
            )

        if state == ClassifierState.IN_QUESTION_BLOCK:
            return ClassifiedLine(LineTag.CONTINUATION, line)
        if state == ClassifierState.IN_PASSAGE:
            return ClassifiedLine(LineTag.PASSAGE_BODY, line)
        return ClassifiedLine(LineTag.DISCARD, line)

    @staticmethod
    def next_state(
        state: ClassifierState, classified: ClassifiedLine
    ) -> ClassifierState:
        """State after consuming a classified line."""
        tag = classified.tag
        if tag == LineTag.SECTION_HEADER:
            return ClassifierState.NORMAL
        if tag == LineTag.PASSAGE_HEADER:
            return ClassifierState.IN_PASSAGE
        if tag == LineTag.PASSAGE_LABEL:
            # An open question keeps absorbing lines until the next anchor.
            if state == ClassifierState.IN_QUESTION_BLOCK:
                return state
            return ClassifierState.IN_PASSAGE
        if tag == LineTag.QUESTION_START:
            return ClassifierState.IN_QUESTION_BLOCK
        return state
