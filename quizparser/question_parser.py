"""
Question Parser
===============
Turns one assembled question block into a typed ``Question``.

Two shapes are recognised:
    - NAT blocks carry a "(NAT ...)" marker and have no options.
    - Everything else is treated as MCQ/MSQ and must yield at least two
      options; otherwise ``InsufficientOptions`` is raised and the
      assembler drops the block.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .errors import InsufficientOptions, MalformedBlock
from .models import Question, QuestionType

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2

# ─── Block Patterns ───────────────────────────────────────────────────────────

NAT_MARKER_PATTERN = re.compile(r"\(NAT[^)]*\)", re.IGNORECASE)

# Question prose following "Q.7 (NAT, 2 Marks)"
NAT_TEXT_PATTERN = re.compile(
    r"^(?:Q\.?\s*)?\d+\.?\s*\(NAT[^)]*\)\s*(.+)",
    re.IGNORECASE | re.DOTALL,
)

NAT_MARKS_PATTERN = re.compile(r"\(NAT,?\s*(\d+)\s*Marks?\)", re.IGNORECASE)

# "(MCQ, 2 Marks)", "(MSQ 1 Mark)", "(2 Marks)"
MARKS_PATTERN = re.compile(
    r"\((?:MCQ|MSQ|NAT)?,?\s*(\d+)\s*Marks?\)", re.IGNORECASE
)

# Prose between the leading id/marker and the first option line
MCQ_TEXT_PATTERN = re.compile(
    r"^(?:Q\.?\s*)?\d+\.?\s*(?:\([A-Z]+[^)]*\))?\s*(.+?)(?=\n\s*\(?\s*[A-D]\s*\))",
    re.IGNORECASE | re.DOTALL,
)

# Leftover type annotations; quoted titles and other parentheses survive
TYPE_ANNOTATION_PATTERN = re.compile(
    r"\((?:MCQ|MSQ|NAT|TF)[^)]*\)", re.IGNORECASE
)

# "(A) text" or "A) text" at line start, running to the next option or end
OPTION_PATTERN = re.compile(
    r"(?:^|\n)\s*\(?\s*([A-D])\s*\)\s*(.+?)(?=\n\s*\(?\s*[A-D]\s*\)|\Z)",
    re.IGNORECASE | re.DOTALL,
)


def _parse_marks(pattern: re.Pattern, block_text: str) -> Optional[int]:
    match = pattern.search(block_text)
    if not match:
        return None
    marks = int(match.group(1))
    # A declared 0 is treated the same as no declaration.
    return marks or None


def extract_options(block_text: str) -> dict[str, str]:
    """Collect A-D options in letter order, collapsing inner newlines."""
    options: dict[str, str] = {}
    for match in OPTION_PATTERN.finditer(block_text):
        letter = match.group(1).upper()
        text = re.sub(r"\n+", " ", match.group(2).strip()).strip()
        options[letter] = text
    return dict(sorted(options.items()))


def parse_question_block(
    lines: list[str],
    question_id: str,
    passage_text: str = "",
    passage_target: Optional[str] = None,
) -> Question:
    """
    Parse the buffered lines of one question.

    Args:
        lines: Block lines; the first is the question-start line.
        question_id: Id captured from the question-start line.
        passage_text: Pending passage prose, if any.
        passage_target: Id designated to receive the passage.

    Returns:
        The parsed Question.

    Raises:
        InsufficientOptions: MCQ-shaped block with fewer than two options.
        MalformedBlock: The leading id/marker could not be recovered.
    """
    block_text = "\n".join(lines)

    if NAT_MARKER_PATTERN.search(block_text):
        text_match = NAT_TEXT_PATTERN.match(block_text)
        if not text_match:
            raise MalformedBlock(question_id, "NAT marker not after id")

        question_type = QuestionType.NAT
        text = text_match.group(1).strip()
        options: dict[str, str] = {}
        marks = _parse_marks(NAT_MARKS_PATTERN, block_text)
    else:
        question_type = QuestionType.MCQ
        marks = _parse_marks(MARKS_PATTERN, block_text)
        options = extract_options(block_text)
        if len(options) < MIN_OPTIONS:
            raise InsufficientOptions(question_id, len(options))

        text_match = MCQ_TEXT_PATTERN.match(block_text)
        if not text_match:
            raise MalformedBlock(question_id, "no question text before options")
        text = TYPE_ANNOTATION_PATTERN.sub("", text_match.group(1).strip()).strip()

    passage = None
    has_passage = False
    if passage_text.strip() and passage_target == question_id:
        passage = passage_text.strip()
        has_passage = True

    return Question(
        id=question_id,
        text=text,
        type=question_type,
        options=options,
        marks=marks,
        passage=passage,
        has_passage=has_passage,
    )
