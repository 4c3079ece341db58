"""
Question Block Assembler
========================
Deterministic state machine that groups classified lines of a question
paper into per-question blocks and hands each block to the question parser.

A block is flushed on every new section, passage header, question start and
at end of input. Reading passages announced as "(Questions a - b): Read ..."
are attached to question ``a`` only; the remaining ids of the range never
receive the passage.
"""

from __future__ import annotations

import logging
from typing import Optional

from .classifier import ClassifiedLine, ClassifierState, LineClassifier, LineTag
from .errors import InsufficientOptions, MalformedBlock
from .models import BlockDiagnostic, DropReason, Question
from .question_parser import parse_question_block

logger = logging.getLogger(__name__)


class QuestionStateMachine:
    """
    Finite State Machine that transforms question-paper text into
    ``Question`` entities. Each ``parse`` call starts from a clean state.
    """

    def __init__(self, classifier: Optional[LineClassifier] = None):
        self.classifier = classifier or LineClassifier()
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = ClassifierState.NORMAL
        self.current_id: Optional[str] = None
        self.current_lines: list[str] = []
        self.passage_text = ""
        self.passage_target: Optional[str] = None
        self.questions: list[Question] = []
        self.diagnostics: list[BlockDiagnostic] = []

    def parse(self, text: str) -> list[Question]:
        """Parse raw question-paper text into questions, in source order."""
        self.reset()

        for raw_line in text.split("\n"):
            line = raw_line.strip()
            if not line:
                continue
            classified = self.classifier.classify(line, self.state)
            self._process_line(classified)
            self.state = self.classifier.next_state(self.state, classified)

        self._flush()

        logger.info(
            f"Assembled {len(self.questions)} questions "
            f"({len(self.diagnostics)} blocks dropped)"
        )
        return self.questions

    def _process_line(self, classified: ClassifiedLine):
        tag = classified.tag

        if tag == LineTag.SECTION_HEADER:
            self._flush()
            self.passage_text = ""
            self.passage_target = None
            return

        if tag == LineTag.PASSAGE_HEADER:
            # The block before a new passage never sees that passage.
            self._flush(with_passage=False)
            self.passage_text = ""
            self.passage_target = classified.passage_start_id
            logger.debug(
                f"Passage announced for question {self.passage_target}"
            )
            return

        if tag == LineTag.QUESTION_START:
            self._flush()
            self.current_id = classified.question_id
            self.current_lines = [classified.line]
            logger.debug(f"Detected question {self.current_id}")
            return

        if tag == LineTag.CONTINUATION:
            self.current_lines.append(classified.line)
        elif tag == LineTag.PASSAGE_BODY:
            self.passage_text += classified.line + "\n"

        # MARKS_SUMMARY, PASSAGE_LABEL and DISCARD contribute nothing.

    def _flush(self, with_passage: bool = True):
        """Parse the buffered block, if any, and clear the buffer."""
        if self.current_id is None or not self.current_lines:
            self.current_id = None
            self.current_lines = []
            return

        question_id = self.current_id
        lines = self.current_lines
        self.current_id = None
        self.current_lines = []

        try:
            question = parse_question_block(
                lines,
                question_id,
                self.passage_text if with_passage else "",
                self.passage_target if with_passage else None,
            )
        except InsufficientOptions as e:
            logger.debug(f"Dropping block: {e}")
            self.diagnostics.append(BlockDiagnostic(
                question_id=question_id,
                reason=DropReason.INSUFFICIENT_OPTIONS,
                message=e.message,
                option_count=e.option_count,
            ))
            return
        except MalformedBlock as e:
            logger.debug(f"Dropping block: {e}")
            self.diagnostics.append(BlockDiagnostic(
                question_id=question_id,
                reason=DropReason.MALFORMED_BLOCK,
                message=e.message,
            ))
            return

        if question.has_passage:
            self.passage_text = ""
            self.passage_target = None

        logger.info(f"Parsed question {question.id} ({question.type.value})")
        self.questions.append(question)
