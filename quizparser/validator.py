"""
Validation Engine
=================
Post-parse consistency report for a question/solution document pair.

After parsing, reports:
    - Total questions and solutions
    - Duplicate ids on either side
    - Missing question numbers (gaps in numeric order, informational)
    - Questions without a solution, solutions without a question
    - NAT questions keyed with a letter instead of a number
    - Blocks dropped by the assembler, with the reason

Dropped blocks are never raised; this report is where they surface.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from .models import (
    BlockDiagnostic,
    NumericAnswer,
    Question,
    QuestionType,
    Solution,
    ValidationReport,
)

logger = logging.getLogger(__name__)


def _duplicates(ids: list[str]) -> list[str]:
    counts = Counter(ids)
    return sorted(
        (i for i, count in counts.items() if count > 1),
        key=_id_sort_key,
    )


def _id_sort_key(question_id: str):
    return (0, int(question_id), "") if question_id.isdigit() else (1, 0, question_id)


class ValidationEngine:
    """
    Cross-checks parsed questions against parsed solutions.
    """

    def validate(
        self,
        questions: list[Question],
        solutions: Optional[list[Solution]] = None,
        diagnostics: Optional[list[BlockDiagnostic]] = None,
    ) -> ValidationReport:
        """
        Run full validation.

        Args:
            questions: Parsed questions.
            solutions: Parsed solutions, if a solutions document was given.
            diagnostics: Blocks dropped by the question assembler.

        Returns:
            ValidationReport with all detected issues.
        """
        solutions = solutions or []
        report = ValidationReport(
            total_questions=len(questions),
            total_solutions=len(solutions),
            dropped_blocks=list(diagnostics or []),
        )

        if not questions:
            logger.warning("No questions to validate")

        question_ids = [q.id for q in questions]
        solution_ids = [s.id for s in solutions]

        report.duplicate_question_ids = _duplicates(question_ids)
        report.duplicate_solution_ids = _duplicates(solution_ids)

        numbers = [int(i) for i in question_ids if i.isdigit()]
        if numbers:
            expected = set(range(min(numbers), max(numbers) + 1))
            report.missing_question_numbers = sorted(expected - set(numbers))

        known_solutions = set(solution_ids)
        known_questions = set(question_ids)
        report.questions_without_solution = [
            i for i in question_ids if i not in known_solutions
        ]
        report.solutions_without_question = [
            i for i in solution_ids if i not in known_questions
        ]

        answers = {}
        for solution in solutions:
            answers.setdefault(solution.id, solution.answer)
        report.nat_without_numeric_answer = [
            q.id for q in questions
            if q.type == QuestionType.NAT
            and q.id in answers
            and not isinstance(answers[q.id], NumericAnswer)
        ]

        self._log_summary(report)
        return report

    def _log_summary(self, report: ValidationReport):
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Total Questions: {report.total_questions}")
        logger.info(f"Total Solutions: {report.total_solutions}")
        logger.info(f"Solution Coverage: {report.coverage_rate}%")
        logger.info(
            f"Duplicate Question Ids: {len(report.duplicate_question_ids)}"
        )
        logger.info(
            f"Missing Question Numbers: "
            f"{len(report.missing_question_numbers)}"
        )
        logger.info(
            f"Questions Without Solution: "
            f"{len(report.questions_without_solution)}"
        )
        logger.info(
            f"Solutions Without Question: "
            f"{len(report.solutions_without_question)}"
        )
        if report.nat_without_numeric_answer:
            logger.warning(
                f"NAT questions keyed with a letter: "
                f"{', '.join(report.nat_without_numeric_answer)}"
            )
        if report.dropped_blocks:
            logger.info("Dropped Blocks:")
            for diag in report.dropped_blocks:
                logger.info(f"  • Q{diag.question_id}: {diag.reason.value}")
        logger.info("=" * 60)
