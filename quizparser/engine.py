"""
Quiz Parser Engine
==================
Main orchestrator that combines text extraction, question/answer parsing,
validation, grading and output formatting.

Usage:
    engine = QuizEngine(config)
    result = engine.parse_files("paper.pdf", "solutions.pdf")
    report = engine.grade(result.questions, result.solutions, {"1": "B"})

Architecture:
    document → TextExtractor → text → QuestionStateMachine → Questions
    document → TextExtractor → text → AnswerStateMachine   → Solutions
    Questions + Solutions → ValidationEngine → QuizParseResult (JSON)
    Questions + Solutions + user answers → grade() → GradeReport
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import TypeAdapter

from . import __version__
from .answer_parser import AnswerStateMachine
from .errors import NoAnswersFound, NoQuestionsFound
from .extractor import DEFAULT_LINE_TOLERANCE, TextExtractor
from .models import (
    BlockDiagnostic,
    GradeReport,
    ParseVersion,
    Question,
    QuizMetadata,
    QuizParseResult,
    Solution,
    ValidationReport,
)
from .scoring import ScoringPolicy, grade
from .state_machine import QuestionStateMachine
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_QUESTION_LIST = TypeAdapter(list[Question])
_SOLUTION_LIST = TypeAdapter(list[Solution])


@dataclass
class ParserConfig:
    """Configuration for the quiz engine."""

    # Output settings
    output_dir: str = "output"
    save_output: bool = False

    # Quiz metadata
    quiz_name: str = ""
    quiz_id: Optional[str] = None

    # Extraction
    line_tolerance: float = DEFAULT_LINE_TOLERANCE

    # Marking scheme
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class QuizEngine:
    """
    Quiz parsing and grading engine.

    Orchestrates the full pipeline:
        1. Text extraction (PDF / plain text)
        2. Question assembly and parsing
        3. Answer parsing
        4. Validation
        5. Grading

    Holds only configuration, so one engine can serve concurrent callers.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self.extractor = TextExtractor(line_tolerance=self.config.line_tolerance)
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("quizparser")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(file_handler)

    # ─── Parsing ──────────────────────────────────────────────────────────

    def assemble_questions(
        self, text: str
    ) -> tuple[list[Question], list[BlockDiagnostic]]:
        """Parse questions without the empty-result check."""
        machine = QuestionStateMachine()
        questions = machine.parse(text)
        return questions, machine.diagnostics

    def parse_questions(self, text: str) -> list[Question]:
        """
        Parse question-paper text.

        Raises:
            NoQuestionsFound: If no question survived parsing.
        """
        questions, _ = self.assemble_questions(text)
        if not questions:
            raise NoQuestionsFound()
        return questions

    def parse_answers(self, text: str) -> list[Solution]:
        """
        Parse solutions text.

        Raises:
            NoAnswersFound: If no answer could be recovered.
        """
        solutions = AnswerStateMachine().parse(text)
        if not solutions:
            raise NoAnswersFound()
        return solutions

    def parse_quiz(
        self,
        question_text: str,
        solution_text: str,
        question_source: str = "",
        solution_source: str = "",
    ) -> QuizParseResult:
        """
        Parse a question/solution text pair into a QuizParseResult.

        Raises:
            NoQuestionsFound: If the question paper yields nothing.
            NoAnswersFound: If the solutions document yields nothing.
        """
        start_time = time.time()

        logger.info("Phase 1: Question parsing")
        questions, diagnostics = self.assemble_questions(question_text)
        if not questions:
            raise NoQuestionsFound()

        logger.info("Phase 2: Answer parsing")
        solutions = self.parse_answers(solution_text)

        logger.info("Phase 3: Validation")
        validation = self.validate(questions, solutions, diagnostics)

        quiz = QuizMetadata(
            name=self.config.quiz_name or Path(question_source).stem,
            question_source=question_source,
            solution_source=solution_source,
            question_hash=QuizParseResult.compute_text_hash(question_text),
            solution_hash=QuizParseResult.compute_text_hash(solution_text),
        )
        parse_version = ParseVersion(
            parser_version=__version__,
            question_line_count=question_text.count("\n") + 1,
            solution_line_count=solution_text.count("\n") + 1,
            question_count=len(questions),
            solution_count=len(solutions),
        )
        result = QuizParseResult(
            quiz=quiz,
            parse_version=parse_version,
            questions=questions,
            solutions=solutions,
            validation=validation,
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Parse complete in {elapsed:.2f}s — "
            f"{len(questions)} questions, {len(solutions)} answers"
        )

        if self.config.save_output:
            self.save(result)

        return result

    def parse_files(self, question_path: str, solution_path: str) -> QuizParseResult:
        """Extract and parse a question/solution document pair."""
        question_text = self.extractor.extract(question_path)
        solution_text = self.extractor.extract(solution_path)
        return self.parse_quiz(
            question_text,
            solution_text,
            question_source=Path(question_path).name,
            solution_source=Path(solution_path).name,
        )

    def validate(
        self,
        questions: list[Question],
        solutions: Optional[list[Solution]] = None,
        diagnostics: Optional[list[BlockDiagnostic]] = None,
    ) -> ValidationReport:
        return ValidationEngine().validate(questions, solutions, diagnostics)

    # ─── Loading ──────────────────────────────────────────────────────────

    def load_questions(self, path: str) -> list[Question]:
        """Load questions from dumped JSON or parse them from a document."""
        if Path(path).suffix.lower() == ".json":
            data = self._load_json(path)
            if isinstance(data, dict):
                data = data.get("questions", [])
            return _QUESTION_LIST.validate_python(data)
        return self.parse_questions(self.extractor.extract(path))

    def load_solutions(self, path: str) -> list[Solution]:
        """Load solutions from dumped JSON or parse them from a document."""
        if Path(path).suffix.lower() == ".json":
            data = self._load_json(path)
            if isinstance(data, dict):
                data = data.get("solutions", [])
            return _SOLUTION_LIST.validate_python(data)
        return self.parse_answers(self.extractor.extract(path))

    @staticmethod
    def _load_json(path: str) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    # ─── Grading ──────────────────────────────────────────────────────────

    def grade(
        self,
        questions: list[Question],
        solutions: list[Solution],
        user_answers: Optional[Mapping[Any, Any]],
    ) -> GradeReport:
        return grade(questions, solutions, user_answers, self.config.scoring)

    # ─── Output ───────────────────────────────────────────────────────────

    def save(self, result: QuizParseResult) -> Path:
        """Write questions, solutions and validation JSON to output_dir."""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        quiz_id = self.config.quiz_id or self._generate_quiz_id(result.quiz.name)

        self._save_json(
            [q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in result.questions],
            output_dir / f"{quiz_id}_questions.json",
        )
        self._save_json(
            [s.model_dump(mode="json", by_alias=True) for s in result.solutions],
            output_dir / f"{quiz_id}_solutions.json",
        )
        self._save_json(
            result.validation.model_dump(mode="json", by_alias=True),
            output_dir / f"{quiz_id}_validation.json",
        )

        logger.info(f"Output saved to: {output_dir}")
        return output_dir

    def _generate_quiz_id(self, name: str) -> str:
        """Filesystem-safe id derived from the quiz name."""
        clean_name = "".join(
            c if c.isalnum() or c in "-_" else "_"
            for c in (name or "quiz")
        )
        return clean_name[:50]

    def _save_json(self, data: Any, filepath: Path):
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Saved JSON: {filepath}")
