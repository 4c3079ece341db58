"""
CLI Interface
=============
Command-line interface for the quiz parser engine.

Usage:
    python -m quizparser questions <file> [options]
    python -m quizparser answers <file> [options]
    python -m quizparser parse <questions> <solutions> [options]
    python -m quizparser grade <questions> <solutions> <answers.json>
    python -m quizparser validate <questions> <solutions>
    python -m quizparser info <pdf_path>
    python -m quizparser serve [options]
"""

from __future__ import annotations

import json
import os
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import ParserConfig, QuizEngine
from .errors import ParseError

console = Console()

LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"])


def _dump(data):
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _truncate(text: str, width: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 1] + "…"


def _fail(message: str, log_level: str = "INFO"):
    console.print(f"[red]Error:[/] {message}")
    if log_level == "DEBUG":
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="quizparser")
def cli():
    """Quiz Parser Engine — exam paper to quiz converter and grader."""
    pass


@cli.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--log-level", default="WARNING", type=LOG_LEVELS, help="Logging level")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON to stdout (for programmatic use)",
)
def questions(path: str, log_level: str, json_output: bool):
    """Parse a question paper and list its questions."""
    engine = QuizEngine(ParserConfig(log_level="ERROR" if json_output else log_level))

    try:
        parsed = engine.load_questions(path)
    except (FileNotFoundError, ParseError) as e:
        _fail(str(e), log_level)

    if json_output:
        _dump([q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in parsed])
        return

    _display_questions(parsed)


@cli.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--log-level", default="WARNING", type=LOG_LEVELS, help="Logging level")
@click.option("--json-output", is_flag=True, default=False, help="Output JSON only")
def answers(path: str, log_level: str, json_output: bool):
    """Parse a solutions document and list its answers."""
    engine = QuizEngine(ParserConfig(log_level="ERROR" if json_output else log_level))

    try:
        parsed = engine.load_solutions(path)
    except (FileNotFoundError, ParseError) as e:
        _fail(str(e), log_level)

    if json_output:
        _dump([s.model_dump(mode="json", by_alias=True) for s in parsed])
        return

    _display_solutions(parsed)


@cli.command()
@click.argument("question_path", type=click.Path(exists=True))
@click.argument("solution_path", type=click.Path(exists=True))
@click.option(
    "--output", "-o",
    default="output",
    help="Output directory for parsed data",
)
@click.option(
    "--quiz-name", "-n",
    default="",
    help="Quiz name (defaults to question filename)",
)
@click.option(
    "--quiz-id",
    default=None,
    help="Custom quiz ID for output file names",
)
@click.option(
    "--save/--no-save",
    default=True,
    help="Write questions/solutions/validation JSON to the output directory",
)
@click.option("--log-level", default="INFO", type=LOG_LEVELS, help="Logging level")
@click.option("--log-file", default=None, help="Path to log file")
@click.option("--json-output", is_flag=True, default=False, help="Output JSON only")
def parse(
    question_path: str,
    solution_path: str,
    output: str,
    quiz_name: str,
    quiz_id: str,
    save: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Parse a question paper and its solutions into a quiz."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = ParserConfig(
        output_dir=output,
        save_output=save,
        quiz_name=quiz_name,
        quiz_id=quiz_id,
        log_level=log_level,
        log_file=log_file,
    )

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]Quiz Parser Engine v{__version__}[/]\n"
                f"[dim]Questions: {os.path.basename(question_path)}\n"
                f"Solutions: {os.path.basename(solution_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        result = QuizEngine(config).parse_files(question_path, solution_path)
    except (FileNotFoundError, ParseError) as e:
        _fail(str(e), log_level)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)

    if json_output:
        _dump(result.model_dump(mode="json", by_alias=True))
        return

    _display_questions(result.questions)
    _display_validation_table(result.validation.model_dump(mode="json", by_alias=True))

    pv = result.parse_version
    console.print(
        f"[dim]Parser v{pv.parser_version} | "
        f"Questions: {pv.question_count} | "
        f"Answers: {pv.solution_count} | "
        f"Timestamp: {pv.parse_timestamp}[/]"
    )
    console.print()


@cli.command()
@click.argument("question_path", type=click.Path(exists=True))
@click.argument("solution_path", type=click.Path(exists=True))
@click.argument("answers_path", type=click.Path(exists=True))
@click.option("--log-level", default="WARNING", type=LOG_LEVELS, help="Logging level")
@click.option("--json-output", is_flag=True, default=False, help="Output JSON only")
def grade(
    question_path: str,
    solution_path: str,
    answers_path: str,
    log_level: str,
    json_output: bool,
):
    """
    Grade a candidate's answers.

    QUESTION_PATH and SOLUTION_PATH are documents (pdf/txt) or JSON dumped
    by the parse command. ANSWERS_PATH is a JSON object of question id to
    answer ("B", ["A", "C"] or "0.455").
    """
    engine = QuizEngine(ParserConfig(log_level="ERROR" if json_output else log_level))

    try:
        parsed_questions = engine.load_questions(question_path)
        parsed_solutions = engine.load_solutions(solution_path)
    except (FileNotFoundError, ParseError) as e:
        _fail(str(e), log_level)

    try:
        with open(answers_path, "r", encoding="utf-8") as f:
            user_answers = json.load(f)
    except json.JSONDecodeError as e:
        _fail(f"Answers file is not valid JSON: {e}", log_level)
    if not isinstance(user_answers, dict):
        _fail("Answers file must contain a JSON object of id → answer")

    report = engine.grade(parsed_questions, parsed_solutions, user_answers)

    if json_output:
        _dump(report.model_dump(mode="json", by_alias=True))
        return

    _display_grade_report(report)


@cli.command()
@click.argument("question_path", type=click.Path(exists=True))
@click.argument("solution_path", type=click.Path(exists=True))
@click.option("--log-level", default="WARNING", type=LOG_LEVELS, help="Logging level")
def validate(question_path: str, solution_path: str, log_level: str):
    """Cross-check a question paper against its solutions."""
    engine = QuizEngine(ParserConfig(log_level=log_level))

    try:
        parsed_solutions = engine.load_solutions(solution_path)
        if question_path.lower().endswith(".json"):
            parsed_questions = engine.load_questions(question_path)
            diagnostics = []
        else:
            text = engine.extractor.extract(question_path)
            parsed_questions, diagnostics = engine.assemble_questions(text)
    except (FileNotFoundError, ParseError) as e:
        _fail(str(e), log_level)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Validation Report[/]\n"
            f"[dim]Questions: {question_path}\n"
            f"Solutions: {solution_path}[/]",
            border_style="cyan",
        )
    )

    report = engine.validate(parsed_questions, parsed_solutions, diagnostics)
    _display_validation_table(report.model_dump(mode="json", by_alias=True))


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP service."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Quiz Parser Service[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
def info(pdf_path: str):
    """Display PDF file information."""

    import fitz

    try:
        doc = fitz.open(pdf_path)
    except RuntimeError as e:
        _fail(f"Cannot open {pdf_path}: {e}")

    console.print()
    table = Table(title="Document Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("Pages", str(doc.page_count))
    table.add_row(
        "File Size",
        f"{os.path.getsize(pdf_path) / 1024 / 1024:.2f} MB",
    )

    metadata = doc.metadata or {}
    for key in ["title", "author", "subject", "creator", "producer"]:
        val = metadata.get(key, "")
        if val:
            table.add_row(key.title(), val)

    doc.close()
    console.print(table)
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_questions(parsed):
    table = Table(title=f"Questions ({len(parsed)})", border_style="cyan")
    table.add_column("Id", style="bold", justify="right")
    table.add_column("Type", justify="center")
    table.add_column("Marks", justify="right")
    table.add_column("Options", justify="right")
    table.add_column("Passage", justify="center")
    table.add_column("Text")

    for q in parsed:
        table.add_row(
            q.id,
            q.type.value,
            str(q.marks) if q.marks else "[dim]1[/]",
            str(len(q.options)) if q.options else "-",
            "[green]✓[/]" if q.has_passage else "",
            _truncate(q.text),
        )

    console.print(table)
    console.print()


def _display_solutions(parsed):
    table = Table(title=f"Answers ({len(parsed)})", border_style="cyan")
    table.add_column("Id", style="bold", justify="right")
    table.add_column("Answer", justify="center")
    table.add_column("Explanation")

    for s in parsed:
        raw = s.answer.to_raw()
        answer = ", ".join(raw) if isinstance(raw, list) else str(raw)
        table.add_row(s.id, answer, _truncate(s.explanation or ""))

    console.print(table)
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    total = validation.get("totalQuestions", 0)
    coverage = validation.get("coverageRate", 0)

    table.add_row(
        "Total Questions",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Total Solutions",
        str(validation.get("totalSolutions", 0)),
        "",
    )
    table.add_row(
        "Solution Coverage",
        f"{coverage}%",
        "[green]✓[/]" if coverage >= 100 else "[yellow]⚠[/]",
    )

    for label, key in [
        ("Duplicate Question Ids", "duplicateQuestionIds"),
        ("Duplicate Solution Ids", "duplicateSolutionIds"),
        ("Missing Question Numbers", "missingQuestionNumbers"),
        ("Questions Without Solution", "questionsWithoutSolution"),
        ("Solutions Without Question", "solutionsWithoutQuestion"),
        ("NAT Keyed With Letters", "natWithoutNumericAnswer"),
        ("Dropped Blocks", "droppedBlocks"),
    ]:
        values = validation.get(key, [])
        table.add_row(label, str(len(values)), status_icon(len(values)))

    console.print(table)
    console.print()

    dropped = validation.get("droppedBlocks", [])
    if dropped:
        dropped_table = Table(title="Dropped Blocks", border_style="yellow")
        dropped_table.add_column("Question", style="bold", justify="right")
        dropped_table.add_column("Reason")
        dropped_table.add_column("Detail")
        for diag in dropped:
            dropped_table.add_row(
                diag["questionId"], diag["reason"], diag["message"]
            )
        console.print(dropped_table)
        console.print()


def _display_grade_report(report):
    table = Table(title="Results", border_style="cyan")
    table.add_column("Id", style="bold", justify="right")
    table.add_column("Type", justify="center")
    table.add_column("Your Answer", justify="center")
    table.add_column("Correct", justify="center")
    table.add_column("Marks", justify="right")
    table.add_column("Status", justify="center")

    def fmt(answer):
        if answer is None:
            return "-"
        raw = answer.to_raw()
        return ", ".join(raw) if isinstance(raw, list) else str(raw)

    for r in report.results:
        if r.is_correct:
            status = "[green]✓[/]"
        elif r.is_attempted:
            status = "[red]✗[/]"
        else:
            status = "[dim]–[/]"
        table.add_row(
            r.question_id,
            r.type.value,
            fmt(r.user_answer),
            fmt(r.correct_answer),
            f"{r.marks_awarded:+.2f}/{r.marks}",
            status,
        )

    console.print()
    console.print(table)

    score = report.score
    colour = "green" if score.earned_marks >= 0 else "red"
    console.print()
    console.print(
        Panel.fit(
            f"[bold]Score:[/] [{colour}]{score.earned_marks} / {score.total_marks}[/] "
            f"({score.percentage}%)  Grade [bold]{score.grade}[/]\n"
            f"[dim]Correct {score.correct_count} | "
            f"Incorrect {score.incorrect_count} | "
            f"Not attempted {score.unattempted_count} | "
            f"Total {score.total_questions}[/]",
            border_style="cyan",
        )
    )
    console.print()


# ─── Entry point (for python -m quizparser.cli) ───────────────────────────────


if __name__ == "__main__":
    cli()
