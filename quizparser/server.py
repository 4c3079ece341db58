"""
HTTP Microservice
=================
Flask-based HTTP API for the quiz parser engine.

Lets the upload and results pages of a quiz front-end call the parser and
grader over HTTP. Nothing is persisted here; storage stays with the caller.

Endpoints:
    GET    /api/health            → Health check
    GET    /api/info              → Parser version info
    POST   /api/parse/questions   → Parse a question paper
    POST   /api/parse/answers     → Parse a solutions document
    POST   /api/parse             → Parse both into a quiz
    POST   /api/validate          → Cross-check questions and solutions
    POST   /api/grade             → Grade an attempt
    POST   /api/abandon           → Score an abandoned attempt
    POST   /api/summary           → Aggregate several attempt scores

Parse endpoints accept a JSON body ({"text": ...}) or a multipart upload.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import TypeAdapter, ValidationError

from . import __version__
from .engine import ParserConfig, QuizEngine
from .errors import NoQuestionsFound, ParseError
from .models import Question, Score, Solution
from .scoring import abandoned_score, summarize_attempts

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

_QUESTION_LIST = TypeAdapter(list[Question])
_SOLUTION_LIST = TypeAdapter(list[Solution])
_SCORE_LIST = TypeAdapter(list[Score])


class BadRequest(Exception):
    """Malformed request body."""


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault("LOG_LEVEL", "INFO")
    app.config.setdefault("MAX_CONTENT_LENGTH", 50 * 1024 * 1024)  # 50MB

    return app


def _engine() -> QuizEngine:
    return QuizEngine(ParserConfig(log_level=app.config.get("LOG_LEVEL", "INFO")))


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Expected a JSON object body")
    return data


def _text_input(engine: QuizEngine, json_key: str = "text", file_key: str = "file") -> str:
    """Read document text from a multipart upload or a JSON field."""
    if file_key in request.files:
        upload = request.files[file_key]
        if not upload.filename:
            raise BadRequest("No file selected")
        return engine.extractor.extract_bytes(upload.read(), upload.filename)

    if request.is_json:
        text = _json_body().get(json_key)
        if not isinstance(text, str):
            raise BadRequest(f"JSON body must contain a '{json_key}' string")
        return text

    raise BadRequest(f"Provide a '{file_key}' upload or JSON with '{json_key}'")


@app.errorhandler(BadRequest)
def _handle_bad_request(e):
    return jsonify({"error": str(e), "code": "bad_request"}), 400


@app.errorhandler(ValidationError)
def _handle_validation_error(e):
    return jsonify({
        "error": "Invalid request payload",
        "code": "invalid_payload",
        "details": e.errors(include_url=False, include_context=False, include_input=False),
    }), 400


@app.errorhandler(ParseError)
def _handle_parse_error(e):
    logger.info(f"Parse failed: {e.message}")
    return jsonify(e.to_dict()), 422


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "quiz-parser",
        "version": __version__,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Parser version and capability info."""
    return jsonify({
        "version": __version__,
        "engine": "PyMuPDF",
        "capabilities": [
            "question_parsing",
            "answer_parsing",
            "validation",
            "grading",
            "attempt_summary",
            "abandoned_attempts",
        ],
        "question_types": ["MCQ", "MSQ", "NAT"],
        "supported_formats": ["pdf", "docx", "txt"],
    })


# ─── Parse Endpoints ──────────────────────────────────────────────────────────


@app.route("/api/parse/questions", methods=["POST"])
def parse_questions():
    """Parse a question paper into questions plus dropped-block diagnostics."""
    engine = _engine()
    text = _text_input(engine)
    questions, diagnostics = engine.assemble_questions(text)
    if not questions:
        raise NoQuestionsFound()

    return jsonify({
        "questions": [
            q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in questions
        ],
        "diagnostics": [d.model_dump(mode="json", by_alias=True) for d in diagnostics],
    })


@app.route("/api/parse/answers", methods=["POST"])
def parse_answers():
    """Parse a solutions document."""
    engine = _engine()
    solutions = engine.parse_answers(_text_input(engine))
    return jsonify({
        "solutions": [s.model_dump(mode="json", by_alias=True) for s in solutions],
    })


@app.route("/api/parse", methods=["POST"])
def parse_quiz():
    """
    Parse a question/solution pair.

    Multipart: files "questions" and "solutions".
    JSON: {"questionText": ..., "solutionText": ..., "quizName": ...}
    """
    engine = _engine()
    if request.files:
        question_text = _text_input(engine, file_key="questions")
        solution_text = _text_input(engine, file_key="solutions")
        question_source = request.files["questions"].filename
        solution_source = request.files["solutions"].filename
        quiz_name = request.form.get("quizName", "")
    else:
        question_text = _text_input(engine, json_key="questionText")
        solution_text = _text_input(engine, json_key="solutionText")
        question_source = solution_source = ""
        quiz_name = _json_body().get("quizName", "")

    engine.config.quiz_name = quiz_name
    result = engine.parse_quiz(
        question_text,
        solution_text,
        question_source=question_source,
        solution_source=solution_source,
    )
    return jsonify(result.model_dump(mode="json", by_alias=True))


@app.route("/api/validate", methods=["POST"])
def validate():
    """Cross-check stored questions against stored solutions."""
    data = _json_body()
    questions = _QUESTION_LIST.validate_python(data.get("questions", []))
    solutions = _SOLUTION_LIST.validate_python(data.get("solutions", []))
    report = _engine().validate(questions, solutions)
    return jsonify(report.model_dump(mode="json", by_alias=True))


# ─── Grading ──────────────────────────────────────────────────────────────────


@app.route("/api/grade", methods=["POST"])
def grade():
    """
    Grade an attempt.

    JSON: {"questions": [...], "solutions": [...], "userAnswers": {id: answer}}
    """
    data = _json_body()
    questions = _QUESTION_LIST.validate_python(data.get("questions", []))
    solutions = _SOLUTION_LIST.validate_python(data.get("solutions", []))
    user_answers = data.get("userAnswers") or {}
    if not isinstance(user_answers, dict):
        raise BadRequest("'userAnswers' must be an object of id → answer")

    report = _engine().grade(questions, solutions, user_answers)
    return jsonify(report.model_dump(mode="json", by_alias=True))


@app.route("/api/abandon", methods=["POST"])
def abandon():
    """Zeroed score for a quiz left without submitting."""
    questions = _QUESTION_LIST.validate_python(_json_body().get("questions", []))
    score = abandoned_score(questions, _engine().config.scoring)
    return jsonify(score.model_dump(mode="json", by_alias=True))


@app.route("/api/summary", methods=["POST"])
def summary():
    """Aggregate a list of attempt scores."""
    scores = _SCORE_LIST.validate_python(_json_body().get("scores", []))
    return jsonify(summarize_attempts(scores).model_dump(mode="json", by_alias=True))


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the microservice server."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
