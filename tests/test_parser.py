"""
Test Suite for the Quiz Parser
==============================
Unit and integration tests for classification, block assembly, question
and answer parsing, validation and the engine.
"""

from __future__ import annotations

import json

import fitz
import pytest
from pydantic import ValidationError

from quizparser.answer_parser import (
    ANSWER_PATTERN,
    EXPLANATION_PATTERN,
    QUESTION_PATTERN,
    AnswerStateMachine,
    parse_answer_text,
)
from quizparser.classifier import ClassifierState, LineClassifier, LineTag
from quizparser.engine import ParserConfig, QuizEngine
from quizparser.errors import (
    ExtractionError,
    InsufficientOptions,
    MalformedBlock,
    NoAnswersFound,
    NoQuestionsFound,
)
from quizparser.extractor import TextExtractor
from quizparser.models import (
    BlockDiagnostic,
    DropReason,
    MultipleAnswer,
    NumericAnswer,
    NumericTextAnswer,
    Question,
    QuestionType,
    SingleAnswer,
    Solution,
    ValidationReport,
    answer_from_raw,
    user_answer_from_raw,
)
from quizparser.question_parser import extract_options, parse_question_block
from quizparser.state_machine import QuestionStateMachine
from quizparser.validator import ValidationEngine


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestion:
    """Test Question model."""

    def test_camel_case_serialization(self):
        q = Question(
            id="3",
            text="Pick one",
            options={"A": "x", "B": "y"},
            marks=2,
            passage="Once upon a time",
            has_passage=True,
        )
        data = q.model_dump(mode="json", by_alias=True)
        assert data["hasPassage"] is True
        assert data["type"] == "MCQ"
        assert data["options"] == {"A": "x", "B": "y"}

    def test_numeric_id_coerced_to_str(self):
        q = Question.model_validate({"id": 7, "text": "t"})
        assert q.id == "7"

    def test_accepts_camel_case_input(self):
        q = Question.model_validate(
            {"id": "1", "text": "t", "hasPassage": True, "passage": "p"}
        )
        assert q.has_passage

    def test_marks_must_be_positive(self):
        with pytest.raises(ValidationError):
            Question(id="1", text="t", marks=0)

    def test_question_is_frozen(self):
        q = Question(id="1", text="t")
        with pytest.raises(ValidationError):
            q.text = "changed"


class TestSolution:
    """Test Solution model and answer coercion."""

    def test_single_letter(self):
        s = Solution(id="1", answer="B")
        assert s.answer == SingleAnswer(letter="B")

    def test_multiple_letters(self):
        s = Solution(id="2", answer=["A", "C"])
        assert s.answer == MultipleAnswer(letters=["A", "C"])

    def test_numeric_value(self):
        s = Solution.model_validate({"id": 4, "answer": 0.455})
        assert s.id == "4"
        assert s.answer == NumericAnswer(value=0.455)

    def test_serializes_raw_answer(self):
        assert Solution(id="1", answer="B").model_dump(by_alias=True) == {
            "id": "1",
            "answer": "B",
            "explanation": None,
        }
        assert Solution(id="2", answer=["A", "C"]).model_dump()["answer"] == ["A", "C"]
        assert Solution(id="3", answer=1.5).model_dump()["answer"] == 1.5

    def test_tagged_dict_answer(self):
        s = Solution(id="1", answer={"kind": "numeric", "value": 2})
        assert s.answer == NumericAnswer(value=2.0)

    def test_bool_answer_rejected(self):
        with pytest.raises(ValidationError):
            Solution(id="1", answer=True)


class TestAnswerCoercion:
    """Test raw-value coercion for keyed and candidate answers."""

    def test_answer_from_raw(self):
        assert answer_from_raw(None) is None
        assert answer_from_raw("C") == SingleAnswer(letter="C")
        assert answer_from_raw(3) == NumericAnswer(value=3.0)
        assert answer_from_raw(("A", "B")) == MultipleAnswer(letters=["A", "B"])

    def test_user_answer_from_raw(self):
        assert user_answer_from_raw("") is None
        assert user_answer_from_raw("B") == SingleAnswer(letter="B")
        assert user_answer_from_raw("0.455") == NumericTextAnswer(text="0.455")
        assert user_answer_from_raw(12) == NumericTextAnswer(text="12")
        assert user_answer_from_raw(["D", "A"]) == MultipleAnswer(letters=["D", "A"])

    def test_unsupported_value(self):
        with pytest.raises(ValueError):
            user_answer_from_raw(object())


class TestValidationReport:
    """Test ValidationReport model."""

    def test_coverage_rate(self):
        report = ValidationReport(
            total_questions=4,
            questions_without_solution=["3"],
        )
        assert report.coverage_rate == 75.0

    def test_empty_report(self):
        report = ValidationReport()
        assert report.coverage_rate == 0.0
        assert report.model_dump(by_alias=True)["coverageRate"] == 0.0


# ═══════════════════════════════════════════════════════════════════════════════
# LINE CLASSIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestLineClassifier:
    """Test tag assignment and priority."""

    def setup_method(self):
        self.classifier = LineClassifier()

    def tag(self, line, state=ClassifierState.NORMAL):
        return self.classifier.classify(line, state).tag

    def test_section_header(self):
        assert self.tag("Section 2: Reasoning") == LineTag.SECTION_HEADER
        assert self.tag("SECTION 10: Maths") == LineTag.SECTION_HEADER

    def test_section_header_beats_open_question(self):
        state = ClassifierState.IN_QUESTION_BLOCK
        assert self.tag("Section 1: English", state) == LineTag.SECTION_HEADER

    def test_marks_summaries(self):
        assert (
            self.tag("(10 Questions x 2 Marks each = 20 Marks)")
            == LineTag.MARKS_SUMMARY
        )
        assert self.tag("(1 Question x 1 Mark = 1 Mark)") == LineTag.MARKS_SUMMARY
        assert self.tag("Total: 25 Questions, 40 Marks") == LineTag.MARKS_SUMMARY

    def test_passage_header_captures_start_id(self):
        for line, expected in [
            ("(Questions 11 - 15): Read the passage below", "11"),
            ("Questions 3–4) Read the following", "3"),
            ("Question 7-9 Read carefully", "7"),
        ]:
            classified = self.classifier.classify(line, ClassifierState.NORMAL)
            assert classified.tag == LineTag.PASSAGE_HEADER
            assert classified.passage_start_id == expected
            assert classified.flushes

    def test_passage_label(self):
        assert self.tag("Passage 1:") == LineTag.PASSAGE_LABEL

    def test_question_start_forms(self):
        for line, qid, remainder in [
            ("Q.16 What is this?", "16", "What is this?"),
            ("Q16. Something", "16", "Something"),
            ("Q 3 (MCQ, 2 Marks) Choose wisely", "3", "Choose wisely"),
            ("q.4 lower case", "4", "lower case"),
        ]:
            classified = self.classifier.classify(line, ClassifierState.NORMAL)
            assert classified.tag == LineTag.QUESTION_START
            assert classified.question_id == qid
            assert classified.remainder == remainder

    def test_numbered_sub_list_is_not_a_question(self):
        state = ClassifierState.IN_QUESTION_BLOCK
        assert self.tag("1. All cats are animals.", state) == LineTag.CONTINUATION
        assert self.tag("16. Something", ClassifierState.NORMAL) == LineTag.DISCARD

    def test_fallback_depends_on_state(self):
        line = "Some ordinary prose."
        assert self.tag(line, ClassifierState.NORMAL) == LineTag.DISCARD
        assert self.tag(line, ClassifierState.IN_PASSAGE) == LineTag.PASSAGE_BODY
        assert (
            self.tag(line, ClassifierState.IN_QUESTION_BLOCK)
            == LineTag.CONTINUATION
        )

    def test_state_transitions(self):
        c = self.classifier
        header = c.classify("(Questions 1 - 2): Read", ClassifierState.NORMAL)
        assert c.next_state(ClassifierState.NORMAL, header) == ClassifierState.IN_PASSAGE

        start = c.classify("Q.1 Hello", ClassifierState.IN_PASSAGE)
        assert (
            c.next_state(ClassifierState.IN_PASSAGE, start)
            == ClassifierState.IN_QUESTION_BLOCK
        )

        section = c.classify("Section 2: X", ClassifierState.IN_QUESTION_BLOCK)
        assert (
            c.next_state(ClassifierState.IN_QUESTION_BLOCK, section)
            == ClassifierState.NORMAL
        )

        label = c.classify("Passage 2:", ClassifierState.NORMAL)
        assert c.next_state(ClassifierState.NORMAL, label) == ClassifierState.IN_PASSAGE
        assert (
            c.next_state(ClassifierState.IN_QUESTION_BLOCK, label)
            == ClassifierState.IN_QUESTION_BLOCK
        )

    def test_non_flushing_tags(self):
        classified = self.classifier.classify(
            "(A) option", ClassifierState.IN_QUESTION_BLOCK
        )
        assert not classified.flushes


# ═══════════════════════════════════════════════════════════════════════════════
# QUESTION PARSER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionParser:
    """Test parsing of single question blocks."""

    def test_mcq_with_marks(self):
        lines = [
            "Q.1 (MCQ, 2 Marks) What is 2+2?",
            "(A) 3",
            "(B) 4",
            "(C) 5",
            "(D) 6",
        ]
        q = parse_question_block(lines, "1")
        assert q.id == "1"
        assert q.type == QuestionType.MCQ
        assert q.marks == 2
        assert q.text == "What is 2+2?"
        assert q.options == {"A": "3", "B": "4", "C": "5", "D": "6"}
        assert q.passage is None
        assert not q.has_passage

    @pytest.mark.parametrize("count", [2, 3, 4])
    def test_option_counts(self, count):
        letters = "ABCD"[:count]
        lines = ["Q.5 Pick one"] + [f"({letter}) option {letter}" for letter in letters]
        q = parse_question_block(lines, "5")
        assert list(q.options) == list(letters)

    def test_option_without_opening_paren(self):
        q = parse_question_block(["Q.2 Which?", "A) yes", "B) no"], "2")
        assert q.options == {"A": "yes", "B": "no"}

    def test_lowercase_option_letters_are_normalised(self):
        q = parse_question_block(["Q.2 Which?", "(a) yes", "(b) no"], "2")
        assert q.options == {"A": "yes", "B": "no"}

    def test_multiline_option_text_is_collapsed(self):
        q = parse_question_block(
            ["Q.2 Which?", "(A) first line", "continued here", "(B) two"], "2"
        )
        assert q.options["A"] == "first line continued here"

    def test_sub_list_stays_in_question_text(self):
        lines = [
            "Q.5 Consider the statements:",
            "1. All cats are animals.",
            "2. Some animals are dogs.",
            "Which follow?",
            "A) Only 1",
            "B) Only 2",
        ]
        q = parse_question_block(lines, "5")
        assert q.text == (
            "Consider the statements:\n"
            "1. All cats are animals.\n"
            "2. Some animals are dogs.\n"
            "Which follow?"
        )
        assert q.marks is None

    def test_type_annotation_stripped_quotes_kept(self):
        lines = [
            'Q.7 Who wrote "The Waste Land" (1922)? (MCQ, 1 Mark)',
            "(A) Eliot",
            "(B) Pound",
        ]
        q = parse_question_block(lines, "7")
        assert q.text == 'Who wrote "The Waste Land" (1922)?'
        assert q.marks == 1

    def test_marks_only_annotation(self):
        q = parse_question_block(["Q.1 (2 Marks) Pick", "(A) a", "(B) b"], "1")
        assert q.marks == 2

    def test_zero_marks_treated_as_absent(self):
        q = parse_question_block(["Q.1 (MCQ, 0 Marks) Pick", "(A) a", "(B) b"], "1")
        assert q.marks is None

    def test_nat_question(self):
        q = parse_question_block(
            ["Q.4 (NAT, 2 Marks) Compute 0.91 / 2 to three decimals."], "4"
        )
        assert q.type == QuestionType.NAT
        assert q.text == "Compute 0.91 / 2 to three decimals."
        assert q.options == {}
        assert q.marks == 2

    def test_nat_without_marks(self):
        q = parse_question_block(["Q.9 (NAT) How many?"], "9")
        assert q.type == QuestionType.NAT
        assert q.marks is None

    def test_nat_marker_not_after_id_is_malformed(self):
        with pytest.raises(MalformedBlock) as exc_info:
            parse_question_block(["Q.8 Compute this (NAT, 1 Mark)"], "8")
        assert exc_info.value.question_id == "8"

    def test_insufficient_options(self):
        with pytest.raises(InsufficientOptions) as exc_info:
            parse_question_block(["Q.6 Lonely question", "(A) only"], "6")
        assert exc_info.value.option_count == 1
        assert exc_info.value.code == "insufficient_options"

    def test_passage_attached_only_to_target(self):
        lines = ["Q.2 What colour?", "(A) Brown", "(B) Red"]
        q = parse_question_block(lines, "2", "The fox.\n", "2")
        assert q.has_passage
        assert q.passage == "The fox."

        q = parse_question_block(lines, "2", "The fox.\n", "3")
        assert not q.has_passage
        assert q.passage is None

    def test_blank_passage_not_attached(self):
        q = parse_question_block(["Q.2 Which?", "(A) a", "(B) b"], "2", "  \n", "2")
        assert not q.has_passage

    def test_extract_options_sorted(self):
        options = extract_options("Q.1 x\n(C) c\n(A) a\n(B) b")
        assert list(options) == ["A", "B", "C"]


# ═══════════════════════════════════════════════════════════════════════════════
# QUESTION STATE MACHINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionStateMachine:
    """Test block assembly over whole documents."""

    def test_sample_paper(self, question_paper):
        machine = QuestionStateMachine()
        questions = machine.parse(question_paper)

        assert [q.id for q in questions] == ["1", "2", "3", "4", "5"]
        assert [q.type for q in questions] == [
            QuestionType.MCQ,
            QuestionType.MCQ,
            QuestionType.MCQ,
            QuestionType.NAT,
            QuestionType.MCQ,
        ]
        assert [q.marks for q in questions] == [2, 1, 2, 2, None]

    def test_passage_attached_to_first_id_only(self, question_paper):
        questions = {q.id: q for q in QuestionStateMachine().parse(question_paper)}

        assert questions["2"].has_passage
        assert questions["2"].passage == (
            "The quick brown fox jumps over the lazy dog.\nIt was a sunny day."
        )
        assert not questions["3"].has_passage
        assert questions["3"].passage is None
        assert not questions["1"].has_passage

    def test_dropped_block_diagnostic(self, question_paper):
        machine = QuestionStateMachine()
        machine.parse(question_paper)

        assert len(machine.diagnostics) == 1
        diag = machine.diagnostics[0]
        assert diag.question_id == "6"
        assert diag.reason == DropReason.INSUFFICIENT_OPTIONS
        assert diag.option_count == 1

    def test_marks_summary_never_enters_a_block(self):
        text = (
            "Q.1 Pick\n"
            "(A) a\n"
            "(B) b\n"
            "Total: 2 Questions, 3 Marks\n"
        )
        questions = QuestionStateMachine().parse(text)
        assert questions[0].options == {"A": "a", "B": "b"}

    def test_section_header_clears_pending_passage(self):
        text = (
            "(Questions 5 - 6): Read the passage.\n"
            "A passage that should vanish.\n"
            "Section 2: Next\n"
            "Q.5 Pick\n"
            "(A) a\n"
            "(B) b\n"
        )
        questions = QuestionStateMachine().parse(text)
        assert len(questions) == 1
        assert not questions[0].has_passage

    def test_passage_header_does_not_attach_to_previous_block(self):
        text = (
            "Q.1 Pick\n"
            "(A) a\n"
            "(B) b\n"
            "(Questions 1 - 2): Read the passage.\n"
            "Passage prose.\n"
            "Q.2 Pick again\n"
            "(A) a\n"
            "(B) b\n"
        )
        questions = QuestionStateMachine().parse(text)
        assert not questions[0].has_passage
        assert not questions[1].has_passage

    def test_passage_label_inside_question_is_absorbed(self):
        text = (
            "Q.1 Pick\n"
            "Passage 1:\n"
            "(A) a\n"
            "(B) b\n"
        )
        questions = QuestionStateMachine().parse(text)
        assert questions[0].options == {"A": "a", "B": "b"}

    def test_preamble_is_discarded(self):
        text = (
            "Sample Test Paper\n"
            "Instructions: answer everything.\n"
            "Q.1 Pick\n"
            "(A) a\n"
            "(B) b\n"
        )
        questions = QuestionStateMachine().parse(text)
        assert len(questions) == 1
        assert questions[0].text == "Pick"

    def test_each_parse_starts_clean(self, question_paper):
        machine = QuestionStateMachine()
        machine.parse(question_paper)
        questions = machine.parse("Q.1 Pick\n(A) a\n(B) b")
        assert len(questions) == 1
        assert machine.diagnostics == []

    def test_empty_document(self):
        assert QuestionStateMachine().parse("") == []

    def test_crlf_lines(self):
        questions = QuestionStateMachine().parse("Q.1 Pick\r\n(A) a\r\n(B) b\r\n")
        assert questions[0].options == {"A": "a", "B": "b"}


# ═══════════════════════════════════════════════════════════════════════════════
# ANSWER PARSER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAnchorPatterns:
    """Test solutions-document anchor patterns."""

    def test_question_patterns(self):
        assert QUESTION_PATTERN.match("Q.1")
        assert QUESTION_PATTERN.match("Q12")
        assert QUESTION_PATTERN.match("q 3")
        assert not QUESTION_PATTERN.match("Question text")

    def test_answer_patterns(self):
        assert ANSWER_PATTERN.match("Answer: B").group(1) == "B"
        assert ANSWER_PATTERN.match("answer:(A), (C)")
        assert not ANSWER_PATTERN.match("Answer:")

    def test_explanation_patterns(self):
        assert EXPLANATION_PATTERN.match("Explanation: because").group(1) == "because"
        assert EXPLANATION_PATTERN.match("Explanation:").group(1) == ""


class TestParseAnswerText:
    """Test interpretation of the text after "Answer:"."""

    @pytest.mark.parametrize("text, expected", [
        ("0.455", NumericAnswer(value=0.455)),
        ("42", NumericAnswer(value=42.0)),
        ("(B)", SingleAnswer(letter="B")),
        ('(D) "What the Thunder Said"', SingleAnswer(letter="D")),
        ("(A), (C)", MultipleAnswer(letters=["A", "C"])),
        ("A, C", MultipleAnswer(letters=["A", "C"])),
        ("b", SingleAnswer(letter="B")),
        ("B some trailing text", SingleAnswer(letter="B")),
        ("(B) Explanation: because (C) is wrong", SingleAnswer(letter="B")),
    ])
    def test_recognised_forms(self, text, expected):
        assert parse_answer_text(text) == expected

    @pytest.mark.parametrize("text", ["None of these", "Because", "E", "-3", "-3.5"])
    def test_unrecognised_forms(self, text):
        assert parse_answer_text(text) is None


class TestAnswerStateMachine:
    """Test solutions-document parsing."""

    def test_sample_solutions(self, solutions_text):
        machine = AnswerStateMachine()
        solutions = machine.parse(solutions_text)

        by_id = {s.id: s for s in solutions}
        assert list(by_id) == ["1", "2", "3", "4", "5"]
        assert by_id["1"].answer == SingleAnswer(letter="B")
        assert by_id["1"].explanation == "Basic arithmetic."
        assert by_id["2"].answer == SingleAnswer(letter="A")
        assert by_id["2"].explanation is None
        assert by_id["3"].answer == MultipleAnswer(letters=["A", "B"])
        assert by_id["4"].answer == NumericAnswer(value=0.455)
        assert machine.skipped_ids == ["9"]

    def test_multiline_explanation(self, solutions_text):
        solutions = {s.id: s for s in AnswerStateMachine().parse(solutions_text)}
        assert solutions["3"].explanation == (
            "Both the fox and the dog\nare mentioned in the passage."
        )

    def test_inline_answer_and_explanation(self, solutions_text):
        solutions = {s.id: s for s in AnswerStateMachine().parse(solutions_text)}
        assert solutions["5"].answer == SingleAnswer(letter="C")
        # Inline explanations do not start accumulation
        assert solutions["5"].explanation is None

    def test_answer_and_explanation_single_solution(self):
        solutions = AnswerStateMachine().parse(
            "Q.1\nAnswer: (B)\nExplanation: Because 2+2=4."
        )
        assert len(solutions) == 1
        assert solutions[0].answer == SingleAnswer(letter="B")
        assert solutions[0].explanation == "Because 2+2=4."

    def test_explanation_starting_on_next_line(self):
        solutions = AnswerStateMachine().parse(
            "Q.1\nAnswer: A\nExplanation:\nLine one\nLine two"
        )
        assert solutions[0].explanation == "Line one\nLine two"

    def test_lines_before_first_question_ignored(self):
        solutions = AnswerStateMachine().parse(
            "Answer Key\nAnswer: D\nQ.1\nAnswer: A"
        )
        assert len(solutions) == 1
        assert solutions[0].answer == SingleAnswer(letter="A")

    def test_unrecognised_answer_skips_question(self):
        machine = AnswerStateMachine()
        solutions = machine.parse("Q.1\nAnswer: see below\nQ.2\nAnswer: C")
        assert [s.id for s in solutions] == ["2"]
        assert machine.skipped_ids == ["1"]

    def test_signed_numeric_answer_is_skipped(self):
        machine = AnswerStateMachine()
        solutions = machine.parse("Q.1\nAnswer: -3\nQ.2\nAnswer: 3")
        assert [s.id for s in solutions] == ["2"]
        assert solutions[0].answer == NumericAnswer(value=3.0)
        assert machine.skipped_ids == ["1"]

    def test_duplicate_ids_are_kept(self):
        solutions = AnswerStateMachine().parse("Q.1\nAnswer: A\nQ.1\nAnswer: B")
        assert [s.answer.letter for s in solutions] == ["A", "B"]


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidationEngine:
    """Test the post-parse consistency report."""

    def _q(self, qid, qtype=QuestionType.MCQ):
        options = {} if qtype == QuestionType.NAT else {"A": "a", "B": "b"}
        return Question(id=qid, text=f"Question {qid}", type=qtype, options=options)

    def test_empty_questions(self):
        report = ValidationEngine().validate([])
        assert report.total_questions == 0
        assert report.coverage_rate == 0.0

    def test_perfect_parse(self, question_paper, solutions_text):
        machine = QuestionStateMachine()
        questions = machine.parse(question_paper)
        solutions = AnswerStateMachine().parse(solutions_text)

        report = ValidationEngine().validate(
            questions, solutions, machine.diagnostics
        )
        assert report.total_questions == 5
        assert report.total_solutions == 5
        assert report.questions_without_solution == []
        assert report.solutions_without_question == []
        assert report.missing_question_numbers == []
        assert report.nat_without_numeric_answer == []
        assert report.coverage_rate == 100.0
        assert [d.question_id for d in report.dropped_blocks] == ["6"]

    def test_gap_detection(self):
        questions = [self._q("1"), self._q("2"), self._q("5")]
        report = ValidationEngine().validate(questions)
        assert report.missing_question_numbers == [3, 4]

    def test_duplicate_detection(self):
        questions = [self._q("1"), self._q("2"), self._q("2")]
        solutions = [
            Solution(id="1", answer="A"),
            Solution(id="1", answer="B"),
        ]
        report = ValidationEngine().validate(questions, solutions)
        assert report.duplicate_question_ids == ["2"]
        assert report.duplicate_solution_ids == ["1"]

    def test_unmatched_ids(self):
        questions = [self._q("1"), self._q("2")]
        solutions = [Solution(id="1", answer="A"), Solution(id="9", answer="C")]
        report = ValidationEngine().validate(questions, solutions)
        assert report.questions_without_solution == ["2"]
        assert report.solutions_without_question == ["9"]
        assert report.coverage_rate == 50.0

    def test_nat_keyed_with_letter(self):
        questions = [self._q("1", QuestionType.NAT), self._q("2", QuestionType.NAT)]
        solutions = [Solution(id="1", answer="B"), Solution(id="2", answer=3.5)]
        report = ValidationEngine().validate(questions, solutions)
        assert report.nat_without_numeric_answer == ["1"]

    def test_diagnostics_pass_through(self):
        diag = BlockDiagnostic(
            question_id="4",
            reason=DropReason.MALFORMED_BLOCK,
            message="Question 4 could not be parsed",
        )
        report = ValidationEngine().validate([self._q("1")], [], [diag])
        assert report.dropped_blocks == [diag]
        dumped = report.model_dump(mode="json", by_alias=True)
        assert dumped["droppedBlocks"][0]["reason"] == "malformed_block"


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuizEngine:
    """Test the orchestrating engine."""

    def setup_method(self):
        self.engine = QuizEngine(ParserConfig(log_level="WARNING"))

    def test_parse_questions_raises_when_empty(self):
        with pytest.raises(NoQuestionsFound) as exc_info:
            self.engine.parse_questions("Just a cover page\nwith no questions")
        assert exc_info.value.to_dict() == {
            "error": "No questions found in the uploaded file. Please check the format.",
            "code": "no_questions_found",
        }

    def test_only_dropped_blocks_counts_as_empty(self):
        with pytest.raises(NoQuestionsFound):
            self.engine.parse_questions("Q.1 Lonely\n(A) only")

    def test_parse_answers_raises_when_empty(self):
        with pytest.raises(NoAnswersFound) as exc_info:
            self.engine.parse_answers("Q.1\nExplanation: nothing keyed")
        assert exc_info.value.code == "no_answers_found"

    def test_parse_quiz(self, question_paper, solutions_text):
        self.engine.config.quiz_name = "Mock Test 1"
        result = self.engine.parse_quiz(
            question_paper, solutions_text, question_source="paper.txt"
        )
        assert result.quiz.name == "Mock Test 1"
        assert result.quiz.question_source == "paper.txt"
        assert len(result.quiz.question_hash) == 64
        assert result.parse_version.question_count == 5
        assert result.parse_version.solution_count == 5
        assert result.validation.coverage_rate == 100.0

    def test_quiz_name_defaults_to_source_stem(self, question_paper, solutions_text):
        result = self.engine.parse_quiz(
            question_paper, solutions_text, question_source="gate_2024.pdf"
        )
        assert result.quiz.name == "gate_2024"

    def test_parse_files_and_save(self, tmp_path, question_paper, solutions_text):
        paper = tmp_path / "paper.txt"
        key = tmp_path / "key.txt"
        paper.write_text(question_paper, encoding="utf-8")
        key.write_text(solutions_text, encoding="utf-8")

        engine = QuizEngine(ParserConfig(
            output_dir=str(tmp_path / "out"),
            save_output=True,
            quiz_name="Mock Test 1",
            log_level="WARNING",
        ))
        engine.parse_files(str(paper), str(key))

        out = tmp_path / "out"
        questions = json.loads((out / "Mock_Test_1_questions.json").read_text())
        solutions = json.loads((out / "Mock_Test_1_solutions.json").read_text())
        validation = json.loads((out / "Mock_Test_1_validation.json").read_text())

        assert questions[0] == {
            "id": "1",
            "text": "What is 2+2?",
            "type": "MCQ",
            "options": {"A": "3", "B": "4", "C": "5", "D": "6"},
            "marks": 2,
            "hasPassage": False,
        }
        assert solutions[3] == {"id": "4", "answer": 0.455, "explanation": None}
        assert validation["totalQuestions"] == 5

    def test_load_round_trip_from_json(self, tmp_path, question_paper, solutions_text):
        result = self.engine.parse_quiz(question_paper, solutions_text)
        dumped = tmp_path / "quiz.json"
        dumped.write_text(
            json.dumps(result.model_dump(mode="json", by_alias=True)),
            encoding="utf-8",
        )

        assert self.engine.load_questions(str(dumped)) == result.questions
        assert self.engine.load_solutions(str(dumped)) == result.solutions

    def test_grade_uses_config_policy(self):
        questions = [Question(id="1", text="t", options={"A": "a", "B": "b"}, marks=3)]
        solutions = [Solution(id="1", answer="A")]
        report = self.engine.grade(questions, solutions, {"1": "B"})
        assert report.results[0].marks_awarded == -1.0


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRACTOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTextExtractor:
    """Test document ingestion."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TextExtractor().extract(str(tmp_path / "nope.pdf"))

    def test_unsupported_type(self, tmp_path):
        doc = tmp_path / "paper.odt"
        doc.write_bytes(b"PK")
        with pytest.raises(ExtractionError):
            TextExtractor().extract(str(doc))

    def test_plain_text_line_endings(self, tmp_path):
        doc = tmp_path / "paper.txt"
        doc.write_bytes("\ufeffQ.1 Pick\r\n(A) a\r\n(B) b".encode("utf-8"))
        assert TextExtractor().extract(str(doc)) == "Q.1 Pick\n(A) a\n(B) b"

    def test_invalid_utf8(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract_bytes(b"\xff\xfe\xfa", "paper.txt")

    def test_corrupt_pdf_bytes(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract_bytes(b"not a pdf at all", "paper.pdf")

    def test_docx_paragraphs(self, tmp_path, make_docx):
        path = tmp_path / "paper.docx"
        path.write_bytes(make_docx(["Q.1 (MCQ, 2 Marks) Pick", "(A) a", "(B) b"]))

        text = TextExtractor().extract(str(path))
        assert [line for line in text.splitlines() if line.strip()] == [
            "Q.1 (MCQ, 2 Marks) Pick",
            "(A) a",
            "(B) b",
        ]

        questions = QuestionStateMachine().parse(text)
        assert questions[0].marks == 2
        assert questions[0].options == {"A": "a", "B": "b"}

    def test_docx_upload_bytes(self, make_docx):
        text = TextExtractor().extract_bytes(
            make_docx(["Q.1", "Answer: (C)"]), "key.DOCX"
        )
        solutions = AnswerStateMachine().parse(text)
        assert solutions[0].answer == SingleAnswer(letter="C")

    def test_corrupt_docx_bytes(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract_bytes(b"not a zip archive", "paper.docx")

    def test_pdf_lines_rebuilt(self, tmp_path):
        path = tmp_path / "paper.pdf"
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), "Q.1 (MCQ, 2 Marks) What is 2+2?")
        page.insert_text((72, 100), "(A) 3")
        page.insert_text((72, 128), "(B) 4")
        doc.save(str(path))
        doc.close()

        extractor = TextExtractor()
        text = extractor.extract(str(path))
        assert text.splitlines()[:3] == [
            "Q.1 (MCQ, 2 Marks) What is 2+2?",
            "(A) 3",
            "(B) 4",
        ]

        questions = QuestionStateMachine().parse(text)
        assert questions[0].options == {"A": "3", "B": "4"}
