"""Shared sample documents for the test suite."""

from __future__ import annotations

import io
import zipfile
from xml.sax.saxutils import escape

import pytest

QUESTION_PAPER = """\
Section 1: Verbal Ability
(5 Questions x 2 Marks each = 10 Marks)
Q.1 (MCQ, 2 Marks) What is 2+2?
(A) 3
(B) 4
(C) 5
(D) 6
(Questions 2 - 3): Read the following passage and answer.
The quick brown fox jumps over the lazy dog.
It was a sunny day.
Q.2 (MCQ, 1 Mark) What colour is the fox?
(A) Brown
(B) Red
Q.3 (MSQ, 2 Marks) Which animals appear?
(A) Fox
(B) Dog
(C) Cat
(D) Cow

Section 2: Quantitative
Total: 2 Questions, 3 Marks
Q.4 (NAT, 2 Marks) Compute 0.91 / 2 to three decimals.
Q.5 Consider the statements:
1. All cats are animals.
2. Some animals are dogs.
Which follow?
A) Only 1
B) Only 2
C) Both
D) Neither
Q.6 A question with only one option
(A) Lonely
"""

SOLUTIONS = """\
Q.1
Answer: (B)
Explanation: Basic arithmetic.
Q.2
Answer: A
Q.3
Answer: (A), (B)
Explanation: Both the fox and the dog
are mentioned in the passage.

Q.4
Answer: 0.455
Q.5 Answer: C Explanation: Both statements hold.
Q.9
Explanation: no answer given
"""


@pytest.fixture
def question_paper() -> str:
    return QUESTION_PAPER


@pytest.fixture
def solutions_text() -> str:
    return SOLUTIONS


_DOCX_CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" '
    'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" ContentType="application/'
    'vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
)

_DOCX_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" Type="http://schemas.openxmlformats.org/'
    'officeDocument/2006/relationships/officeDocument" Target="word/document.xml"/>'
    "</Relationships>"
)


@pytest.fixture
def make_docx():
    """Build a minimal .docx (one paragraph per line) and return its bytes."""

    def build(lines: list[str]) -> bytes:
        paragraphs = "".join(
            f"<w:p><w:r><w:t xml:space=\"preserve\">{escape(line)}</w:t></w:r></w:p>"
            for line in lines
        )
        document = (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            '<w:document xmlns:w="http://schemas.openxmlformats.org/'
            'wordprocessingml/2006/main">'
            f"<w:body>{paragraphs}</w:body></w:document>"
        )
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("[Content_Types].xml", _DOCX_CONTENT_TYPES)
            archive.writestr("_rels/.rels", _DOCX_RELS)
            archive.writestr("word/document.xml", document)
        return buffer.getvalue()

    return build
