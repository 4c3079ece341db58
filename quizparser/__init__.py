"""
Quiz Parser Engine
==================
Turns exam-paper text into typed quiz entities and grades attempts
against them under negative marking.

Architecture:
    - Line Classifier: Tags each line of a question paper
    - Block Assembler: Groups tagged lines into per-question blocks
    - Question Parser: Builds MCQ / NAT questions from blocks
    - Answer Parser: Recovers answers and explanations from solutions
    - Scoring Engine: Grades user answers with one-third negative marking

Version: 1.0.0
"""

__version__ = "1.0.0"
