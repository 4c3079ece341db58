"""
Module entry point for: python -m quizparser

Allows running the parser directly as a module:
    python -m quizparser questions <file> [options]
    python -m quizparser grade <questions> <solutions> <answers.json>
    python -m quizparser serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
