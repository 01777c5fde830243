"""Utilities for loading a quiz bank from a human-friendly text file.

File format (blocks separated by blank lines or '---'):

    CATEGORY: Physics

    Q: Question text. Additional lines until the next marker are treated
       as part of the question.
    A: First option text
    B: Second option text
    C: Third option text
    ANSWER: B

A ``CATEGORY:`` line applies to every following question until the next
``CATEGORY:`` line, and may share a block with a question. Options use the
letters A-Z in order; a question needs at least two of them. ``ANSWER`` names
the letter of the correct option.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from string import ascii_uppercase

from crosspoint.core.models import QuizQuestion
from crosspoint.core.quiz_bank import QuizBank


class QuizImportError(Exception):
    """Raised when a quiz bank definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuizBank:
    """Container for the parsed bank and where it came from."""

    source_path: Path
    bank: QuizBank


def load_quiz_bank_from_file(file_path: Path) -> ImportedQuizBank:
    text = file_path.read_text(encoding="utf-8")
    quizzes = parse_quiz_bank_text(text)
    if not quizzes:
        raise QuizImportError("Quiz bank file did not contain any questions.")
    try:
        bank = QuizBank(quizzes)
    except ValueError as exc:
        raise QuizImportError(str(exc)) from exc
    return ImportedQuizBank(source_path=file_path, bank=bank)


def parse_quiz_bank_text(text: str) -> dict[str, list[QuizQuestion]]:
    quizzes: dict[str, list[QuizQuestion]] = {}
    category: str | None = None
    for block in _split_blocks(text):
        lines = block.splitlines()
        if lines and lines[0].strip().upper().startswith("CATEGORY:"):
            category = lines[0].split(":", 1)[1].strip()
            if not category:
                raise QuizImportError("CATEGORY must include a name.")
            lines = lines[1:]
        if not any(line.strip() for line in lines):
            continue
        if category is None:
            raise QuizImportError("Question found before any CATEGORY line.")
        quizzes.setdefault(category, []).append(_parse_block(lines))
    return quizzes


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block))
    return blocks


def _parse_block(lines: list[str]) -> QuizQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    answer_letter: str | None = None
    current_section: str | None = None

    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("ANSWER:"):
            answer_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("CATEGORY:"):
            raise QuizImportError("CATEGORY must start its own block.")

        if len(line) > 2 and line[0].upper() in ascii_uppercase and line[1] == ":":
            letter = line[0].upper()
            if letter in options:
                raise QuizImportError(f"Option {letter} is defined twice.")
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    expected_letters = list(ascii_uppercase[: len(options)])
    if sorted(options) != expected_letters:
        raise QuizImportError("Options must use consecutive letters starting at A.")
    if len(options) < 2:
        raise QuizImportError("Each question must define at least two options.")

    option_list = [options[letter].strip() for letter in expected_letters]
    if any(not opt for opt in option_list):
        raise QuizImportError("Option text cannot be empty.")
    if len(set(option_list)) != len(option_list):
        raise QuizImportError(f"Duplicate option text in question: '{question_text}'.")

    if answer_letter is None:
        raise QuizImportError(f"ANSWER missing for question: '{question_text}'.")
    if answer_letter not in options:
        raise QuizImportError(f"ANSWER must be one of {', '.join(expected_letters)}.")

    return QuizQuestion(
        question=question_text,
        options=tuple(option_list),
        answer=options[answer_letter].strip(),
    )
