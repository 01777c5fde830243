"""Tests for loading a quiz bank from a text file."""

import textwrap

import pytest

from crosspoint.core.quiz_importer import (
    QuizImportError,
    load_quiz_bank_from_file,
    parse_quiz_bank_text,
)

VALID_BANK = textwrap.dedent(
    """\
    CATEGORY: Chemistry
    Q: Which element has the symbol Na?
    A: Nitrogen
    B: Sodium
    C: Neon
    ANSWER: B

    Q: Water boils at sea level at
       which temperature in Celsius?
    A: 90
    B: 100
    ANSWER: b

    ---
    CATEGORY: Astronomy

    Q: Closest star to Earth?
    A: The Sun
    B: Proxima Centauri
    ANSWER: A
    """
)


def test_parse_groups_questions_by_category():
    quizzes = parse_quiz_bank_text(VALID_BANK)
    assert list(quizzes) == ["Chemistry", "Astronomy"]
    assert [q.answer for q in quizzes["Chemistry"]] == ["Sodium", "100"]
    assert quizzes["Chemistry"][1].question == "Water boils at sea level at\nwhich temperature in Celsius?"


def test_load_from_file(tmp_path):
    path = tmp_path / "bank.txt"
    path.write_text(VALID_BANK, encoding="utf-8")
    imported = load_quiz_bank_from_file(path)
    assert imported.source_path == path
    assert imported.bank.categories() == ["Chemistry", "Astronomy"]
    assert imported.bank.postable_categories()[-1] == "General"


def test_empty_file_rejected(tmp_path):
    path = tmp_path / "bank.txt"
    path.write_text("\n\n", encoding="utf-8")
    with pytest.raises(QuizImportError):
        load_quiz_bank_from_file(path)


def test_general_category_rejected(tmp_path):
    path = tmp_path / "bank.txt"
    path.write_text("CATEGORY: General\nQ: Hi?\nA: yes\nB: no\nANSWER: A\n", encoding="utf-8")
    with pytest.raises(QuizImportError):
        load_quiz_bank_from_file(path)


@pytest.mark.parametrize(
    "text",
    [
        "Q: No category?\nA: x\nB: y\nANSWER: A",
        "CATEGORY:\nQ: Blank category?\nA: x\nB: y\nANSWER: A",
        "CATEGORY: C\nQ: One option?\nA: x\nANSWER: A",
        "CATEGORY: C\nQ: Gap?\nA: x\nC: y\nANSWER: A",
        "CATEGORY: C\nQ: Duplicate?\nA: x\nB: x\nANSWER: A",
        "CATEGORY: C\nQ: No answer?\nA: x\nB: y",
        "CATEGORY: C\nQ: Bad answer?\nA: x\nB: y\nANSWER: D",
        "CATEGORY: C\nA: x\nB: y\nANSWER: A",
        "CATEGORY: C\nstray text\nQ: Stray?\nA: x\nB: y\nANSWER: A",
    ],
)
def test_malformed_blocks_rejected(text):
    with pytest.raises(QuizImportError):
        parse_quiz_bank_text(text)
