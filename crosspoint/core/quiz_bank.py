"""Read-only lookup table of expert quizzes keyed by category."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from crosspoint.constants.quiz_constants import GENERAL_CATEGORY
from crosspoint.core.errors import UnknownCategoryError
from crosspoint.core.models import QuizQuestion


class QuizBank:
    """Immutable mapping of category name to its ordered quiz questions."""

    def __init__(self, quizzes: Mapping[str, Sequence[QuizQuestion]]) -> None:
        cleaned: dict[str, tuple[QuizQuestion, ...]] = {}
        for category, questions in quizzes.items():
            name = category.strip()
            if not name:
                raise ValueError("Quiz category name must not be empty.")
            if name == GENERAL_CATEGORY:
                raise ValueError(f"{GENERAL_CATEGORY!r} is reserved and cannot have a quiz.")
            if not questions:
                raise ValueError(f"Quiz for {name!r} must contain at least one question.")
            cleaned[name] = tuple(questions)
        if not cleaned:
            raise ValueError("Quiz bank must contain at least one category.")
        self._quizzes = MappingProxyType(cleaned)

    def categories(self) -> list[str]:
        return list(self._quizzes)

    def postable_categories(self) -> list[str]:
        """Categories a question may be tagged with."""
        return [*self._quizzes, GENERAL_CATEGORY]

    def questions_for(self, category: str) -> tuple[QuizQuestion, ...]:
        try:
            return self._quizzes[category]
        except KeyError:
            raise UnknownCategoryError(category) from None

    def as_mapping(self) -> Mapping[str, tuple[QuizQuestion, ...]]:
        return self._quizzes

    def __len__(self) -> int:
        return len(self._quizzes)

    def __contains__(self, category: object) -> bool:
        return category in self._quizzes


def _q(question: str, options: Iterable[str], answer: str) -> QuizQuestion:
    return QuizQuestion(question=question, options=tuple(options), answer=answer)


DEFAULT_QUIZ_BANK = QuizBank(
    {
        "Physics": [
            _q(
                "What principle states that the total momentum of a closed system remains constant?",
                [
                    "Huygens' Principle",
                    "Principle of Conservation of Momentum",
                    "Archimedes' Principle",
                    "Bernoulli's Principle",
                ],
                "Principle of Conservation of Momentum",
            ),
            _q(
                "What is the SI unit of electric current?",
                ["Volt", "Ohm", "Ampere", "Watt"],
                "Ampere",
            ),
            _q(
                "Which phenomenon is responsible for the apparent bending of a spoon in a glass of water?",
                ["Diffraction", "Refraction", "Polarization", "Interference"],
                "Refraction",
            ),
        ],
        "Web Development": [
            _q(
                "Which CSS property is used to create space around elements, outside of any defined borders?",
                ["padding", "margin", "border-width", "inset"],
                "margin",
            ),
            _q(
                "In React, what is used to handle data that changes over time within a component?",
                ["props", "state", "context", "refs"],
                "state",
            ),
        ],
        "Financial Modeling": [
            _q(
                "What does NPV stand for in financial modeling?",
                [
                    "Net Profit Variance",
                    "Nominal Price Value",
                    "Net Present Value",
                    "New Project Valuation",
                ],
                "Net Present Value",
            ),
        ],
    }
)
