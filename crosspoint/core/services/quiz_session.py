"""State machine for one run through a category's expert quiz."""

from __future__ import annotations

import logging
from enum import Enum
from threading import Lock
from typing import Callable, Sequence

from crosspoint.constants.quiz_constants import REVEAL_DELAY_SECONDS
from crosspoint.core.models import QuizQuestion, QuizResult
from crosspoint.core.services.scheduler import ScheduledAction, Scheduler

logger = logging.getLogger(__name__)


class QuizPhase(Enum):
    """Observable phases of a quiz session.

    ``ADVANCING`` covers the reveal window: the current question's answer is
    shown and input is disabled until the scheduled advance fires.
    """

    ANSWERING = "answering"
    ADVANCING = "advancing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_TERMINAL_PHASES = frozenset({QuizPhase.COMPLETED, QuizPhase.CANCELLED})


class QuizSession:
    """Runs a category's questions in order and reports the final score.

    A session is single-use: once completed or cancelled it ignores further
    input, and retaking a quiz means creating a new session.
    """

    def __init__(
        self,
        category: str,
        questions: Sequence[QuizQuestion],
        scheduler: Scheduler,
        reveal_delay: float = REVEAL_DELAY_SECONDS,
        on_complete: Callable[[QuizResult], None] | None = None,
    ) -> None:
        if not questions:
            raise ValueError(f"Quiz for {category!r} has no questions.")
        if reveal_delay < 0:
            raise ValueError("Reveal delay must not be negative.")
        self._lock = Lock()
        self._category = category
        self._questions: tuple[QuizQuestion, ...] = tuple(questions)
        self._scheduler = scheduler
        self._reveal_delay = reveal_delay
        self._on_complete = on_complete

        self._phase = QuizPhase.ANSWERING
        self._index = 0
        self._score = 0
        self._selection: str | None = None
        self._last_answer_correct: bool | None = None
        self._pending: ScheduledAction | None = None
        self._result: QuizResult | None = None

    @property
    def category(self) -> str:
        return self._category

    @property
    def total(self) -> int:
        return len(self._questions)

    @property
    def phase(self) -> QuizPhase:
        with self._lock:
            return self._phase

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    @property
    def score(self) -> int:
        """Correct answers among questions already resolved."""
        with self._lock:
            return self._score

    @property
    def selection(self) -> str | None:
        with self._lock:
            return self._selection

    @property
    def revealed(self) -> bool:
        with self._lock:
            return self._phase is QuizPhase.ADVANCING

    @property
    def result(self) -> QuizResult | None:
        with self._lock:
            return self._result

    def is_finished(self) -> bool:
        with self._lock:
            return self._phase in _TERMINAL_PHASES

    def current_question(self) -> QuizQuestion | None:
        with self._lock:
            if self._phase in _TERMINAL_PHASES:
                return None
            return self._questions[self._index]

    def select_option(self, option: str) -> bool:
        """Record the chosen option; returns False once the question is no longer open."""
        with self._lock:
            if self._phase is not QuizPhase.ANSWERING:
                return False
            if option not in self._questions[self._index].options:
                raise ValueError(f"{option!r} is not an option for this question.")
            self._selection = option
            return True

    def submit(self) -> bool:
        """Score the current selection and schedule the advance. Returns correctness."""
        with self._lock:
            if self._phase is not QuizPhase.ANSWERING:
                raise RuntimeError("This question has already been answered.")
            if self._selection is None:
                raise RuntimeError("Select an option before submitting.")
            question = self._questions[self._index]
            is_correct = self._selection == question.answer
            self._last_answer_correct = is_correct
            self._phase = QuizPhase.ADVANCING
            score_after = self._score + (1 if is_correct else 0)
            index = self._index
            self._pending = self._scheduler.schedule(
                self._reveal_delay,
                lambda: self._advance(index, score_after),
            )
        logger.debug(
            "Quiz %s question %d answered (%s)",
            self._category,
            index + 1,
            "correct" if is_correct else "incorrect",
        )
        return is_correct

    def cancel(self) -> bool:
        """Discard all progress; returns False if the session had already ended."""
        with self._lock:
            if self._phase in _TERMINAL_PHASES:
                return False
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            self._phase = QuizPhase.CANCELLED
            self._selection = None
        logger.info("Quiz %s cancelled", self._category)
        return True

    def _advance(self, index: int, score_after: int) -> None:
        with self._lock:
            if self._phase is not QuizPhase.ADVANCING or self._index != index:
                return
            self._pending = None
            if index == len(self._questions) - 1:
                self._score = score_after
                self._phase = QuizPhase.COMPLETED
                self._result = QuizResult(
                    category=self._category,
                    final_score=score_after,
                    total=len(self._questions),
                )
                result = self._result
            else:
                self._index = index + 1
                self._score = score_after
                self._selection = None
                self._last_answer_correct = None
                self._phase = QuizPhase.ANSWERING
                return
        logger.info(
            "Quiz %s completed with %d/%d", result.category, result.final_score, result.total
        )
        if self._on_complete is not None:
            self._on_complete(result)

    def to_dict(self) -> dict[str, object]:
        with self._lock:
            finished = self._phase in _TERMINAL_PHASES
            question = None if finished else self._questions[self._index]
            revealed = self._phase is QuizPhase.ADVANCING
            return {
                "category": self._category,
                "phase": self._phase.value,
                "index": self._index,
                "total": len(self._questions),
                "score": self._score,
                "question": question.question if question else None,
                "options": list(question.options) if question else [],
                "selection": self._selection,
                "revealed": revealed,
                "correct_answer": question.answer if question and revealed else None,
                "last_answer_correct": self._last_answer_correct if revealed else None,
                "is_last_question": self._index == len(self._questions) - 1,
            }
