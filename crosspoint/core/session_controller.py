"""Top-level state of one user's Crosspoint session."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from enum import Enum
from functools import partial
from threading import RLock
from typing import Callable

from crosspoint.constants.quiz_constants import REVEAL_DELAY_SECONDS
from crosspoint.constants.ui_constants import (
    FEED_LOAD_FAILED_MESSAGE,
    POST_FAILED_MESSAGE,
    VERIFICATION_LOAD_FAILED_MESSAGE,
)
from crosspoint.core.errors import (
    FatalStateError,
    IdentityError,
    NotAuthenticatedError,
    QuestionWriteError,
    SubscriptionError,
    VerificationWriteError,
)
from crosspoint.core.models import Identity, Question, QuizOutcome, QuizResult, VerificationRecord
from crosspoint.core.quiz_bank import QuizBank
from crosspoint.core.services.identity import IdentityService
from crosspoint.core.services.question_feed import QuestionFeed
from crosspoint.core.services.quiz_session import QuizSession
from crosspoint.core.services.scheduler import Scheduler
from crosspoint.core.services.verification_ledger import VerificationLedger, is_passing

logger = logging.getLogger(__name__)

_BANNER_MESSAGES = {
    "feed": FEED_LOAD_FAILED_MESSAGE,
    "verification": VERIFICATION_LOAD_FAILED_MESSAGE,
}


class View(str, Enum):
    FEED = "feed"
    POST = "post"
    QUIZ = "quiz"


class Screen(str, Enum):
    """What the UI should render, in precedence order."""

    LOADING = "loading"
    ERROR = "error"
    FEED = "feed"
    POST = "post"
    QUIZ = "quiz"


class SessionController:
    """Facade over identity, the two live feeds and quiz sessions.

    The controller owns its subscriptions: they are acquired when a user
    signs in and released on sign-out or ``close``. State is guarded by a
    re-entrant lock that is never held while calling the document store.
    """

    def __init__(
        self,
        identity_service: IdentityService,
        feed: QuestionFeed,
        ledger: VerificationLedger,
        quiz_bank: QuizBank,
        scheduler: Scheduler,
        reveal_delay: float = REVEAL_DELAY_SECONDS,
    ) -> None:
        self._lock = RLock()
        self._identity_service = identity_service
        self._feed = feed
        self._ledger = ledger
        self._quiz_bank = quiz_bank
        self._scheduler = scheduler
        self._reveal_delay = reveal_delay

        self._started = False
        self._closed = False
        self._loading = True
        self._fatal_error: str | None = None
        self._identity: Identity | None = None
        self._view = View.FEED
        self._banners: dict[str, str] = {}

        self._questions: list[Question] = []
        self._verification: VerificationRecord | None = None

        self._quiz: QuizSession | None = None
        self._active_category: str | None = None
        self._last_outcome: QuizOutcome | None = None
        self._posting = False

        self._subscriptions: ExitStack | None = None
        self._generation = 0
        self._auth_unsubscribe: Callable[[], None] | None = None

    # --- Lifecycle ---

    def start(self, origin: str | None = None) -> None:
        """Sign in and begin watching auth changes; identity errors become fatal."""
        with self._lock:
            if self._started or self._closed:
                return
            self._started = True
        try:
            self._identity_service.sign_in(origin=origin)
        except IdentityError as exc:
            self.report_fatal(str(exc))
            return
        unsubscribe = self._identity_service.watch(self._handle_identity_change)
        with self._lock:
            if self._closed:
                stale = unsubscribe
            else:
                self._auth_unsubscribe = unsubscribe
                stale = None
        if stale is not None:
            stale()

    def sign_out(self) -> None:
        with self._lock:
            self._ensure_usable()
        self._identity_service.sign_out()

    def close(self) -> None:
        """Release subscriptions and cancel any quiz; safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            subscriptions, self._subscriptions = self._subscriptions, None
            quiz, self._quiz = self._quiz, None
            auth_unsubscribe, self._auth_unsubscribe = self._auth_unsubscribe, None
        if quiz is not None:
            quiz.cancel()
        if auth_unsubscribe is not None:
            auth_unsubscribe()
        if subscriptions is not None:
            subscriptions.close()
        logger.debug("Session closed")

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def report_fatal(self, message: str) -> None:
        """Replace the whole UI with ``message`` for the rest of the session."""
        logger.error("Fatal session error: %s", message)
        with self._lock:
            if self._fatal_error is None:
                self._fatal_error = message
            self._loading = False
            quiz, self._quiz = self._quiz, None
            self._active_category = None
        if quiz is not None:
            quiz.cancel()

    # --- Identity and subscriptions ---

    def _handle_identity_change(self, identity: Identity | None) -> None:
        with self._lock:
            if self._closed:
                return
            previous = self._identity
            self._identity = identity
            self._loading = False
            if (
                identity is not None
                and previous is not None
                and identity.user_id == previous.user_id
                and self._subscriptions is not None
            ):
                return
            self._generation += 1
            generation = self._generation
            stale, self._subscriptions = self._subscriptions, None
            quiz = None
            if identity is None or (previous is not None and previous.user_id != identity.user_id):
                quiz, self._quiz = self._quiz, None
                self._active_category = None
                self._questions = []
                self._verification = None
        if quiz is not None:
            quiz.cancel()
        if stale is not None:
            stale.close()
        if identity is None:
            logger.info("Signed out; subscriptions released")
            return
        logger.info("Signed in as %s", identity.display_name)
        self._acquire_subscriptions(identity, generation)

    def _acquire_subscriptions(self, identity: Identity, generation: int) -> None:
        with ExitStack() as stack:
            try:
                stack.callback(
                    self._feed.watch(
                        partial(self._on_questions, generation),
                        partial(self._on_subscription_error, generation),
                    )
                )
            except SubscriptionError as exc:
                self._on_subscription_error(generation, exc)
            try:
                stack.callback(
                    self._ledger.watch(
                        identity.user_id,
                        partial(self._on_verification, generation),
                        partial(self._on_subscription_error, generation),
                    )
                )
            except SubscriptionError as exc:
                self._on_subscription_error(generation, exc)
            with self._lock:
                if self._closed or generation != self._generation:
                    return
                self._subscriptions = stack.pop_all()

    def _on_questions(self, generation: int, questions: list[Question]) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._questions = list(questions)

    def _on_verification(self, generation: int, record: VerificationRecord) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._verification = record

    def _on_subscription_error(self, generation: int, exc: SubscriptionError) -> None:
        logger.error("Subscription error (%s): %s", exc.area, exc)
        with self._lock:
            if generation != self._generation:
                return
            self._banners[exc.area] = _BANNER_MESSAGES.get(exc.area, str(exc))

    # --- Queries ---

    def screen(self) -> Screen:
        with self._lock:
            if self._loading:
                return Screen.LOADING
            if self._fatal_error is not None:
                return Screen.ERROR
            return Screen(self._view.value)

    @property
    def identity(self) -> Identity | None:
        with self._lock:
            return self._identity

    @property
    def fatal_error(self) -> str | None:
        with self._lock:
            return self._fatal_error

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def view(self) -> View:
        with self._lock:
            return self._view

    @property
    def active_quiz_category(self) -> str | None:
        with self._lock:
            return self._active_category

    @property
    def quiz_session(self) -> QuizSession | None:
        with self._lock:
            return self._quiz

    @property
    def last_outcome(self) -> QuizOutcome | None:
        with self._lock:
            return self._last_outcome

    @property
    def passing_threshold(self) -> float:
        return self._ledger.passing_threshold

    @property
    def quiz_bank(self) -> QuizBank:
        return self._quiz_bank

    def banners(self) -> dict[str, str]:
        with self._lock:
            return dict(self._banners)

    def questions(self) -> list[Question]:
        with self._lock:
            return list(self._questions)

    def verification(self) -> VerificationRecord | None:
        with self._lock:
            return self._verification

    def verified_categories(self) -> list[str]:
        with self._lock:
            if self._verification is None:
                return []
            return sorted(self._verification.verified_categories)

    def can_answer(self, category: str) -> bool:
        """Answering is unlocked per category by passing its quiz."""
        with self._lock:
            return self._verification is not None and self._verification.is_verified(category)

    # --- Navigation ---

    def show_view(self, view: View) -> None:
        with self._lock:
            self._ensure_usable()
            quiz = None
            if view is not View.QUIZ and self._quiz is not None:
                quiz, self._quiz = self._quiz, None
                self._active_category = None
            self._view = view
        if quiz is not None:
            quiz.cancel()

    def dismiss_banner(self, area: str) -> bool:
        with self._lock:
            return self._banners.pop(area, None) is not None

    # --- Questions ---

    def post_question(self, title: str, body: str, category: str) -> str:
        """Post a question and return to the feed; failures leave the view on the form."""
        with self._lock:
            self._ensure_usable()
            if self._posting:
                raise RuntimeError("A question is already being posted.")
            identity = self._identity
            self._posting = True
        try:
            question_id = self._feed.post_question(identity, title, body, category)
        except QuestionWriteError:
            with self._lock:
                self._banners["post"] = POST_FAILED_MESSAGE
            raise
        finally:
            with self._lock:
                self._posting = False
        with self._lock:
            self._banners.pop("post", None)
            self._view = View.FEED
        return question_id

    # --- Quiz ---

    def start_quiz(self, category: str) -> QuizSession:
        """Begin a fresh session for ``category``, replacing any session in progress."""
        questions = self._quiz_bank.questions_for(category)
        with self._lock:
            self._ensure_usable()
            if self._identity is None:
                raise NotAuthenticatedError("Sign in before taking a quiz.")
            session = QuizSession(
                category,
                questions,
                scheduler=self._scheduler,
                reveal_delay=self._reveal_delay,
                on_complete=lambda result: self._handle_quiz_complete(session, result),
            )
            previous, self._quiz = self._quiz, session
            self._active_category = category
            self._view = View.QUIZ
            self._last_outcome = None
        if previous is not None:
            previous.cancel()
        logger.info("Quiz started: %s", category)
        return session

    def select_option(self, option: str) -> bool:
        with self._lock:
            self._ensure_usable()
            return self._require_quiz().select_option(option)

    def submit_answer(self) -> bool:
        with self._lock:
            self._ensure_usable()
            return self._require_quiz().submit()

    def cancel_quiz(self) -> bool:
        with self._lock:
            self._ensure_usable()
            quiz, self._quiz = self._quiz, None
            self._active_category = None
            self._view = View.FEED
        if quiz is None:
            return False
        return quiz.cancel()

    def _handle_quiz_complete(self, session: QuizSession, result: QuizResult) -> None:
        with self._lock:
            if self._closed or self._quiz is not session:
                return
            identity = self._identity
            self._quiz = None
            self._active_category = None
        error: str | None = None
        try:
            passed = self._ledger.complete_quiz(
                identity.user_id if identity else None,
                result.category,
                result.final_score,
                result.total,
                display_name=identity.display_name if identity else None,
            )
        except (NotAuthenticatedError, VerificationWriteError) as exc:
            logger.error("Could not record quiz result for %s: %s", result.category, exc)
            error = str(exc)
            passed = is_passing(result.final_score, result.total, self._ledger.passing_threshold)
        outcome = QuizOutcome(
            category=result.category,
            final_score=result.final_score,
            total=result.total,
            passed=passed,
            error=error,
        )
        with self._lock:
            self._last_outcome = outcome
            if error is not None:
                self._banners["verification"] = error

    def _require_quiz(self) -> QuizSession:
        if self._quiz is None or self._quiz.is_finished():
            raise RuntimeError("No quiz in progress.")
        return self._quiz

    def _ensure_usable(self) -> None:
        if self._fatal_error is not None:
            raise FatalStateError(self._fatal_error)
        if self._closed:
            raise FatalStateError("Session has ended.")

    # --- Serialization ---

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            identity = self._identity
            return {
                "screen": self.screen().value,
                "loading": self._loading,
                "error": self._fatal_error,
                "view": self._view.value,
                "identity": (
                    {"user_id": identity.user_id, "display_name": identity.display_name}
                    if identity
                    else None
                ),
                "verified_categories": self.verified_categories(),
                "banners": dict(self._banners),
                "active_quiz_category": self._active_category,
                "last_outcome": self._last_outcome.to_dict() if self._last_outcome else None,
                "passing_threshold": self._ledger.passing_threshold,
            }

    def quiz_snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "categories": [
                    {
                        "name": category,
                        "question_count": len(self._quiz_bank.questions_for(category)),
                        "verified": self.can_answer(category),
                    }
                    for category in self._quiz_bank.categories()
                ],
                "session": self._quiz.to_dict() if self._quiz is not None else None,
                "passing_threshold": self._ledger.passing_threshold,
                "last_outcome": self._last_outcome.to_dict() if self._last_outcome else None,
            }
