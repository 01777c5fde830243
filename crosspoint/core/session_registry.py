"""Per-browser session controllers and the wiring that builds them."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable

from crosspoint.backends import (
    DocumentStore,
    IdentityProvider,
    InMemoryDocumentStore,
    LocalIdentityProvider,
)
from crosspoint.constants.network_constants import SESSION_IDLE_TIMEOUT_SECONDS
from crosspoint.core.config import Settings
from crosspoint.core.quiz_bank import DEFAULT_QUIZ_BANK, QuizBank
from crosspoint.core.services.identity import IdentityService
from crosspoint.core.services.question_feed import QuestionFeed
from crosspoint.core.services.scheduler import Scheduler, ThreadTimerScheduler
from crosspoint.core.services.verification_ledger import VerificationLedger
from crosspoint.core.session_controller import SessionController

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[], SessionController]


class SessionRegistry:
    """Maps browser session ids to started controllers.

    Every lookup refreshes the session's last-seen time. Sessions idle for
    longer than ``idle_timeout`` are closed on the next lookup of any session.
    """

    def __init__(
        self,
        factory: ControllerFactory,
        idle_timeout: float = SESSION_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._lock = Lock()
        self._controllers: dict[str, SessionController] = {}
        self._last_seen: dict[str, float] = {}

    def get_or_create(self, session_id: str, origin: str | None = None) -> SessionController:
        with self._lock:
            now = self._clock()
            expired = self._pop_expired(now)
            self._last_seen[session_id] = now
            controller = self._controllers.get(session_id)
            created = controller is None
            if created:
                controller = self._factory()
                self._controllers[session_id] = controller
        for stale in expired:
            stale.close()
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        if created:
            logger.info("New session %s", session_id[:8])
            controller.start(origin=origin)
        return controller

    def get(self, session_id: str) -> SessionController | None:
        with self._lock:
            return self._controllers.get(session_id)

    def close(self, session_id: str) -> bool:
        with self._lock:
            controller = self._controllers.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if controller is None:
            return False
        controller.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
            self._last_seen.clear()
        for controller in controllers:
            controller.close()
        logger.info("Closed %d session(s)", len(controllers))

    def _pop_expired(self, now: float) -> list[SessionController]:
        cutoff = now - self._idle_timeout
        stale_ids = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in stale_ids:
            del self._last_seen[session_id]
        return [
            controller
            for controller in (self._controllers.pop(sid, None) for sid in stale_ids)
            if controller is not None
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)


def build_session_registry(
    settings: Settings,
    store: DocumentStore | None = None,
    quiz_bank: QuizBank | None = None,
    scheduler: Scheduler | None = None,
    provider_factory: Callable[[], IdentityProvider] | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> SessionRegistry:
    """Wire one shared store and quiz bank into a registry of per-browser controllers."""
    store = store or InMemoryDocumentStore()
    quiz_bank = quiz_bank or DEFAULT_QUIZ_BANK
    scheduler = scheduler or ThreadTimerScheduler()

    def make_provider() -> IdentityProvider:
        return LocalIdentityProvider(
            api_key=settings.provider.api_key,
            project_id=settings.provider.project_id,
            allow_anonymous=settings.allow_anonymous,
            authorized_domains=settings.authorized_domains,
        )

    feed = QuestionFeed(store, settings.namespace, quiz_bank.postable_categories())
    ledger = VerificationLedger(store, settings.namespace, settings.passing_threshold)

    def factory() -> SessionController:
        identity_service = IdentityService(
            (provider_factory or make_provider)(), initial_token=settings.initial_auth_token
        )
        return SessionController(
            identity_service=identity_service,
            feed=feed,
            ledger=ledger,
            quiz_bank=quiz_bank,
            scheduler=scheduler,
            reveal_delay=settings.reveal_delay_seconds,
        )

    return SessionRegistry(factory, idle_timeout=settings.session_idle_timeout_seconds, clock=clock)
