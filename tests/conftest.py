"""Shared fixtures: a manual scheduler, stores and a controller builder."""

import os
from typing import Callable

import pytest

from crosspoint.backends.document_store import StoreError
from crosspoint.backends.identity_provider import LocalIdentityProvider
from crosspoint.backends.memory_store import InMemoryDocumentStore
from crosspoint.core.config import ENV_PREFIX, Settings
from crosspoint.core.quiz_bank import DEFAULT_QUIZ_BANK
from crosspoint.core.services.identity import IdentityService
from crosspoint.core.services.question_feed import QuestionFeed
from crosspoint.core.services.verification_ledger import VerificationLedger
from crosspoint.core.session_controller import SessionController

NAMESPACE = "test-app"


class ManualAction:
    def __init__(self, delay: float, action: Callable[[], None]) -> None:
        self.delay = delay
        self.action = action
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Collects scheduled actions; tests decide when they fire."""

    def __init__(self) -> None:
        self.actions: list[ManualAction] = []

    def schedule(self, delay_seconds: float, action: Callable[[], None]) -> ManualAction:
        scheduled = ManualAction(delay_seconds, action)
        self.actions.append(scheduled)
        return scheduled

    def pending(self) -> list[ManualAction]:
        return [a for a in self.actions if not a.cancelled]

    def run_pending(self) -> int:
        ran = 0
        while self.pending():
            scheduled = self.pending()[0]
            self.actions.remove(scheduled)
            scheduled.action()
            ran += 1
        return ran

    def fire_cancelled(self) -> None:
        """Run actions even if cancelled, as a late timer thread would."""
        actions, self.actions = self.actions, []
        for scheduled in actions:
            scheduled.action()


class FlakyStore(InMemoryDocumentStore):
    """Memory store whose writes or watches can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.fail_watch_collections: set[str] = set()
        self.write_attempts = 0

    def add_document(self, collection, data):
        self.write_attempts += 1
        if self.fail_writes:
            raise StoreError("permission denied")
        return super().add_document(collection, data)

    def merge_document(self, collection, doc_id, data):
        self.write_attempts += 1
        if self.fail_writes:
            raise StoreError("permission denied")
        return super().merge_document(collection, doc_id, data)

    def watch_query(self, collection, *args, **kwargs):
        if collection in self.fail_watch_collections:
            raise StoreError("missing index")
        return super().watch_query(collection, *args, **kwargs)

    def watch_document(self, collection, *args, **kwargs):
        if collection in self.fail_watch_collections:
            raise StoreError("permission denied")
        return super().watch_document(collection, *args, **kwargs)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Hide any CROSSPOINT_ variables of the machine running the tests."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_key="test-key",
        auth_domain="localhost",
        project_id="crosspoint-test",
        app_id="web",
        namespace=NAMESPACE,
        reveal_delay_seconds=0.0,
        authorized_domains=("localhost", "testserver"),
    )


@pytest.fixture
def feed(store) -> QuestionFeed:
    return QuestionFeed(store, NAMESPACE, DEFAULT_QUIZ_BANK.postable_categories())


@pytest.fixture
def ledger(store) -> VerificationLedger:
    return VerificationLedger(store, NAMESPACE)


@pytest.fixture
def make_provider():
    def factory(**overrides) -> LocalIdentityProvider:
        options = {"api_key": "test-key", "project_id": "crosspoint-test"}
        options.update(overrides)
        return LocalIdentityProvider(**options)

    return factory


@pytest.fixture
def make_controller(store, feed, ledger, scheduler, make_provider):
    created: list[SessionController] = []

    def factory(provider=None, initial_token=None, start=True) -> SessionController:
        controller = SessionController(
            identity_service=IdentityService(provider or make_provider(), initial_token),
            feed=feed,
            ledger=ledger,
            quiz_bank=DEFAULT_QUIZ_BANK,
            scheduler=scheduler,
            reveal_delay=0.0,
        )
        created.append(controller)
        if start:
            controller.start()
        return controller

    yield factory
    for controller in created:
        controller.close()
