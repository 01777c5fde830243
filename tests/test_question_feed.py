"""Tests for posting questions and the live feed."""

from datetime import datetime, timedelta, timezone

import pytest

from crosspoint.backends.memory_store import InMemoryDocumentStore
from crosspoint.core.errors import (
    NotAuthenticatedError,
    QuestionValidationError,
    QuestionWriteError,
    SubscriptionError,
)
from crosspoint.core.models import Identity, QuestionStatus
from crosspoint.core.quiz_bank import DEFAULT_QUIZ_BANK
from crosspoint.core.services.question_feed import QuestionFeed

from .conftest import NAMESPACE

AUTHOR = Identity.from_provider("author-1234567890", None)


class TickingClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class TestPostQuestion:
    def test_post_writes_open_question_with_timestamps(self, feed, store):
        question_id = feed.post_question(AUTHOR, "  Momentum?  ", "Why is it conserved?", "Physics")
        data = store.get_document(feed.collection, question_id).data
        assert data["title"] == "Momentum?"
        assert data["authorId"] == AUTHOR.user_id
        assert data["status"] == QuestionStatus.OPEN.value
        assert isinstance(data["createdAt"], datetime)
        assert isinstance(data["createdAtMs"], int)

    def test_general_category_allowed(self, feed):
        assert feed.post_question(AUTHOR, "Hello", "World", "General")

    @pytest.mark.parametrize(
        "title,body",
        [("Title", ""), ("Title", "   "), ("", "Body"), (" ", "Body")],
    )
    def test_empty_fields_rejected_without_write(self, feed, store, title, body):
        with pytest.raises(QuestionValidationError):
            feed.post_question(AUTHOR, title, body, "Physics")
        assert store.write_attempts == 0

    def test_unknown_category_rejected(self, feed, store):
        with pytest.raises(QuestionValidationError):
            feed.post_question(AUTHOR, "Title", "Body", "Astrology")
        assert store.write_attempts == 0

    def test_requires_author(self, feed):
        with pytest.raises(NotAuthenticatedError):
            feed.post_question(None, "Title", "Body", "Physics")

    def test_store_failure_surfaces_as_write_error(self, feed, store):
        store.fail_writes = True
        with pytest.raises(QuestionWriteError):
            feed.post_question(AUTHOR, "Title", "Body", "Physics")


class TestWatch:
    def test_feed_lists_newest_first(self):
        store = InMemoryDocumentStore(clock=TickingClock())
        feed = QuestionFeed(store, NAMESPACE, DEFAULT_QUIZ_BANK.postable_categories())
        for title in ("t1", "t2", "t3"):
            feed.post_question(AUTHOR, title, "body", "Physics")
        deliveries = []
        unsubscribe = feed.watch(deliveries.append, pytest.fail)
        unsubscribe()
        assert [q.title for q in deliveries[-1]] == ["t3", "t2", "t1"]

    def test_feed_truncated_to_limit(self):
        store = InMemoryDocumentStore(clock=TickingClock())
        feed = QuestionFeed(store, NAMESPACE, DEFAULT_QUIZ_BANK.postable_categories())
        for index in range(55):
            feed.post_question(AUTHOR, f"q{index}", "body", "General")
        deliveries = []
        feed.watch(deliveries.append, pytest.fail)
        latest = deliveries[-1]
        assert len(latest) == 50
        assert latest[0].title == "q54"
        assert latest[-1].title == "q5"

    def test_each_delivery_replaces_the_view(self, feed):
        deliveries = []
        feed.watch(deliveries.append, pytest.fail)
        feed.post_question(AUTHOR, "first", "body", "Physics")
        feed.post_question(AUTHOR, "second", "body", "Physics")
        assert [len(d) for d in deliveries] == [0, 1, 2]

    def test_attach_failure_raises_subscription_error(self, feed, store):
        store.fail_watch_collections.add(feed.collection)
        with pytest.raises(SubscriptionError) as excinfo:
            feed.watch(lambda questions: None, lambda exc: None)
        assert excinfo.value.area == "feed"

    def test_stream_failure_reported_through_callback(self, feed, store):
        errors = []
        feed.watch(lambda questions: None, errors.append)
        store.fail_watchers(feed.collection, RuntimeError("connection lost"))
        assert len(errors) == 1
        assert errors[0].area == "feed"

    def test_pending_timestamp_ranks_by_client_clock(self):
        store = InMemoryDocumentStore(clock=TickingClock())
        feed = QuestionFeed(store, NAMESPACE, DEFAULT_QUIZ_BANK.postable_categories())
        feed.post_question(AUTHOR, "server-timed", "body", "Physics")
        later_ms = int(datetime(2024, 6, 1, tzinfo=timezone.utc).timestamp() * 1000)
        store.add_document(feed.collection, {"title": "untimed", "body": "b", "category": "General"})
        store.add_document(
            feed.collection,
            {"title": "client-timed", "body": "b", "category": "General", "createdAtMs": later_ms},
        )
        deliveries = []
        feed.watch(deliveries.append, pytest.fail)
        assert [q.title for q in deliveries[-1]] == ["client-timed", "server-timed", "untimed"]
