"""Service for posting questions and watching the live question feed."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from crosspoint.backends.document_store import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    StoreError,
    Unsubscribe,
    collection_path,
)
from crosspoint.constants.quiz_constants import FEED_LIMIT, QUESTIONS_COLLECTION
from crosspoint.core.errors import (
    NotAuthenticatedError,
    QuestionValidationError,
    QuestionWriteError,
    SubscriptionError,
)
from crosspoint.core.models import Identity, Question, QuestionStatus

logger = logging.getLogger(__name__)


class QuestionFeed:
    """Reads the newest questions and appends new ones."""

    def __init__(
        self,
        store: DocumentStore,
        namespace: str,
        postable_categories: Iterable[str],
        limit: int = FEED_LIMIT,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._collection = collection_path(namespace, QUESTIONS_COLLECTION)
        self._postable = frozenset(postable_categories)
        self._limit = limit
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    @property
    def collection(self) -> str:
        return self._collection

    def watch(
        self,
        on_update: Callable[[list[Question]], None],
        on_error: Callable[[SubscriptionError], None],
    ) -> Unsubscribe:
        """Deliver the newest questions, newest first, on every change."""

        def handle_snapshot(documents: list[DocumentSnapshot]) -> None:
            questions = [Question.from_document(doc.id, doc.data) for doc in documents if doc.exists]
            # Documents without a server time yet rank by their client clock.
            on_update(sorted(questions, key=lambda question: question.sort_key, reverse=True))

        def handle_error(exc: Exception) -> None:
            logger.error("Question feed failed: %s", exc)
            on_error(SubscriptionError("feed", f"Question feed failed: {exc}"))

        try:
            return self._store.watch_query(
                self._collection,
                order_by="createdAt",
                descending=True,
                limit=self._limit,
                on_snapshot=handle_snapshot,
                on_error=handle_error,
            )
        except StoreError as exc:
            raise SubscriptionError("feed", f"Could not attach to question feed: {exc}") from exc

    def validate_draft(self, title: str, body: str, category: str) -> tuple[str, str]:
        cleaned_title = title.strip()
        cleaned_body = body.strip()
        if not cleaned_title:
            raise QuestionValidationError("Question title must not be empty.")
        if not cleaned_body:
            raise QuestionValidationError("Question body must not be empty.")
        if category not in self._postable:
            raise QuestionValidationError(f"Unknown category: {category!r}.")
        return cleaned_title, cleaned_body

    def post_question(
        self,
        author: Identity | None,
        title: str,
        body: str,
        category: str,
    ) -> str:
        """Append an open question by ``author``; returns the new question id."""
        if author is None:
            raise NotAuthenticatedError("Sign in before posting a question.")
        cleaned_title, cleaned_body = self.validate_draft(title, body, category)
        document = {
            "title": cleaned_title,
            "body": cleaned_body,
            "authorId": author.user_id,
            "category": category,
            "createdAt": SERVER_TIMESTAMP,
            "createdAtMs": self._clock_ms(),
            "status": QuestionStatus.OPEN.value,
        }
        try:
            question_id = self._store.add_document(self._collection, document)
        except StoreError as exc:
            logger.error("Posting question failed: %s", exc)
            raise QuestionWriteError(str(exc)) from exc
        logger.info("Question %s posted in %s by %s", question_id, category, author.user_id[:8])
        return question_id
