"""Service for scoring finished quizzes and recording expert verifications."""

from __future__ import annotations

import logging
from typing import Callable

from crosspoint.backends.document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    StoreError,
    Unsubscribe,
    collection_path,
)
from crosspoint.constants.quiz_constants import PASSING_SCORE_THRESHOLD, VERIFICATIONS_COLLECTION
from crosspoint.constants.ui_constants import VERIFY_FAILED_TEMPLATE
from crosspoint.core.errors import NotAuthenticatedError, SubscriptionError, VerificationWriteError
from crosspoint.core.models import VerificationRecord

logger = logging.getLogger(__name__)


def is_passing(final_score: int, total: int, threshold: float = PASSING_SCORE_THRESHOLD) -> bool:
    """Return whether ``final_score / total`` meets ``threshold`` (inclusive)."""
    if total <= 0:
        raise ValueError("A quiz must have at least one question.")
    if not 0 <= final_score <= total:
        raise ValueError(f"Score {final_score} is outside 0..{total}.")
    return final_score / total >= threshold


class VerificationLedger:
    """Per-user verified-category records, merged on every quiz pass."""

    def __init__(
        self,
        store: DocumentStore,
        namespace: str,
        passing_threshold: float = PASSING_SCORE_THRESHOLD,
    ) -> None:
        if not 0.0 <= passing_threshold <= 1.0:
            raise ValueError("Passing threshold must be between 0.0 and 1.0.")
        self._store = store
        self._collection = collection_path(namespace, VERIFICATIONS_COLLECTION)
        self._threshold = passing_threshold

    @property
    def passing_threshold(self) -> float:
        return self._threshold

    @property
    def collection(self) -> str:
        return self._collection

    def watch(
        self,
        user_id: str,
        on_update: Callable[[VerificationRecord], None],
        on_error: Callable[[SubscriptionError], None],
    ) -> Unsubscribe:
        def handle_snapshot(snapshot: DocumentSnapshot) -> None:
            on_update(VerificationRecord.from_document(snapshot.id, snapshot.data))

        def handle_error(exc: Exception) -> None:
            logger.error("Verification feed for %s failed: %s", user_id[:8], exc)
            on_error(SubscriptionError("verification", f"Verification feed failed: {exc}"))

        try:
            return self._store.watch_document(
                self._collection, user_id, on_snapshot=handle_snapshot, on_error=handle_error
            )
        except StoreError as exc:
            raise SubscriptionError(
                "verification", f"Could not attach to verification record: {exc}"
            ) from exc

    def fetch(self, user_id: str) -> VerificationRecord:
        try:
            snapshot = self._store.get_document(self._collection, user_id)
        except StoreError as exc:
            raise SubscriptionError("verification", str(exc)) from exc
        return VerificationRecord.from_document(snapshot.id, snapshot.data)

    def complete_quiz(
        self,
        user_id: str | None,
        category: str,
        final_score: int,
        total: int,
        display_name: str | None = None,
    ) -> bool:
        """Score a finished quiz and merge ``category`` into the record if it passed.

        A failed attempt writes nothing and returns False. Persistence
        failures raise ``VerificationWriteError``.
        """
        if not user_id:
            raise NotAuthenticatedError("Sign in before completing a quiz.")
        passed = is_passing(final_score, total, self._threshold)
        if not passed:
            logger.info(
                "User %s scored %d/%d in %s; not verified", user_id[:8], final_score, total, category
            )
            return False
        try:
            self._store.merge_document(
                self._collection,
                user_id,
                {
                    "displayName": display_name,
                    "verifiedCategories": ArrayUnion([category]),
                    "lastUpdated": SERVER_TIMESTAMP,
                },
            )
        except StoreError as exc:
            logger.error("Verification write for %s failed: %s", user_id[:8], exc)
            raise VerificationWriteError(VERIFY_FAILED_TEMPLATE.format(category=category)) from exc
        logger.info("User %s verified in %s (%d/%d)", user_id[:8], category, final_score, total)
        return True
