"""Domain models for the Crosspoint application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class QuestionStatus(str, Enum):
    """Lifecycle status of a posted question."""

    OPEN = "Open"
    CLOSED = "Closed"


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    """Multiple-choice quiz question whose answer is one of its options."""

    question: str
    options: tuple[str, ...]
    answer: str

    def __post_init__(self) -> None:
        if not self.question.strip():
            raise ValueError("Quiz question text must not be empty.")
        if len(self.options) < 2:
            raise ValueError("A quiz question needs at least two options.")
        if self.options.count(self.answer) != 1:
            raise ValueError(
                f"Answer {self.answer!r} must appear exactly once among the options."
            )


@dataclass(frozen=True, slots=True)
class Identity:
    """The signed-in user as reported by the identity provider."""

    user_id: str
    display_name: str

    @classmethod
    def from_provider(cls, user_id: str, display_name: str | None) -> "Identity":
        return cls(user_id=user_id, display_name=display_name or f"User-{user_id[:8]}")


@dataclass(slots=True)
class Question:
    """A question posted to the public feed."""

    id: str
    title: str
    body: str
    author_id: str
    category: str
    status: QuestionStatus = QuestionStatus.OPEN
    created_at: datetime | None = None  # Server timestamp, None while pending
    created_at_ms: int | None = None  # Client clock fallback

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Question":
        raw_status = data.get("status", QuestionStatus.OPEN.value)
        try:
            status = QuestionStatus(raw_status)
        except ValueError:
            status = QuestionStatus.OPEN
        return cls(
            id=doc_id,
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            author_id=str(data.get("authorId", "")),
            category=str(data.get("category", "")),
            status=status,
            created_at=data.get("createdAt"),
            created_at_ms=data.get("createdAtMs"),
        )

    @property
    def sort_key(self) -> float:
        """Epoch milliseconds used for recency ordering."""
        if self.created_at is not None:
            return self.created_at.timestamp() * 1000
        if self.created_at_ms is not None:
            return float(self.created_at_ms)
        return 0.0

    def to_dict(self) -> dict[str, object]:
        created = self.created_at
        if created is not None and created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "author_id": self.author_id,
            "category": self.category,
            "status": self.status.value,
            "created_at": created.isoformat() if created else None,
            "created_at_ms": self.created_at_ms,
        }


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    """A user's set of categories in which they passed the expert quiz."""

    user_id: str
    verified_categories: frozenset[str] = field(default_factory=frozenset)
    display_name: str | None = None
    last_updated: datetime | None = None

    @classmethod
    def empty(cls, user_id: str) -> "VerificationRecord":
        return cls(user_id=user_id)

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any] | None) -> "VerificationRecord":
        if data is None:
            return cls.empty(doc_id)
        return cls(
            user_id=doc_id,
            verified_categories=frozenset(data.get("verifiedCategories") or ()),
            display_name=data.get("displayName"),
            last_updated=data.get("lastUpdated"),
        )

    def is_verified(self, category: str) -> bool:
        return category in self.verified_categories


@dataclass(frozen=True, slots=True)
class QuizResult:
    """Final score of a completed quiz session."""

    category: str
    final_score: int
    total: int


@dataclass(frozen=True, slots=True)
class QuizOutcome:
    """What happened after a completed quiz was scored."""

    category: str
    final_score: int
    total: int
    passed: bool
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category,
            "final_score": self.final_score,
            "total": self.total,
            "passed": self.passed,
            "error": self.error,
        }
