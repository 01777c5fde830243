"""Exception hierarchy for Crosspoint.

Configuration and identity errors are fatal for a session; the session
controller turns them into a sticky error screen. Subscription and write
errors stay local to the view that caused them and surface as banners.
"""

from __future__ import annotations

from typing import Iterable


class CrosspointError(Exception):
    """Base class for all application errors."""


class ConfigurationError(CrosspointError):
    """Raised when required settings are missing or malformed."""

    def __init__(self, message: str, missing_keys: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing_keys: tuple[str, ...] = tuple(missing_keys)

    @classmethod
    def missing(cls, keys: Iterable[str]) -> "ConfigurationError":
        keys = tuple(keys)
        return cls(
            f"Configuration missing: {', '.join(keys)}. Check your .env and restart the server.",
            missing_keys=keys,
        )


class IdentityError(CrosspointError):
    """Raised when signing in fails for a provider-specific reason."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class NotAuthenticatedError(CrosspointError):
    """Raised when an operation needs a signed-in user and there is none."""


class SubscriptionError(CrosspointError):
    """Raised or reported when a live feed fails to attach or errors mid-stream."""

    def __init__(self, area: str, message: str) -> None:
        super().__init__(message)
        self.area = area


class QuestionValidationError(CrosspointError, ValueError):
    """Raised when a question draft is rejected before any write."""


class QuestionWriteError(CrosspointError):
    """Raised when the store refuses a new question."""


class VerificationWriteError(CrosspointError):
    """Raised when merging a verification record fails."""


class UnknownCategoryError(CrosspointError, LookupError):
    """Raised for a category that has no quiz."""

    def __init__(self, category: str) -> None:
        super().__init__(f"Quiz data not found for {category}.")
        self.category = category


class FatalStateError(CrosspointError):
    """Raised when an action is attempted after the session hit a fatal error."""
