"""Identity provider contract and an in-process implementation.

One provider instance plays the role of a browser's auth client: it holds at
most one signed-in user and notifies listeners whenever that user changes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Iterable
from urllib.parse import urlsplit
from uuid import uuid4

import jwt

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


class AuthErrorCode(str, Enum):
    """Provider error codes the application distinguishes."""

    INVALID_API_KEY = "auth/invalid-api-key"
    OPERATION_NOT_ALLOWED = "auth/operation-not-allowed"
    UNAUTHORIZED_DOMAIN = "auth/unauthorized-domain"
    UNSUPPORTED_ENVIRONMENT = "auth/operation-not-supported-in-this-environment"
    INVALID_CUSTOM_TOKEN = "auth/invalid-custom-token"


class ProviderAuthError(Exception):
    """Raised by a provider when sign-in fails; ``code`` is provider-specific."""

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code


@dataclass(frozen=True, slots=True)
class ProviderUser:
    """The subject the provider authenticated."""

    uid: str
    display_name: str | None = None
    is_anonymous: bool = False


AuthStateCallback = Callable[[ProviderUser | None], None]


class IdentityProvider(ABC):
    @abstractmethod
    def sign_in_anonymously(self, origin: str | None = None) -> ProviderUser:
        """Create or reuse an anonymous user."""

    @abstractmethod
    def sign_in_with_token(self, token: str, origin: str | None = None) -> ProviderUser:
        """Sign in with a pre-issued token."""

    @abstractmethod
    def sign_out(self) -> None:
        """Forget the current user."""

    @abstractmethod
    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Deliver the current user now and on every change; returns an unsubscribe handle."""


class LocalIdentityProvider(IdentityProvider):
    """Identity provider that runs inside the server process.

    Custom tokens are HS256 JWTs signed with the project's API key and
    addressed to the project id. A token minted by ``issue_token`` stays valid
    across restarts for as long as the key does.
    """

    PERSISTENCE_MODES = ("local", "session", "memory", "none")

    def __init__(
        self,
        api_key: str,
        project_id: str,
        allow_anonymous: bool = True,
        authorized_domains: Iterable[str] = (),
        persistence: str = "memory",
    ) -> None:
        if persistence not in self.PERSISTENCE_MODES:
            raise ValueError(f"Unknown persistence mode: {persistence!r}")
        self._api_key = api_key
        self._project_id = project_id
        self._allow_anonymous = allow_anonymous
        self._authorized_domains = frozenset(d.strip().lower() for d in authorized_domains if d.strip())
        self._persistence = persistence
        self._lock = Lock()
        self._current: ProviderUser | None = None
        self._listeners: dict[int, AuthStateCallback] = {}
        self._next_listener_id = 0

    # --- Sign-in flows ---

    def sign_in_anonymously(self, origin: str | None = None) -> ProviderUser:
        self._check_environment(origin)
        if not self._allow_anonymous:
            raise ProviderAuthError(AuthErrorCode.OPERATION_NOT_ALLOWED.value)
        with self._lock:
            if self._current is None or not self._current.is_anonymous:
                self._current = ProviderUser(uid=uuid4().hex, is_anonymous=True)
            user = self._current
        logger.info("Anonymous sign-in for %s", user.uid[:8])
        self._notify(user)
        return user

    def sign_in_with_token(self, token: str, origin: str | None = None) -> ProviderUser:
        self._check_environment(origin)
        uid, display_name = self._verify_token(token)
        user = ProviderUser(uid=uid, display_name=display_name)
        with self._lock:
            self._current = user
        logger.info("Token sign-in for %s", uid[:8])
        self._notify(user)
        return user

    def sign_out(self) -> None:
        with self._lock:
            if self._current is None:
                return
            self._current = None
        self._notify(None)

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = callback
            current = self._current
        callback(current)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    # --- Tokens ---

    def issue_token(self, uid: str, display_name: str | None = None) -> str:
        """Mint a custom token for ``uid`` signed with this project's key."""
        if not uid:
            raise ValueError("Token subject must not be empty.")
        claims = {"uid": uid, "name": display_name, "aud": self._project_id}
        return jwt.encode(claims, self._api_key, algorithm=TOKEN_ALGORITHM)

    def _verify_token(self, token: str) -> tuple[str, str | None]:
        try:
            claims = jwt.decode(
                token.strip(),
                self._api_key,
                algorithms=[TOKEN_ALGORITHM],
                audience=self._project_id,
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Custom token rejected: %s", exc)
            raise ProviderAuthError(AuthErrorCode.INVALID_CUSTOM_TOKEN.value) from exc
        uid = claims.get("uid")
        if not isinstance(uid, str) or not uid:
            raise ProviderAuthError(AuthErrorCode.INVALID_CUSTOM_TOKEN.value)
        name = claims.get("name")
        return uid, name if isinstance(name, str) else None

    # --- Checks ---

    def _check_environment(self, origin: str | None) -> None:
        if not self._api_key or not self._project_id:
            raise ProviderAuthError(AuthErrorCode.INVALID_API_KEY.value)
        if self._persistence == "none":
            raise ProviderAuthError(AuthErrorCode.UNSUPPORTED_ENVIRONMENT.value)
        if origin and self._authorized_domains:
            host = (urlsplit(origin).hostname or origin).lower()
            if host not in self._authorized_domains:
                raise ProviderAuthError(
                    AuthErrorCode.UNAUTHORIZED_DOMAIN.value,
                    f"Origin {host} is not an authorized domain.",
                )

    def _notify(self, user: ProviderUser | None) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(user)


