"""Sign-in on top of an identity provider, with user-actionable errors."""

from __future__ import annotations

import logging
from typing import Callable

from crosspoint.backends.identity_provider import (
    AuthErrorCode,
    IdentityProvider,
    ProviderAuthError,
    ProviderUser,
)
from crosspoint.constants.ui_constants import (
    AUTH_ANONYMOUS_DISABLED_MESSAGE,
    AUTH_GENERIC_TEMPLATE,
    AUTH_INVALID_TOKEN_MESSAGE,
    AUTH_MISCONFIGURED_MESSAGE,
    AUTH_UNAUTHORIZED_DOMAIN_MESSAGE,
    AUTH_UNSUPPORTED_ENVIRONMENT_MESSAGE,
)
from crosspoint.core.errors import IdentityError
from crosspoint.core.models import Identity

logger = logging.getLogger(__name__)

_MESSAGES: dict[str, str] = {
    AuthErrorCode.INVALID_API_KEY.value: AUTH_MISCONFIGURED_MESSAGE,
    AuthErrorCode.OPERATION_NOT_ALLOWED.value: AUTH_ANONYMOUS_DISABLED_MESSAGE,
    AuthErrorCode.UNAUTHORIZED_DOMAIN.value: AUTH_UNAUTHORIZED_DOMAIN_MESSAGE,
    AuthErrorCode.UNSUPPORTED_ENVIRONMENT.value: AUTH_UNSUPPORTED_ENVIRONMENT_MESSAGE,
    AuthErrorCode.INVALID_CUSTOM_TOKEN.value: AUTH_INVALID_TOKEN_MESSAGE,
}


def identity_error_for(exc: ProviderAuthError) -> IdentityError:
    """Translate a provider failure into the message shown to the user."""
    message = _MESSAGES.get(exc.code, AUTH_GENERIC_TEMPLATE.format(code=exc.code))
    return IdentityError(exc.code, message)


def identity_from_user(user: ProviderUser | None) -> Identity | None:
    if user is None:
        return None
    return Identity.from_provider(user.uid, user.display_name)


class IdentityService:
    """Signs a client in once and reports identity changes afterwards."""

    def __init__(self, provider: IdentityProvider, initial_token: str | None = None) -> None:
        self._provider = provider
        self._initial_token = initial_token

    def sign_in(self, origin: str | None = None) -> Identity:
        """Use the pre-issued token when configured, otherwise sign in anonymously."""
        try:
            if self._initial_token:
                user = self._provider.sign_in_with_token(self._initial_token, origin=origin)
            else:
                user = self._provider.sign_in_anonymously(origin=origin)
        except ProviderAuthError as exc:
            logger.error("Sign-in failed: %s", exc.code)
            raise identity_error_for(exc) from exc
        return Identity.from_provider(user.uid, user.display_name)

    def sign_out(self) -> None:
        self._provider.sign_out()

    def watch(self, on_change: Callable[[Identity | None], None]) -> Callable[[], None]:
        return self._provider.on_auth_state_changed(
            lambda user: on_change(identity_from_user(user))
        )
