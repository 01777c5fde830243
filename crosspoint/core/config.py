"""Start-up settings resolved from the environment.

``Settings`` is a pydantic-settings model: every field is read from a
``CROSSPOINT_``-prefixed environment variable or from ``.env`` (existing
environment variables win). ``load_settings`` turns validation failures into
``ConfigurationError`` and reports all missing keys together, so a
misconfigured deployment can be fixed in one pass.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from crosspoint.constants.network_constants import (
    DEFAULT_AUTHORIZED_DOMAINS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    SESSION_IDLE_TIMEOUT_SECONDS,
)
from crosspoint.constants.quiz_constants import (
    DEFAULT_NAMESPACE,
    PASSING_SCORE_THRESHOLD,
    REVEAL_DELAY_SECONDS,
)
from crosspoint.core.errors import ConfigurationError

ENV_PREFIX = "CROSSPOINT_"
DEFAULT_ENV_FILE = ".env"
# Validation error types that mean "the variable was not given".
_MISSING_ERROR_TYPES = frozenset({"missing", "string_too_short"})


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Identity-provider key material."""

    api_key: str
    auth_domain: str
    project_id: str
    storage_bucket: str
    messaging_sender_id: str
    app_id: str


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )

    api_key: str = Field(min_length=1)
    auth_domain: str = ""
    project_id: str = Field(min_length=1)
    storage_bucket: str = ""
    messaging_sender_id: str = ""
    app_id: str = Field(min_length=1)

    namespace: str = DEFAULT_NAMESPACE
    initial_auth_token: str | None = None
    passing_threshold: float = Field(default=PASSING_SCORE_THRESHOLD, ge=0.0, le=1.0)
    reveal_delay_seconds: float = Field(default=REVEAL_DELAY_SECONDS, ge=0.0)
    session_idle_timeout_seconds: float = Field(default=SESSION_IDLE_TIMEOUT_SECONDS, gt=0.0)
    allow_anonymous: bool = True
    authorized_domains: Annotated[tuple[str, ...], NoDecode] = DEFAULT_AUTHORIZED_DOMAINS
    quiz_bank_path: Path | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        if not value:
            return DEFAULT_NAMESPACE
        if "/" in value:
            raise ValueError("must not contain '/'")
        return value

    @field_validator("initial_auth_token")
    @classmethod
    def _blank_token_is_none(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("authorized_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @property
    def provider(self) -> ProviderConfig:
        return ProviderConfig(
            api_key=self.api_key,
            auth_domain=self.auth_domain,
            project_id=self.project_id,
            storage_bucket=self.storage_bucket,
            messaging_sender_id=self.messaging_sender_id,
            app_id=self.app_id,
        )


def load_settings(env_file: str | os.PathLike[str] | None = DEFAULT_ENV_FILE) -> Settings:
    """Build ``Settings`` from the environment and ``env_file`` (None skips the file)."""
    try:
        return Settings(_env_file=env_file)
    except ValidationError as exc:
        raise _configuration_error(exc) from exc


def _configuration_error(exc: ValidationError) -> ConfigurationError:
    errors = exc.errors()
    missing = [
        _env_name(error["loc"]) for error in errors if error["type"] in _MISSING_ERROR_TYPES
    ]
    if missing:
        return ConfigurationError.missing(missing)
    details = "; ".join(f"{_env_name(error['loc'])}: {error['msg']}" for error in errors)
    return ConfigurationError(f"Invalid configuration: {details}.")


def _env_name(loc: tuple[Any, ...]) -> str:
    return ENV_PREFIX + str(loc[0]).upper() if loc else ENV_PREFIX.rstrip("_")
