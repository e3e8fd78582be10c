# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog.settings",
#   "purpose": "Environment-driven settings for registry access and manifest output",
#   "sections": [
#     {"id": "defaults", "name": "Defaults", "anchor": "DEF", "kind": "constants"},
#     {"id": "settings", "name": "RegistrySettings", "anchor": "SET", "kind": "api"},
#     {"id": "loader", "name": "load_settings", "anchor": "LOAD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Environment-driven settings for the extension catalog.

Credentials and tuning knobs are read once from ``TYPO3NIX_*`` environment
variables into a :class:`RegistrySettings` instance which is then passed to
every component that needs it.  Missing credentials surface as
:class:`~Typo3Nix.ExtensionCatalog.errors.ConfigError` rather than a raw
pydantic validation error so the CLI can report them plainly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

ENV_PREFIX = "TYPO3NIX_"
DEFAULT_API_BASE = "https://extensions.typo3.org/api/v1"
DEFAULT_DOWNLOAD_BASE = "https://extensions.typo3.org/extension/download"
DEFAULT_MANIFEST_PATH = Path("extensions.json")
DEFAULT_PER_PAGE = 50
DEFAULT_CHUNK_SIZE = 64 * 1024

__all__ = [
    "DEFAULT_API_BASE",
    "DEFAULT_DOWNLOAD_BASE",
    "DEFAULT_MANIFEST_PATH",
    "DEFAULT_PER_PAGE",
    "ENV_PREFIX",
    "RegistrySettings",
    "load_settings",
]


class RegistrySettings(BaseSettings):
    """Registry credentials, endpoints, and pipeline tuning."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    user: str = Field(description="Registry username for HTTP basic auth")
    password: SecretStr = Field(description="Registry password for HTTP basic auth")
    test_mode: bool = Field(
        default=False,
        description="Fetch a single one-entry page and exit without draining or persisting",
    )
    api_base: str = Field(default=DEFAULT_API_BASE, description="Registry API root")
    download_base: str = Field(
        default=DEFAULT_DOWNLOAD_BASE, description="Root of the artifact download endpoint"
    )
    per_page: int = Field(default=DEFAULT_PER_PAGE, description="Catalog page size")
    manifest_path: Path = Field(
        default=DEFAULT_MANIFEST_PATH, description="Manifest read at start and rewritten at the end"
    )
    connect_timeout_sec: float = Field(default=10.0, description="TCP connect timeout")
    read_timeout_sec: Optional[float] = Field(
        default=60.0, description="Per-read timeout; None waits forever"
    )
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, description="Digest streaming chunk size")
    max_connections: int = Field(default=100, description="Connection pool size")
    log_level: str = Field(default="INFO", description="Console log level")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files")

    @field_validator("test_mode", mode="before")
    @classmethod
    def _parse_test_mode(cls, value: object) -> object:
        # Only the literal "1" enables test mode from the environment.
        if isinstance(value, str):
            return value.strip() == "1"
        return value

    @field_validator("per_page", "chunk_size", "max_connections")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("connect_timeout_sec", "read_timeout_sec")
    @classmethod
    def _validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("timeouts must be > 0")
        return value

    @field_validator("api_base", "download_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        stripped = value.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return stripped

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @property
    def effective_per_page(self) -> int:
        """Page size actually requested; test mode pins it to a single entry."""

        return 1 if self.test_mode else self.per_page

    def credentials(self) -> tuple[str, str]:
        """Return the ``(user, password)`` pair for HTTP basic auth."""

        return self.user, self.password.get_secret_value()


def _describe_errors(exc: ValidationError) -> List[str]:
    messages: List[str] = []
    for error in exc.errors():
        location = error.get("loc") or ("?",)
        field_name = str(location[0])
        if error.get("type") == "missing":
            messages.append(f"{ENV_PREFIX}{field_name.upper()} not set")
        else:
            messages.append(f"{ENV_PREFIX}{field_name.upper()}: {error.get('msg')}")
    return messages


def load_settings(**overrides: Any) -> RegistrySettings:
    """Resolve settings from the environment, applying explicit ``overrides``.

    Overrides whose value is ``None`` are ignored so CLI options left unset
    fall through to the environment.

    Raises:
        ConfigError: If credentials are missing or a value fails validation.
    """

    provided = {name: value for name, value in overrides.items() if value is not None}
    try:
        return RegistrySettings(**provided)
    except ValidationError as exc:
        raise ConfigError("; ".join(_describe_errors(exc))) from exc
