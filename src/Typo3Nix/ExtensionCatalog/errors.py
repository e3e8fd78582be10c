"""Exception hierarchy shared across catalog paging, hashing, and persistence.

The extension catalog pipeline spans configuration loading, HTTP retrieval of
catalog pages, artifact digest streaming, and manifest persistence.  This
module groups those failure modes so the CLI can map high-level categories to
exit codes while resolver code keeps access to the offending URL, status code
and extension key.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

__all__ = [
    "ExtensionCatalogError",
    "ConfigError",
    "TransferError",
    "ParseError",
    "EntryResolutionError",
]


class ExtensionCatalogError(RuntimeError):
    """Base exception for catalog paging, hashing, or manifest failures."""


class ConfigError(ExtensionCatalogError):
    """Raised when credentials, settings, or the prior manifest are unusable."""


class TransferError(ExtensionCatalogError):
    """Raised when a page request or artifact download fails on the wire."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.key = key


class ParseError(ExtensionCatalogError):
    """Raised when a registry response or integrity string is malformed."""


class EntryResolutionError(ExtensionCatalogError):
    """Raised after draining when one or more extensions could not be hashed."""

    def __init__(self, failures: Mapping[str, BaseException]) -> None:
        self.failures: Dict[str, BaseException] = dict(sorted(failures.items()))
        if self.failures:
            first_key, first_error = next(iter(self.failures.items()))
            message = f"Unable to calculate hash of {first_key}: {first_error}"
            if len(self.failures) > 1:
                message += f" (and {len(self.failures) - 1} more failed extensions)"
        else:
            message = "extension resolution failed"
        super().__init__(message)
