"""Record types exchanged between the catalog fetcher, resolvers, and manifests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

__all__ = [
    "CatalogEntry",
    "Manifest",
    "OutputRecord",
    "PageResponse",
    "first_line",
]


def first_line(text: str) -> str:
    """Return ``text`` up to (not including) its first newline."""

    return text.split("\n", 1)[0]


@dataclass(slots=True, frozen=True)
class CatalogEntry:
    """Current metadata of one published extension, as listed by the registry."""

    key: str
    version: str
    typo3_versions: Tuple[int, ...] = ()
    description: str = ""


@dataclass(slots=True, frozen=True)
class OutputRecord:
    """Manifest record for one extension.

    ``compatibility`` is serialised as ``t3_versions`` to stay readable by the
    Nix expressions that consume ``extensions.json``.
    """

    version: str
    compatibility: Tuple[int, ...]
    description: str
    hash: str

    @classmethod
    def from_entry(cls, entry: CatalogEntry, integrity: str) -> "OutputRecord":
        """Build the record for ``entry`` using the resolved ``integrity`` string."""

        return cls(
            version=entry.version,
            compatibility=tuple(entry.typo3_versions),
            description=first_line(entry.description),
            hash=integrity,
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "OutputRecord":
        """Rebuild a record from a manifest mapping; absent fields default to empty."""

        versions = payload.get("t3_versions") or ()
        if not isinstance(versions, (list, tuple)):
            raise ValueError(f"t3_versions must be a list, got {type(versions).__name__}")
        return cls(
            version=str(payload.get("version") or ""),
            compatibility=tuple(int(item) for item in versions),
            description=str(payload.get("description") or ""),
            hash=str(payload.get("hash") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the on-disk representation in its canonical field order."""

        return {
            "version": self.version,
            "t3_versions": list(self.compatibility),
            "description": self.description,
            "hash": self.hash,
        }


@dataclass(slots=True, frozen=True)
class PageResponse:
    """One parsed page of the registry's extension listing."""

    total_results: int
    page: int
    per_page: int
    entries: Tuple[CatalogEntry, ...] = field(default_factory=tuple)


Manifest = Dict[str, OutputRecord]
