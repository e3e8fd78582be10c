# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog.resolver",
#   "purpose": "Resolve one catalog entry into a manifest record, reusing cached hashes",
#   "sections": [
#     {"id": "urls", "name": "download_url", "anchor": "URL", "kind": "helpers"},
#     {"id": "result", "name": "ResultManifest", "anchor": "RES", "kind": "api"},
#     {"id": "resolve", "name": "resolve_entry", "anchor": "RSV", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Resolve one catalog entry into a manifest record.

Each resolver runs as its own asyncio task.  It consults the read-only prior
manifest, streams the artifact only when the cached hash cannot be reused,
and records the result in a shared :class:`ResultManifest`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterator, Mapping
from urllib.parse import quote

import httpx

from .checksums import compute_integrity
from .errors import TransferError
from .models import CatalogEntry, Manifest, OutputRecord
from .reuse import Decision, decide
from .settings import RegistrySettings

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog.resolver")

__all__ = ["ResultManifest", "download_url", "resolve_entry"]


def download_url(settings: RegistrySettings, key: str, version: str) -> str:
    """Return the zip download URL of ``key`` at ``version``."""

    return f"{settings.download_base}/{quote(key, safe='')}/{quote(version, safe='')}/zip"


class ResultManifest:
    """Manifest shared by concurrent resolvers; each key may be written once."""

    def __init__(self) -> None:
        self._records: Dict[str, OutputRecord] = {}
        self._lock = asyncio.Lock()

    async def insert(self, key: str, record: OutputRecord) -> None:
        """Store ``record`` under ``key``.

        Raises:
            ValueError: If ``key`` was already written during this run.
        """

        async with self._lock:
            if key in self._records:
                raise ValueError(f"extension '{key}' resolved twice in one run")
            self._records[key] = record

    def sorted_records(self) -> Manifest:
        """Return a key-sorted copy of the collected records."""

        return dict(sorted(self._records.items()))

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)


async def resolve_entry(
    entry: CatalogEntry,
    *,
    client: httpx.AsyncClient,
    result: ResultManifest,
    prior: Mapping[str, OutputRecord],
    settings: RegistrySettings,
) -> Decision:
    """Resolve ``entry`` into ``result`` and return the decision taken.

    Raises:
        TransferError: If the artifact could not be hashed; the entry is not
            added to ``result``.
    """

    url = download_url(settings, entry.key, entry.version)
    old = prior.get(entry.key)
    decision = decide(old, entry)
    if decision is Decision.REUSE:
        integrity = old.hash
    else:
        try:
            integrity = await compute_integrity(client, url, chunk_size=settings.chunk_size)
        except TransferError as exc:
            LOGGER.error(
                "Unable to calculate hash of %s: %s",
                entry.key,
                exc,
                extra={"stage": "hash", "extension_key": entry.key, "url": url},
            )
            exc.key = entry.key
            raise

    await result.insert(entry.key, OutputRecord.from_entry(entry, integrity))
    LOGGER.debug(
        "extension resolved",
        extra={
            "stage": "resolve",
            "extension_key": entry.key,
            "version": entry.version,
            "decision": decision.value,
        },
    )
    return decision
