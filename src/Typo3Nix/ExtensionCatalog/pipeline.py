# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog.pipeline",
#   "purpose": "Drive pagination, resolver fan-out, draining, and manifest persistence",
#   "sections": [
#     {"id": "state", "name": "RunState & RunReport", "anchor": "STA", "kind": "api"},
#     {"id": "driver", "name": "CatalogRun", "anchor": "DRV", "kind": "api"},
#     {"id": "entrypoints", "name": "collect_catalog / update_manifest / run_update", "anchor": "ENT", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Pagination driver for the extension catalog.

The driver walks catalog pages one after another.  Every entry on a page is
handed to its own resolver task straight away, so hashing overlaps with the
next page request.  An interrupt only stops further pages from being
requested; resolvers that were already scheduled are always drained before
the manifest is written.

Run states progress ``START -> PAGING -> DRAINING -> DONE``.  A page that
cannot be fetched or parsed aborts the run: outstanding resolvers are
cancelled and nothing is persisted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

import httpx

from .cancellation import CancellationToken, install_interrupt_handler
from .catalog import fetch_page, page_count
from .errors import EntryResolutionError, TransferError
from .logging_config import generate_correlation_id
from .manifests import load_manifest, write_manifest
from .models import CatalogEntry, Manifest, OutputRecord
from .net import build_async_client
from .resolver import ResultManifest, resolve_entry
from .reuse import Decision
from .settings import RegistrySettings

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog")

__all__ = [
    "CatalogRun",
    "RunReport",
    "RunState",
    "collect_catalog",
    "run_update",
    "update_manifest",
]


class RunState(str, Enum):
    """Lifecycle of a catalog run."""

    START = "start"
    PAGING = "paging"
    DRAINING = "draining"
    DONE = "done"


@dataclass(slots=True)
class RunReport:
    """Outcome and counters of one catalog run."""

    correlation_id: str
    state: RunState = RunState.START
    total_pages: int = 1
    pages_fetched: int = 0
    scheduled: int = 0
    reused: int = 0
    recomputed: int = 0
    cancelled: bool = False
    test_mode: bool = False
    manifest: Optional[Manifest] = None
    manifest_path: Optional[str] = None


class CatalogRun:
    """One pass over the registry catalog."""

    def __init__(
        self,
        settings: RegistrySettings,
        *,
        client: httpx.AsyncClient,
        prior: Mapping[str, OutputRecord],
        token: Optional[CancellationToken] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.prior = prior
        self.token = token or CancellationToken()
        self.result = ResultManifest()
        self.report = RunReport(
            correlation_id=correlation_id or generate_correlation_id(),
            test_mode=settings.test_mode,
        )
        self._tasks: Dict[str, asyncio.Task[Decision]] = {}

    def _extra(self, stage: str, **fields: object) -> Dict[str, object]:
        return {"stage": stage, "correlation_id": self.report.correlation_id, **fields}

    def _transition(self, state: RunState) -> None:
        self.report.state = state
        LOGGER.debug("run state %s", state.value, extra=self._extra("driver"))

    def _schedule(self, entry: CatalogEntry) -> None:
        if entry.key in self._tasks:
            LOGGER.warning(
                "extension %s listed twice, keeping the first listing",
                entry.key,
                extra=self._extra("page", extension_key=entry.key),
            )
            return
        self._tasks[entry.key] = asyncio.create_task(
            resolve_entry(
                entry,
                client=self.client,
                result=self.result,
                prior=self.prior,
                settings=self.settings,
            ),
            name=f"resolve:{entry.key}",
        )
        self.report.scheduled += 1

    async def _page(self) -> None:
        per_page = self.settings.effective_per_page
        page = 1
        while page <= self.report.total_pages:
            if self.token.is_cancelled():
                self.report.cancelled = True
                LOGGER.info(
                    "pagination stopped before page %s", page, extra=self._extra("page")
                )
                break
            LOGGER.info(
                "At page %s/%s", page, self.report.total_pages, extra=self._extra("page")
            )
            response = await fetch_page(self.client, self.settings, page, per_page)
            self.report.pages_fetched += 1
            if page == 1:
                self.report.total_pages = page_count(response.total_results, per_page)
            for entry in response.entries:
                self._schedule(entry)
            if self.settings.test_mode:
                return
            page += 1

    async def _cancel_outstanding(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def _drain(self) -> None:
        LOGGER.info(
            "Waiting for remaining hash calculations (%s extensions)...",
            len(self._tasks),
            extra=self._extra("drain"),
        )
        keys = list(self._tasks)
        outcomes = await asyncio.gather(*self._tasks.values(), return_exceptions=True)

        failures: Dict[str, BaseException] = {}
        unexpected: Optional[BaseException] = None
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, TransferError):
                failures[key] = outcome
            elif isinstance(outcome, BaseException):
                if unexpected is None:
                    unexpected = outcome
            elif outcome is Decision.REUSE:
                self.report.reused += 1
            else:
                self.report.recomputed += 1

        if failures:
            LOGGER.error(
                "%s extensions could not be hashed: %s",
                len(failures),
                ", ".join(sorted(failures)),
                extra=self._extra("drain", failed=sorted(failures)),
            )
        if unexpected is not None:
            raise unexpected
        if failures:
            raise EntryResolutionError(failures)

    async def run(self) -> RunReport:
        """Page, fan out, drain, and return the report with the sorted manifest.

        Raises:
            TransferError: If a catalog page could not be fetched.
            ParseError: If a catalog page could not be parsed.
            EntryResolutionError: If any scheduled extension failed to hash.
        """

        self._transition(RunState.PAGING)
        try:
            await self._page()
        except BaseException:
            await self._cancel_outstanding()
            raise

        if self.settings.test_mode:
            LOGGER.debug(
                "test mode stops after the first page (%s extensions scheduled)",
                self.report.scheduled,
                extra=self._extra("page"),
            )
            await self._cancel_outstanding()
            self._transition(RunState.DONE)
            return self.report

        self._transition(RunState.DRAINING)
        try:
            await self._drain()
        except BaseException:
            await self._cancel_outstanding()
            raise

        self.report.manifest = self.result.sorted_records()
        self._transition(RunState.DONE)
        return self.report


async def collect_catalog(
    settings: RegistrySettings,
    *,
    client: httpx.AsyncClient,
    prior: Optional[Mapping[str, OutputRecord]] = None,
    token: Optional[CancellationToken] = None,
    correlation_id: Optional[str] = None,
) -> RunReport:
    """Run the catalog driver without touching the manifest file."""

    run = CatalogRun(
        settings,
        client=client,
        prior=prior or {},
        token=token,
        correlation_id=correlation_id,
    )
    return await run.run()


async def update_manifest(
    settings: RegistrySettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    token: Optional[CancellationToken] = None,
    handle_interrupts: bool = True,
) -> RunReport:
    """Load the prior manifest, collect the catalog, and rewrite the manifest.

    Nothing is written in test mode or when the run fails.
    """

    manifest_path = settings.manifest_path
    prior = load_manifest(manifest_path)
    token = token or CancellationToken()
    remove_handler = install_interrupt_handler(token) if handle_interrupts else None
    try:
        async with build_async_client(settings, transport=transport) as client:
            report = await collect_catalog(settings, client=client, prior=prior, token=token)
    finally:
        if remove_handler is not None:
            remove_handler()

    if report.manifest is not None:
        report.manifest_path = str(write_manifest(manifest_path, report.manifest))
    return report


def run_update(
    settings: RegistrySettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    token: Optional[CancellationToken] = None,
    handle_interrupts: bool = True,
) -> RunReport:
    """Synchronous wrapper around :func:`update_manifest`."""

    return asyncio.run(
        update_manifest(
            settings,
            transport=transport,
            token=token,
            handle_interrupts=handle_interrupts,
        )
    )
