"""Shared fixtures for the extension_catalog test suite."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import httpx
import pytest

from Typo3Nix.ExtensionCatalog.cancellation import CancellationToken
from Typo3Nix.ExtensionCatalog.models import OutputRecord
from Typo3Nix.ExtensionCatalog.net import build_async_client
from Typo3Nix.ExtensionCatalog.pipeline import RunReport, collect_catalog
from Typo3Nix.ExtensionCatalog.settings import ENV_PREFIX, RegistrySettings
from Typo3Nix.ExtensionCatalog.testing import FakeRegistry, make_settings


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ambient ``TYPO3NIX_*`` variables from leaking into settings."""

    for name in list(os.environ):
        if name.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("Typo3Nix.ExtensionCatalog")
    for handler in list(logger.handlers):
        if getattr(handler, "_typo3nix_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    return tmp_path / "extensions.json"


@pytest.fixture
def settings(manifest_path: Path) -> RegistrySettings:
    return make_settings(manifest_path=manifest_path)


def run_collect(
    settings: RegistrySettings,
    transport: httpx.AsyncBaseTransport,
    *,
    prior: Optional[Mapping[str, OutputRecord]] = None,
    token: Optional[CancellationToken] = None,
) -> RunReport:
    """Run the catalog driver against ``transport`` and return its report."""

    async def _run() -> RunReport:
        async with build_async_client(settings, transport=transport) as client:
            return await collect_catalog(settings, client=client, prior=prior, token=token)

    return asyncio.run(_run())


@pytest.fixture
def collect():
    """Expose :func:`run_collect` to tests."""

    return run_collect
