# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog.net",
#   "purpose": "Build the authenticated HTTPX client shared by page fetches and digest streams",
#   "sections": [
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Authenticated HTTPX client used for every registry request."""

from __future__ import annotations

import logging
import ssl
from typing import Optional

import certifi
import httpx

from . import __version__
from .settings import RegistrySettings

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog.net")

USER_AGENT = f"typo3nix-extensions/{__version__}"

__all__ = ["USER_AGENT", "build_async_client"]

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _timeout_for(settings: RegistrySettings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.connect_timeout_sec,
        read=settings.read_timeout_sec,
        write=settings.read_timeout_sec,
        pool=None,
    )


def _limits_for(settings: RegistrySettings) -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=min(20, settings.max_connections),
    )


async def _response_hook(response: httpx.Response) -> None:
    LOGGER.debug(
        "registry-http-response",
        extra={
            "url": str(response.request.url),
            "status": response.status_code,
        },
    )


# --- Public API ----------------------------------------------------------------


def build_async_client(
    settings: RegistrySettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Return an ``httpx.AsyncClient`` carrying the registry credentials.

    ``transport`` replaces the network transport, which tests use to plug in
    an ``httpx.MockTransport``.  Pool acquisition never times out because the
    resolver fan-out is unbounded and tasks simply queue for a connection.
    """

    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = _build_ssl_context()
    return httpx.AsyncClient(
        auth=httpx.BasicAuth(*settings.credentials()),
        headers={"User-Agent": USER_AGENT},
        timeout=_timeout_for(settings),
        limits=_limits_for(settings),
        follow_redirects=True,
        trust_env=True,
        event_hooks={"response": [_response_hook]},
        **kwargs,
    )
