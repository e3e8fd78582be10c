"""Fetch and parse pages of the registry's extension listing.

The listing endpoint is paginated; the first page reports the total number of
results, from which the driver derives how many pages to walk.  Responses are
validated with pydantic so schema drift surfaces as a :class:`ParseError`
instead of an ``AttributeError`` deep inside a resolver.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ParseError, TransferError
from .models import CatalogEntry, PageResponse
from .settings import RegistrySettings

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog.catalog")

__all__ = ["fetch_page", "listing_url", "page_count", "parse_page"]


class _CurrentVersionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: str
    description: Optional[str] = ""
    typo3_versions: List[int] = Field(default_factory=list)


class _ExtensionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    current_version: _CurrentVersionPayload


class _PagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: int
    page: int
    per_page: int
    extensions: List[_ExtensionPayload] = Field(default_factory=list)


def page_count(total_results: int, per_page: int) -> int:
    """Return how many pages of ``per_page`` entries hold ``total_results``."""

    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    return (max(total_results, 0) + per_page - 1) // per_page


def listing_url(settings: RegistrySettings) -> str:
    """Return the extension listing endpoint."""

    return f"{settings.api_base}/extension"


def parse_page(payload: Union[bytes, str, Mapping[str, object]]) -> PageResponse:
    """Validate a raw listing response and convert it into a :class:`PageResponse`.

    Raises:
        ParseError: If the payload is not JSON or misses required fields.
    """

    try:
        if isinstance(payload, (bytes, str)):
            parsed = _PagePayload.model_validate_json(payload)
        else:
            parsed = _PagePayload.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(f"unexpected extension listing payload: {exc}") from exc

    entries = tuple(
        CatalogEntry(
            key=item.key,
            version=item.current_version.number,
            typo3_versions=tuple(item.current_version.typo3_versions),
            description=item.current_version.description or "",
        )
        for item in parsed.extensions
    )
    return PageResponse(
        total_results=parsed.results,
        page=parsed.page,
        per_page=parsed.per_page,
        entries=entries,
    )


async def fetch_page(
    client: httpx.AsyncClient,
    settings: RegistrySettings,
    page: int,
    per_page: int,
) -> PageResponse:
    """Request page ``page`` (1-based) of the listing with ``per_page`` entries.

    Raises:
        TransferError: On network failure or a non-success status.
        ParseError: If the response body does not match the listing schema.
    """

    url = listing_url(settings)
    try:
        response = await client.get(url, params={"page": page, "per_page": per_page})
    except httpx.HTTPError as exc:
        raise TransferError(f"Failed to read search page {page}: {exc}", url=url) from exc
    if response.is_error:
        raise TransferError(
            f"Failed to read search page {page}: HTTP {response.status_code}",
            url=str(response.request.url),
            status_code=response.status_code,
        )

    result = parse_page(response.content)
    LOGGER.debug(
        "catalog page fetched",
        extra={"stage": "page", "page": page, "entries": len(result.entries)},
    )
    return result
