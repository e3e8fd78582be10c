"""In-memory registry for exercising the catalog pipeline without a network.

:class:`FakeRegistry` answers listing and download requests through an
``httpx.MockTransport`` and records every request, which lets tests assert
how many artifacts were actually streamed.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

import httpx

from .checksums import format_integrity
from .settings import DEFAULT_API_BASE, DEFAULT_DOWNLOAD_BASE, RegistrySettings

__all__ = [
    "FakeExtension",
    "FakeRegistry",
    "RequestRecord",
    "make_settings",
]


def make_settings(**overrides: object) -> RegistrySettings:
    """Return settings with dummy credentials suitable for tests."""

    values: Dict[str, object] = {"user": "tester", "password": "secret"}
    values.update(overrides)
    return RegistrySettings(**values)


@dataclass
class RequestRecord:
    """Captured HTTP request issued against the fake registry."""

    method: str
    path: str
    params: Mapping[str, str]
    headers: Mapping[str, str]


@dataclass
class FakeExtension:
    """One extension published by the fake registry."""

    key: str
    version: str
    typo3_versions: Sequence[int] = (12, 13)
    description: str = ""
    payload: Optional[bytes] = None

    def artifact(self) -> bytes:
        if self.payload is not None:
            return self.payload
        return f"{self.key}-{self.version}.zip".encode("utf-8")

    def integrity(self) -> str:
        """Integrity string the pipeline should compute for this artifact."""

        return format_integrity("sha256", hashlib.sha256(self.artifact()).digest())

    def to_listing(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "current_version": {
                "number": self.version,
                "description": self.description,
                "typo3_versions": list(self.typo3_versions),
            },
        }


@dataclass
class FakeRegistry:
    """Registry double serving paged listings and zip downloads.

    ``failing_downloads`` holds keys whose downloads answer HTTP 500;
    ``failing_pages`` holds page numbers whose listing answers HTTP 503.
    """

    extensions: List[FakeExtension] = field(default_factory=list)
    api_base: str = DEFAULT_API_BASE
    download_base: str = DEFAULT_DOWNLOAD_BASE
    failing_downloads: Set[str] = field(default_factory=set)
    failing_pages: Set[int] = field(default_factory=set)
    malformed_pages: Set[int] = field(default_factory=set)
    requests: List[RequestRecord] = field(default_factory=list)

    def add(self, key: str, version: str, **kwargs: object) -> FakeExtension:
        extension = FakeExtension(key=key, version=version, **kwargs)  # type: ignore[arg-type]
        self.extensions.append(extension)
        return extension

    def get(self, key: str) -> FakeExtension:
        for extension in self.extensions:
            if extension.key == key:
                return extension
        raise KeyError(key)

    # --- request bookkeeping -------------------------------------------------

    def listing_requests(self) -> List[RequestRecord]:
        return [record for record in self.requests if record.path.endswith("/extension")]

    def download_requests(self, key: Optional[str] = None) -> List[RequestRecord]:
        records = [record for record in self.requests if record.path.endswith("/zip")]
        if key is not None:
            records = [record for record in records if record.path.split("/")[-3] == key]
        return records

    # --- transport -----------------------------------------------------------

    def _listing(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "50"))
        if page in self.failing_pages:
            return httpx.Response(503, text="listing unavailable")
        if page in self.malformed_pages:
            return httpx.Response(200, content=b"<html>maintenance</html>")
        start = (page - 1) * per_page
        window = self.extensions[start : start + per_page]
        body = {
            "results": len(self.extensions),
            "page": page,
            "per_page": per_page,
            "extensions": [extension.to_listing() for extension in window],
        }
        return httpx.Response(200, content=json.dumps(body).encode("utf-8"))

    def _download(self, key: str, version: str) -> httpx.Response:
        if key in self.failing_downloads:
            return httpx.Response(500, text="download failed")
        for extension in self.extensions:
            if extension.key == key and extension.version == version:
                return httpx.Response(200, content=extension.artifact())
        return httpx.Response(404, text="no such artifact")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(
            RequestRecord(
                method=request.method,
                path=request.url.path,
                params=dict(request.url.params),
                headers=dict(request.headers),
            )
        )
        path = request.url.path
        if path == f"{httpx.URL(self.api_base).path.rstrip('/')}/extension":
            return self._listing(request)
        download_prefix = f"{httpx.URL(self.download_base).path.rstrip('/')}/"
        if path.startswith(download_prefix) and path.endswith("/zip"):
            key, version = _split_download(path[len(download_prefix) :])
            return self._download(key, version)
        return httpx.Response(404, text="unknown endpoint")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _split_download(tail: str) -> Tuple[str, str]:
    key, version, _ = tail.split("/", 2)
    return key, version
