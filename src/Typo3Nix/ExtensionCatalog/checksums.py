"""Integrity string helpers and the streaming artifact digester.

Extension archives can be large, so hashes are computed while the response
body streams in: each chunk is fed to a running SHA-256 accumulator and then
discarded.  Results are rendered as Subresource-Integrity style strings
(``sha256-<base64>``) which carry their algorithm with them so downstream
consumers can verify provenance without guessing.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
from typing import Tuple

import httpx

from .errors import ParseError, TransferError
from .settings import DEFAULT_CHUNK_SIZE

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog.checksums")

INTEGRITY_ALGORITHM = "sha256"
_DIGEST_SIZES = {"sha256": 32, "sha384": 48, "sha512": 64}
_INTEGRITY_PATTERN = re.compile(r"^(?P<algorithm>[a-z0-9]+)-(?P<digest>[A-Za-z0-9+/]+={0,2})$")

__all__ = [
    "INTEGRITY_ALGORITHM",
    "compute_integrity",
    "format_integrity",
    "parse_integrity",
]


def format_integrity(algorithm: str, digest: bytes) -> str:
    """Render ``digest`` as ``<algorithm>-<base64>``."""

    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"


def parse_integrity(value: str) -> Tuple[str, bytes]:
    """Split an integrity string into its algorithm and raw digest bytes.

    Raises:
        ParseError: If the string is not ``<algorithm>-<base64>`` for a
            supported algorithm with a digest of the matching length.
    """

    match = _INTEGRITY_PATTERN.match(value.strip())
    if not match:
        raise ParseError(f"malformed integrity string '{value}'")
    algorithm = match.group("algorithm")
    if algorithm not in _DIGEST_SIZES:
        raise ParseError(f"unsupported integrity algorithm '{algorithm}'")
    try:
        digest = base64.b64decode(match.group("digest"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"integrity digest is not valid base64: {value}") from exc
    if len(digest) != _DIGEST_SIZES[algorithm]:
        raise ParseError(
            f"{algorithm} digest must be {_DIGEST_SIZES[algorithm]} bytes, got {len(digest)}"
        )
    return algorithm, digest


async def compute_integrity(
    client: httpx.AsyncClient,
    url: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Stream ``url`` through SHA-256 and return its integrity string.

    Only one chunk of the body is held at a time.  Authentication comes from
    ``client``.

    Raises:
        TransferError: On connection failures, timeouts, or a non-success
            status code.
    """

    hasher = hashlib.new(INTEGRITY_ALGORITHM)
    total_bytes = 0
    try:
        async with client.stream("GET", url) as response:
            if response.is_error:
                raise TransferError(
                    f"GET {url} returned HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
            async for chunk in response.aiter_bytes(chunk_size):
                hasher.update(chunk)
                total_bytes += len(chunk)
    except httpx.HTTPError as exc:
        raise TransferError(f"GET {url} failed: {exc}", url=url) from exc

    LOGGER.debug(
        "artifact hashed",
        extra={"stage": "hash", "url": url, "bytes": total_bytes},
    )
    return format_integrity(INTEGRITY_ALGORITHM, hasher.digest())
