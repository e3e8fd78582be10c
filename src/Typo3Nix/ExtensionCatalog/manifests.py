"""Load, sort, and persist the ``extensions.json`` manifest."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping

from .errors import ConfigError
from .models import Manifest, OutputRecord

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog")

__all__ = [
    "dumps_manifest",
    "load_manifest",
    "manifest_to_dict",
    "sort_manifest",
    "write_manifest",
]


def sort_manifest(manifest: Mapping[str, OutputRecord]) -> Manifest:
    """Return a copy of ``manifest`` ordered by extension key."""

    return dict(sorted(manifest.items()))


def manifest_to_dict(manifest: Mapping[str, OutputRecord]) -> Dict[str, Dict[str, object]]:
    """Convert ``manifest`` into its key-sorted JSON-ready form."""

    return {key: record.to_dict() for key, record in sort_manifest(manifest).items()}


def dumps_manifest(manifest: Mapping[str, OutputRecord]) -> str:
    """Serialise ``manifest`` as pretty-printed, key-sorted JSON."""

    return json.dumps(manifest_to_dict(manifest), indent=2, ensure_ascii=False)


def load_manifest(path: Path) -> Manifest:
    """Read a previously written manifest.

    A missing file yields an empty manifest.

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object of
            records.
    """

    resolved = path.expanduser()
    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
    except FileNotFoundError:
        LOGGER.info(
            "no prior manifest, hashing every extension",
            extra={"stage": "manifest", "manifest_path": str(resolved)},
        )
        return {}
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to load {resolved}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to open {resolved}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Failed to load {resolved}: top level must be a JSON object")

    manifest: Manifest = {}
    for key, entry in payload.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Failed to load {resolved}: record '{key}' must be an object")
        try:
            manifest[key] = OutputRecord.from_mapping(entry)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Failed to load {resolved}: record '{key}': {exc}") from exc
    LOGGER.info(
        "prior manifest loaded",
        extra={"stage": "manifest", "manifest_path": str(resolved), "entries": len(manifest)},
    )
    return manifest


def write_manifest(path: Path, manifest: Mapping[str, OutputRecord]) -> Path:
    """Replace ``path`` with the key-sorted ``manifest``.

    The document is written to a temporary file beside ``path`` and moved into
    place, so readers never observe a half-written manifest.
    """

    resolved = path.expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(resolved.parent), delete=False
    ) as handle:
        handle.write(dumps_manifest(manifest))
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except (AttributeError, OSError):
            pass
        temp_name = handle.name
    Path(temp_name).replace(resolved)
    LOGGER.info(
        "manifest written",
        extra={"stage": "manifest", "manifest_path": str(resolved), "entries": len(manifest)},
    )
    return resolved
