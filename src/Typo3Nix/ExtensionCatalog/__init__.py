# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog",
#   "purpose": "Package initialization for Typo3Nix.ExtensionCatalog",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the TYPO3 extension catalog used to build Nix manifests.

The package pages through the TYPO3 Extension Repository, hashes each
extension's current zip artifact (reusing hashes recorded in a previous
``extensions.json`` when the version is unchanged), and writes a key-sorted
manifest for downstream package builds.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

__version__ = "0.1.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "CancellationToken": (".cancellation", "CancellationToken"),
    "CatalogEntry": (".models", "CatalogEntry"),
    "ConfigError": (".errors", "ConfigError"),
    "EntryResolutionError": (".errors", "EntryResolutionError"),
    "ExtensionCatalogError": (".errors", "ExtensionCatalogError"),
    "OutputRecord": (".models", "OutputRecord"),
    "ParseError": (".errors", "ParseError"),
    "RegistrySettings": (".settings", "RegistrySettings"),
    "RunReport": (".pipeline", "RunReport"),
    "TransferError": (".errors", "TransferError"),
    "collect_catalog": (".pipeline", "collect_catalog"),
    "load_manifest": (".manifests", "load_manifest"),
    "load_settings": (".settings", "load_settings"),
    "run_update": (".pipeline", "run_update"),
    "write_manifest": (".manifests", "write_manifest"),
}

__all__ = ["__version__", *sorted(_EXPORTS)]


def __getattr__(name: str) -> Any:
    """Lazily import API exports so ``__version__`` is importable on its own."""

    target = _EXPORTS.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(target[0], __name__)
    value = getattr(module, target[1])
    globals()[name] = value
    return value
