"""Decide whether a previously computed artifact hash can be carried forward."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .models import CatalogEntry, OutputRecord

__all__ = ["Decision", "decide"]


class Decision(str, Enum):
    """Outcome of comparing a prior manifest record with a fresh catalog entry."""

    REUSE = "reuse"
    RECOMPUTE = "recompute"


def decide(old: Optional[OutputRecord], entry: CatalogEntry) -> Decision:
    """Return :attr:`Decision.REUSE` when ``old`` still describes ``entry``.

    Versions are compared as plain strings; ``1.0`` and ``1.0.0`` differ.
    An empty stored hash never counts as reusable.
    """

    if old is not None and old.version == entry.version and old.hash:
        return Decision.REUSE
    return Decision.RECOMPUTE
