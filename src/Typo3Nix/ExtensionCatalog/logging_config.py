"""
Structured Logging Utilities

This module centralizes logging setup for the extension catalog. It provides
helpers for masking sensitive fields, emitting JSON log records, and tagging
each run with a correlation identifier so that log lines from concurrent
resolver tasks can be grouped afterwards.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

LOGGER_NAME = "Typo3Nix.ExtensionCatalog"
_SENSITIVE_KEYS = {"authorization", "password", "secret", "token", "credentials"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Args:
        payload: Arbitrary key-value pairs that may contain registry
            credentials or authorization headers.

    Returns:
        Copy of the payload where secret fields are replaced with
        `***masked***`.

    Examples:
        >>> mask_sensitive_data({"password": "hunter2", "status": "ok"})
        {'password': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and value.lower().startswith("basic "):
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def generate_correlation_id() -> str:
    """Create a short identifier linking the log entries of one run.

    Examples:
        >>> cid = generate_correlation_id()
        >>> len(cid)
        12
    """
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    _FIELDS = ("correlation_id", "stage", "extension_key", "url", "page", "status")

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a logging record into a JSON line."""
        now = datetime.now(timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self._FIELDS:
            log_obj[name] = getattr(record, name, None)
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure console and optional JSON file logging for the catalog.

    Args:
        level: Console and logger level name.
        log_dir: When given, JSON lines are also written to a rotating
            ``typo3nix-YYYYMMDD.jsonl`` file in this directory.

    Returns:
        The configured package logger.

    Examples:
        >>> logger = setup_logging("WARNING")
        >>> logger.name
        'Typo3Nix.ExtensionCatalog'
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_typo3nix_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._typo3nix_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if log_dir is not None:
        log_dir = log_dir.expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"typo3nix-{today}.jsonl",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._typo3nix_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = [
    "JSONFormatter",
    "LOGGER_NAME",
    "generate_correlation_id",
    "mask_sensitive_data",
    "setup_logging",
]
