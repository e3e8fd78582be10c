"""Cooperative cancellation for the catalog pagination loop.

An interrupt does not abort anything: it only sets a :class:`CancellationToken`
which the driver checks before requesting the next page.  Resolver tasks that
were already scheduled keep running and are drained, so the manifest written
at the end still covers every page that was fetched.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from typing import Callable, Optional, Sequence

LOGGER = logging.getLogger("Typo3Nix.ExtensionCatalog")

INTERRUPT_NOTICE = "Quitting after this page"

__all__ = ["CancellationToken", "INTERRUPT_NOTICE", "install_interrupt_handler"]


class CancellationToken:
    """Thread-safe, set-once cancellation flag.

    Examples:
        >>> token = CancellationToken()
        >>> token.cancel()
        True
        >>> token.cancel()
        False
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        """Initialize a token in the not-cancelled state."""
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            True if this call flipped the token, False if it was already set.
        """
        with self._lock:
            if self._is_cancelled.is_set():
                return False
            self._is_cancelled.set()
            return True

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()


def install_interrupt_handler(
    token: CancellationToken,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    *,
    signals: Sequence[int] = (signal.SIGINT,),
    notice: Callable[[str], None] = LOGGER.warning,
) -> Callable[[], None]:
    """Cancel ``token`` on the first of ``signals`` and emit ``notice`` once.

    Uses ``loop.add_signal_handler`` where supported and falls back to
    :func:`signal.signal` otherwise (Windows event loops).

    Returns:
        A callable that removes the handlers again.
    """

    def _on_signal(*_: object) -> None:
        if token.cancel():
            notice(INTERRUPT_NOTICE)

    loop = loop or asyncio.get_running_loop()
    removers: list[Callable[[], None]] = []
    for signum in signals:
        try:
            loop.add_signal_handler(signum, _on_signal)
        except (NotImplementedError, RuntimeError):
            previous = signal.signal(signum, _on_signal)
            removers.append(lambda signum=signum, previous=previous: signal.signal(signum, previous))
        else:
            removers.append(lambda signum=signum: loop.remove_signal_handler(signum))

    def _remove() -> None:
        for remover in removers:
            remover()

    return _remove
