"""Tests for the cooperative cancellation token and interrupt handler."""

import asyncio
import signal
import sys

import pytest

from Typo3Nix.ExtensionCatalog.cancellation import (
    INTERRUPT_NOTICE,
    CancellationToken,
    install_interrupt_handler,
)


def test_token_is_set_once() -> None:
    token = CancellationToken()
    assert not token.is_cancelled()

    assert token.cancel() is True
    assert token.cancel() is False
    assert token.is_cancelled()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal delivery")
def test_interrupt_sets_token_and_notifies_once() -> None:
    token = CancellationToken()
    notices = []

    async def _run() -> None:
        remove = install_interrupt_handler(token, notice=notices.append)
        try:
            signal.raise_signal(signal.SIGINT)
            await asyncio.sleep(0.05)
            signal.raise_signal(signal.SIGINT)
            await asyncio.sleep(0.05)
        finally:
            remove()

    asyncio.run(_run())

    assert token.is_cancelled()
    assert notices == [INTERRUPT_NOTICE]
