"""Cooperative cancellation shared by every poll loop and worker.

A CancelToken is created once per command and threaded through the whole
call tree. Child tokens observe their parent, so cancelling a run also
cancels every narrower scope derived from it, but not the reverse.
"""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from types import FrameType

from iacctl.contracts import OperationCancelled

# Upper bound on a single wait slice, so parent cancellation is noticed promptly
_WAIT_SLICE_SECONDS = 0.1


class CancelToken:
    """Cancellation flag with an optional deadline and parent.

    Usage:
        token = CancelToken()
        while not token.wait(interval):
            poll()
        # wait() returned True: cancelled

    Args:
        parent: Token whose cancellation also cancels this one
        timeout: Seconds from now after which the token counts as cancelled
    """

    def __init__(self, parent: CancelToken | None = None, *, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "context cancelled"

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "context deadline exceeded"
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str:
        if self._parent is not None and self._parent.cancelled and not self._event.is_set():
            return self._parent.reason
        return self._reason

    def cancel(self, reason: str = "context cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def child(self, *, timeout: float | None = None) -> CancelToken:
        return CancelToken(self, timeout=timeout)

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning early if cancelled.

        Returns:
            True if the token is cancelled, False if the time elapsed
        """
        end = time.monotonic() + seconds
        while True:
            if self.cancelled:
                return True
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            if self._deadline is not None:
                remaining = min(remaining, max(self._deadline - time.monotonic(), 0.0))
            if self._event.wait(min(remaining, _WAIT_SLICE_SECONDS)):
                return True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled(self.reason)


@contextmanager
def cancel_on_signals(
    token: CancelToken,
    on_signal: Callable[[], None] | None = None,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancelToken]:
    """Cancel `token` when the process receives SIGINT or SIGTERM.

    Previous handlers are restored on exit. Signal handlers can only be
    installed from the main thread; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, frame: FrameType | None) -> None:
        if on_signal is not None:
            on_signal()
        token.cancel("interrupted")

    previous = {sig: signal.getsignal(sig) for sig in signals}
    for sig in signals:
        signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
