"""Fire-and-forget log output for discovered steps.

Each step gets one daemon thread. Failures are printed and logged but never
reach the walker; the walk must not stop because one step's log was
unreadable.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

import structlog
import typer

from iacctl.contracts import ExecutionNode, IacctlError
from iacctl.core.cancel import CancelToken

STEP_BANNER = "========================== Starting step %s =========================="

logger = structlog.get_logger()


class StepLogReader(Protocol):
    def blob(self, key: str) -> int: ...

    def tail(self, key: str, cancel: CancelToken | None = None) -> None: ...


class LogAttacher:
    """Starts and tracks per-step log tasks.

    Args:
        logs: Log client with the run's token already set
        cancel: Run-wide cancel token, handed to live tails
        echo: Output sink for banners and errors
    """

    def __init__(
        self,
        logs: StepLogReader,
        cancel: CancelToken,
        *,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self._logs = logs
        self._cancel = cancel
        self._echo = echo
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def attach(self, step: ExecutionNode, *, live: bool) -> threading.Thread:
        """Start printing `step`'s log in the background.

        Live steps fall back to tailing when the blob is empty or unreadable;
        finished steps only get the blob.
        """
        thread = threading.Thread(
            target=self._run,
            args=(step, live),
            name=f"log-{step.uuid}",
            daemon=True,
        )
        with self._lock:
            self._threads.append(thread)
        thread.start()
        return thread

    def _run(self, step: ExecutionNode, live: bool) -> None:
        self._echo(STEP_BANNER % step.name)
        key = step.log_key
        try:
            if not live:
                self._logs.blob(key)
                return
            try:
                lines = self._logs.blob(key)
            except IacctlError as e:
                logger.debug("Log blob unavailable, tailing", step=step.uuid, error=str(e))
                lines = 0
            if lines < 1:
                self._logs.tail(key, self._cancel)
        except Exception as e:
            # Thread boundary: nothing above us can handle this
            logger.warning("Log attachment failed", step=step.uuid, key=key, error=str(e))
            self._echo(str(e))

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())

    def drain(self, timeout: float) -> bool:
        """Wait up to `timeout` seconds for all started tasks.

        Returns:
            True if every task finished, False if some are still running
        """
        deadline = time.monotonic() + timeout
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            thread.join(remaining)
        still_running = sum(1 for t in threads if t.is_alive())
        if still_running:
            logger.warning("Log tasks still running after drain", pending=still_running)
        return still_running == 0
