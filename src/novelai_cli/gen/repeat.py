from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .types import GenerationResult

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe cancellation flag with an interruptible wait."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


class AutoRepeat:
    """Run the same generation over and over until cancelled.

    ``run_once`` is called with the loop's cancel token and must return a
    ``GenerationResult``. The flag is checked before each run; a run that has
    started always completes. ``max_runs=None`` repeats until cancelled.
    """

    def __init__(
        self,
        run_once: Callable[[CancelToken], GenerationResult],
        interval_sec: float = 0.0,
        max_runs: Optional[int] = None,
        stop_on_error: bool = False,
        token: Optional[CancelToken] = None,
    ):
        if interval_sec < 0:
            raise ValueError("interval_sec must be >= 0")
        if max_runs is not None and max_runs < 1:
            raise ValueError("max_runs must be >= 1 or None")
        self._run_once = run_once
        self.interval_sec = interval_sec
        self.max_runs = max_runs
        self.stop_on_error = stop_on_error
        self.token = token or CancelToken()

    def cancel(self) -> None:
        self.token.cancel()

    def run(self, on_result: Optional[Callable[[int, GenerationResult], None]] = None) -> list[GenerationResult]:
        results: list[GenerationResult] = []
        while not self.token.cancelled:
            if self.max_runs is not None and len(results) >= self.max_runs:
                break

            result = self._run_once(self.token)
            results.append(result)
            if on_result is not None:
                on_result(len(results), result)

            if not result.success and self.stop_on_error:
                logger.info("Stopping auto-repeat after failed run %d", len(results))
                break
            if self.max_runs is not None and len(results) >= self.max_runs:
                break
            if self.interval_sec and self.token.wait(self.interval_sec):
                break

        logger.debug("Auto-repeat finished after %d runs", len(results))
        return results
