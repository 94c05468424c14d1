"""
Rollback registry.

Steps that create remote side effects register a compensating action.
If a later step fails, every registered action runs concurrently and
best-effort: failures are logged as warnings and never change the run's
outcome.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)

RollbackFunction = Callable[[logging.Logger], None]

DEFAULT_MAX_WORKERS = 4


class RollbackRegistry:
    """Append-only collection of compensating actions."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, timeout: float | None = None):
        """
        Args:
            max_workers: Thread pool size used when rolling back
            timeout: Upper bound in seconds to wait for all actions
        """
        self.max_workers = max_workers
        self.timeout = timeout
        self._functions: list[RollbackFunction] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._functions)

    def register(self, function: RollbackFunction) -> None:
        """Register a compensating action. Safe to call from worker threads."""
        with self._lock:
            self._functions.append(function)

    def execute(self, log: logging.Logger | None = None) -> int:
        """
        Run every registered action concurrently and wait for them.

        Returns:
            Number of actions that raised
        """
        log = log or logger
        with self._lock:
            functions = list(self._functions)

        log.info(f"Invoking rollback functions (count={len(functions)})")
        if not functions:
            return 0

        failures = 0
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures = [executor.submit(function, log) for function in functions]
            done, not_done = wait(futures, timeout=self.timeout)
            for future in done:
                error = future.exception()
                if error is not None:
                    failures += 1
                    log.warning(f"Failed to cleanup resource: {error}")
            if not_done:
                failures += len(not_done)
                log.warning(f"{len(not_done)} rollback functions did not finish before the timeout")
        finally:
            # Don't block on stragglers once the timeout has expired
            executor.shutdown(wait=False, cancel_futures=True)
        return failures
