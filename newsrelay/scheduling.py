"""Single-threaded timer queue for deferred callbacks."""

import heapq
import itertools
import time
from collections.abc import Callable

from .logging_config import create_execution_logger


class Scheduler:
    """Runs callbacks after a delay, on the caller's thread.

    Nothing runs by itself: the owner drives the queue with ``run_pending``
    or ``run_until_idle``. Callbacks scheduled for the same time run in the
    order they were scheduled.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        execution_id: str | None = None,
    ):
        self.clock = clock
        self.sleep = sleep
        self.logger = create_execution_logger("scheduler", execution_id)
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        """Queue ``callback`` to run ``delay`` seconds from now."""
        due = self.clock() + max(delay, 0.0)
        heapq.heappush(self._queue, (due, next(self._counter), callback))

    def call_soon(self, callback: Callable[[], None]) -> None:
        self.call_later(0.0, callback)

    def pending(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        """Run every callback that is already due.

        Returns:
            Number of callbacks run
        """
        ran = 0
        while self._queue and self._queue[0][0] <= self.clock():
            _, _, callback = heapq.heappop(self._queue)
            self._run(callback)
            ran += 1
        return ran

    def run_until_idle(self) -> int:
        """Run callbacks, sleeping until each is due, until the queue is empty."""
        ran = 0
        while self._queue:
            wait = self._queue[0][0] - self.clock()
            if wait > 0:
                self.sleep(wait)
            ran += self.run_pending()
        return ran

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            self.logger.exception(f"Scheduled callback failed: {e}", error=str(e))
