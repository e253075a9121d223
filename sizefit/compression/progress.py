"""Progress reporting and cancellation for solve calls."""

import threading
from typing import Callable, Optional

ProgressCallback = Optional[Callable[[int], None]]


class MonotonicProgress:
    """Wrap a progress sink so it only ever sees rising values in [0, 100].

    A None sink turns every report into a no-op.
    """

    def __init__(self, callback: ProgressCallback = None):
        self._callback = callback
        self._last = 0

    @property
    def last(self) -> int:
        return self._last

    def report(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        percent = max(percent, self._last)
        self._last = percent

        if self._callback is not None:
            self._callback(percent)

    def report_attempts(self, attempts_used: int, max_attempts: int) -> None:
        """Report progress as the share of the attempt budget consumed."""
        self.report(round(attempts_used / max_attempts * 100))


class CancellationToken:
    """Flag checked by the solver before every encoder call.

    Safe to set from another thread (a GUI callback, a signal handler).
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
