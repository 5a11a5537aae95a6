"""Deadline tracking for long-running commands."""

import threading
import time
from typing import Callable, Optional, TypeVar

from ..errors import DeadlineExceeded


T = TypeVar('T')


class Deadline:
    """A point in time after which a command gives up."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, operation: str):
        """Raise DeadlineExceeded if the deadline has passed."""
        if self.expired:
            raise DeadlineExceeded(f"{operation}: deadline of {self.seconds}s exceeded")

    def timeout(self, limit: Optional[float] = None) -> float:
        """Seconds a single blocking call may take."""
        remaining = self.remaining()
        if limit is None:
            return remaining
        return min(remaining, limit)

    def run(self, func: Callable[[], T], operation: str) -> T:
        """Call func, giving up once the deadline passes.

        func runs on a daemon thread so a call with no timeout of its own
        (an engine stream that stops sending events) cannot block the
        command. An abandoned call is left to finish or die with the process.
        """
        self.check(operation)
        outcome = {}

        def target():
            try:
                outcome["result"] = func()
            except BaseException as e:
                outcome["error"] = e

        worker = threading.Thread(target=target, name=f"regsync {operation}", daemon=True)
        worker.start()
        worker.join(self.remaining())

        if worker.is_alive():
            raise DeadlineExceeded(f"{operation}: deadline of {self.seconds}s exceeded")
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")
