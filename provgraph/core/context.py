"""Per-call cancellation and deadline signal threaded through backend calls."""
import threading
import time
from dataclasses import dataclass
from dataclasses import field

from provgraph.core.errors import QueryCancelled


@dataclass
class QueryContext:
    """
    Cooperative cancellation for one contract call.

    Backends call `check()` between storage steps so a cancelled or expired
    request stops promptly instead of running to completion.
    """
    timeout: float | None = None
    start_time: float = field(default_factory=time.monotonic)
    _cancelled: threading.Event = field(default_factory=threading.Event)

    @property
    def deadline(self) -> float | None:
        if self.timeout is None:
            return None
        return self.start_time + self.timeout

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        if self.cancelled:
            raise QueryCancelled('Query cancelled by caller')
        if self.expired:
            raise QueryCancelled(f"Query exceeded timeout of {self.timeout}s")


def background() -> QueryContext:
    """A context that is never cancelled and has no deadline."""
    return QueryContext()
