"""
Request context - Cancellation and deadline token for registry calls.

Every registry operation receives a RequestContext from its caller. Storage
adapters check it before touching the store and derive statement timeouts
from the remaining time, so a cancelled or expired request fails without
side effects.
"""

import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import DeadlineExceeded


@dataclass
class RequestContext:
    """Per-request identifier plus optional monotonic deadline."""

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)
    _callbacks: list[Callable[[], None]] = field(default_factory=list, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def with_timeout(cls, seconds: float, request_id: str | None = None) -> "RequestContext":
        """Create a context that expires ``seconds`` from now."""
        ctx = cls(deadline=time.monotonic() + seconds)
        if request_id is not None:
            ctx.request_id = request_id
        return ctx

    def cancel(self) -> None:
        """Mark the request cancelled and abort any in-flight work registered via on_cancel."""
        with self._lock:
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run when the request is cancelled.

        Runs immediately if the request is already cancelled.

        Returns:
            Function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def done(self) -> bool:
        if self._cancelled.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        """
        Raise DeadlineExceeded if the request can no longer proceed.

        Raises:
            DeadlineExceeded: If cancelled or past the deadline
        """
        if self._cancelled.is_set():
            raise DeadlineExceeded(f"request {self.request_id} cancelled")
        if self.done():
            raise DeadlineExceeded(f"request {self.request_id} deadline exceeded")

    def as_dict(self) -> dict[str, Any]:
        return {"request_id": self.request_id}
