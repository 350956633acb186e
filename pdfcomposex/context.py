"""Cancellation and deadline handling for long-running operations."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError, OperationTimedOutError


class CancellationContext:
    """Carries a cancellation flag and an optional deadline.

    Contexts form a chain: a child created with :meth:`with_timeout` is done
    as soon as its parent is, and its deadline never extends past the
    parent's.
    """

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        parent: Optional["CancellationContext"] = None,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> "CancellationContext":
        """Return a context that is never cancelled and has no deadline."""

        return cls()

    def with_timeout(self, seconds: float) -> "CancellationContext":
        return CancellationContext(timeout=seconds, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent.cancelled if self._parent is not None else False

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` without one."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_done(self) -> None:
        # Explicit cancellation wins over an expired deadline.
        if self.cancelled:
            raise OperationCancelledError()
        if self.expired:
            raise OperationTimedOutError()


__all__ = ["CancellationContext"]
