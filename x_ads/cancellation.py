"""
Cooperative cancellation shared by retry loops, pagination and media polling.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from x_ads.exceptions import OperationCancelled


@dataclass(slots=True)
class CancellationToken:
    """Cancel flag with an optional deadline on the monotonic clock."""

    deadline: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic)
    _event: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CancellationToken":
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and self.clock() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""

        if self.deadline is None:
            return None
        return max(self.deadline - self.clock(), 0.0)

    def raise_if_cancelled(self, action: str = "operation") -> None:
        if not self.cancelled:
            return
        if self._event.is_set():
            raise OperationCancelled(f"{action} was cancelled.")
        raise OperationCancelled(f"{action} exceeded its deadline.")


def check_cancelled(token: CancellationToken | None, action: str = "operation") -> None:
    """Raise :class:`OperationCancelled` when ``token`` is set; ``None`` never cancels."""

    if token is not None:
        token.raise_if_cancelled(action)
