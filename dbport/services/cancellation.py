"""Cooperative cancellation for long-running export and import calls."""

import threading
import time
from typing import Optional

from ..exceptions import OperationCancelledError


class CancellationToken:
    """
    Flag and optional deadline checked between tables and batches.

    The invoking layer owns the token; the core only calls check().
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: Seconds from now after which the operation is cancelled
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + deadline if deadline is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def check(self, where: str = "") -> None:
        """Raise OperationCancelledError if cancelled or past the deadline."""
        if not self.cancelled:
            return
        reason = "deadline exceeded" if self.expired and not self._event.is_set() else "cancelled"
        raise OperationCancelledError(
            f"Operation {reason}",
            context=where or None,
        )
