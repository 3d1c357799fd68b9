"""Cooperative cancellation for long-running conversions.

The scanner, the level builder and the consolidator poll a shared
:class:`CancellationToken` inside their loops instead of being interrupted,
so workers always stop on an item boundary and never leave a half-written
table behind.
"""

import threading
from typing import Optional


class CancellationToken:
    """Thread-safe cancellation flag.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    def reset(self) -> None:
        """Reset the token; only meant for tests and controlled reuse."""
        with self._lock:
            self._is_cancelled.clear()


def is_cancelled(token: Optional[CancellationToken]) -> bool:
    """Null-safe cancellation check."""
    return token is not None and token.is_cancelled()
