"""
Per-connection message rate limiter.

Fixed window counter: every inbound message counts against the current
window, whatever its type. Rejected messages are dropped, never queued.
"""

from __future__ import annotations

import time


class FixedWindowRateLimiter:
    """
    Fixed-window counter owned by a single connection.

    - A window opens at ``window_start`` and lasts ``window_seconds``
    - Each call increments the counter; once the window has elapsed the
      counter and start are reset before incrementing
    - A call is admitted while the post-increment count is <= ``max_messages``

    Not thread-safe: it is only touched from the event loop, inside a single
    message handler invocation.
    """

    def __init__(self, max_messages: int, window_seconds: float, now: float | None = None):
        """
        Initialize the rate limiter.

        Args:
            max_messages: Maximum messages admitted per window.
            window_seconds: Window length in seconds.
            now: Optional start time (defaults to time.time()).
        """
        self._max_messages = max_messages
        self._window_seconds = window_seconds

        self.message_count = 0
        self.window_start = now if now is not None else time.time()

        # Metrics
        self._total_allowed = 0
        self._total_rejected = 0

    @property
    def max_messages(self) -> int:
        """Maximum messages admitted per window."""
        return self._max_messages

    @property
    def window_seconds(self) -> float:
        """Window length in seconds."""
        return self._window_seconds

    def is_allowed(self, now: float | None = None) -> bool:
        """
        Count a message and report whether it is admitted.

        Args:
            now: Optional Unix timestamp. If None, uses current time.

        Returns:
            True if the message is within the window's quota.
        """
        if now is None:
            now = time.time()

        if now - self.window_start >= self._window_seconds:
            self.message_count = 0
            self.window_start = now

        self.message_count += 1
        allowed = self.message_count <= self._max_messages
        if allowed:
            self._total_allowed += 1
        else:
            self._total_rejected += 1
        return allowed

    def get_stats(self) -> dict[str, int | float]:
        """Get rate limiter statistics."""
        return {
            "messages_in_window": self.message_count,
            "max_messages_per_window": self._max_messages,
            "window_seconds": self._window_seconds,
            "total_allowed": self._total_allowed,
            "total_rejected": self._total_rejected,
        }
