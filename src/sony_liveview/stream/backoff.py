"""
Reconnect Backoff
=================

Exponential backoff with a cap and an optional attempt limit.
"""

from sony_liveview.config import ReconnectConfig


class ReconnectBackoff:
    """
    Delay schedule for reconnect attempts.

    Attempt n (1-based) waits initial_ms * multiplier ** (n - 1),
    capped at max_ms.

    Attributes:
        initial_ms: Delay before the first reconnect
        max_ms: Upper bound on any delay
        multiplier: Growth factor between attempts
        max_attempts: Attempts allowed before giving up (0 = unlimited)
    """

    def __init__(
        self,
        initial_ms: int = 500,
        max_ms: int = 10_000,
        multiplier: float = 2.0,
        max_attempts: int = 0,
    ) -> None:
        if initial_ms < 0 or max_ms < initial_ms:
            raise ValueError("require 0 <= initial_ms <= max_ms")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")

        self.initial_ms = initial_ms
        self.max_ms = max_ms
        self.multiplier = multiplier
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, config: ReconnectConfig) -> "ReconnectBackoff":
        return cls(
            initial_ms=config.backoff_ms,
            max_ms=config.max_backoff_ms,
            multiplier=config.multiplier,
            max_attempts=config.max_attempts,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait before the given attempt."""
        if attempt < 1:
            return 0.0
        # Exponent is bounded so unlimited retries cannot overflow a float
        exponent = min(attempt - 1, 64)
        delay_ms = min(self.initial_ms * self.multiplier ** exponent, self.max_ms)
        return delay_ms / 1000.0

    def exhausted(self, attempt: int) -> bool:
        """Whether the given attempt exceeds the limit."""
        return self.max_attempts > 0 and attempt > self.max_attempts
