"""
Exponential backoff between email send attempts.

Delays follow ``min(base * multiplier^n, max_delay)`` where ``n`` is the
number of delays already taken. With the defaults (base 2.0, multiplier
2.0) a provider waits 2s after its first failure and 4s after its
second, i.e. ``2^attempt`` seconds for 1-based attempts.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff with optional jitter.

    One instance covers one provider's retry run. Call reset() before
    moving to the next provider.

    Usage:
        backoff = ExponentialBackoff(base_delay=2.0)
        for attempt in range(1, max_retries + 1):
            try:
                return await provider.send(message)
            except Exception:
                if attempt < max_retries:
                    await asyncio.sleep(backoff.next_delay())
    """

    def __init__(
        self,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.0,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt

    def peek(self) -> float:
        """Next delay without jitter and without advancing."""
        return min(
            self.base_delay * (self.multiplier ** self._attempt),
            self.max_delay,
        )

    def next_delay(self) -> float:
        """Return the next delay and advance the attempt counter."""
        delay = self.peek()
        if self.jitter_range:
            delay += delay * random.uniform(-self.jitter_range, self.jitter_range)
        self._attempt += 1
        return max(0.0, delay)

    def reset(self) -> None:
        self._attempt = 0
