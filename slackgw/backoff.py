"""
Reconnect delay policy
"""

import random
from typing import Callable, Optional


class Backoff:
    """
    Capped exponential backoff with jitter.

    Delays never decrease between two resets: a jittered value below the
    previous delay is raised to it, so jitter only spreads clients out
    without undoing growth.
    """

    def __init__(
        self,
        base: float = 1.0,
        maximum: float = 60.0,
        factor: float = 2.0,
        jitter: float = 0.2,
        rand: Optional[Callable[[], float]] = None,
    ):
        self.base = base
        self.maximum = maximum
        self.factor = factor
        self.jitter = jitter
        self._rand = rand or random.random
        self.attempt = 0
        self.delay = 0.0

    def next_delay(self) -> float:
        """Advance after a failed or short-lived connection"""
        try:
            ceiling = min(self.maximum, self.base * self.factor ** self.attempt)
        except OverflowError:
            ceiling = self.maximum
        jittered = ceiling * (1.0 - self.jitter * self._rand())
        self.delay = min(self.maximum, max(self.delay, jittered))
        self.attempt += 1
        return self.delay

    def reset(self) -> None:
        self.attempt = 0
        self.delay = 0.0
