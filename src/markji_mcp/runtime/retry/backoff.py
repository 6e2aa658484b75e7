"""Delay schedules between retry attempts.

``delay(i)`` is the pause before retry ``i``, counted from 0, so a policy
with three attempts asks for ``delay(0)`` and ``delay(1)``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Backoff(Protocol):
    def delay(self, attempt: int) -> float: ...


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Doubling (by default) delays, capped at ``max_delay``.

    With jitter each delay is scaled by a random factor between 0.5 and 1.5,
    which gives up the non-decreasing guarantee of the plain schedule.
    """

    base: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = False

    def delay(self, attempt: int) -> float:
        raw = self.base * self.multiplier ** attempt
        capped = raw if raw < self.max_delay else self.max_delay
        if not self.jitter:
            return capped
        return capped * random.uniform(0.5, 1.5)


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    delay_seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.delay_seconds
