"""Retry executor for single remote calls.

Only transient failures are retried: by default CONFLICT, RATE_LIMITED and
SERVER_ERROR. Once the attempt budget is spent, or on any other failure, the
exception of the last attempt propagates as raised so that tools can quote
the remote message.

    >>> card = await execute_with_retry(lambda: client.get_card(deck, card_id), DEFAULT_POLICY, "getCards")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from markji_mcp.foundation.errors import TRANSIENT_CODES, ErrorCode, classify_exception

from .backoff import Backoff, ExponentialBackoff

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from markji_mcp.foundation.config import RetrySettings

T = TypeVar("T")

logger = logging.getLogger("markji_mcp.retry")

RetryHook = Callable[[int, ErrorCode, float], None]


class RetryPolicy(BaseModel):
    """How many times to try a remote call, and how long to wait in between.

    ``max_attempts`` counts the first call, so 1 disables retrying. The
    optional ``on_retry`` hook receives (retry index, error code, delay)
    before each sleep.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    backoff: Backoff = Field(default_factory=ExponentialBackoff, repr=False)
    retryable_codes: frozenset[ErrorCode] = TRANSIENT_CODES
    on_retry: RetryHook | None = Field(default=None, exclude=True, repr=False)

    @field_validator("retryable_codes", mode="before")
    @classmethod
    def _coerce_codes(cls, v: object) -> frozenset[ErrorCode]:
        return frozenset(ErrorCode(c) for c in v)  # type: ignore[union-attr]

    @field_serializer("retryable_codes")
    def _dump_codes(self, v: frozenset[ErrorCode]) -> list[str]:
        return sorted(c.value for c in v)

    @classmethod
    def from_settings(cls, settings: RetrySettings, **overrides: object) -> RetryPolicy:
        backoff = ExponentialBackoff(settings.base_delay, settings.max_delay, settings.multiplier, settings.jitter)
        return cls(max_attempts=settings.max_attempts, backoff=backoff,
                   retryable_codes=settings.retryable_codes, **overrides)

    def should_retry(self, code: ErrorCode, attempt: int) -> bool:
        """True if a failure with ``code`` on 1-based ``attempt`` earns another try."""
        return code in self.retryable_codes and attempt < self.max_attempts

    def get_delay(self, retry_index: int) -> float:
        return self.backoff.delay(retry_index)

    def __hash__(self) -> int:
        return hash((self.max_attempts, self.retryable_codes))


DEFAULT_POLICY = RetryPolicy()
NO_RETRY = RetryPolicy(max_attempts=1)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    name: str,
) -> T:
    """Run operation, retrying transient failures per policy.

    Args:
        operation: Zero-argument async callable performing one remote call
        policy: Retry policy configuration
        name: Operation name for logging

    Returns:
        The value of the first successful attempt

    Raises:
        The exception of the last attempt, unchanged.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            code = classify_exception(exc)
            if not policy.should_retry(code, attempt):
                if attempt > 1:
                    logger.info(f"[{name}] Giving up after {attempt} attempt(s) (code: {code})")
                raise
            delay = policy.get_delay(attempt - 1)
            logger.info(
                f"[{name}] Retry {attempt}/{policy.max_attempts - 1} "
                f"after {delay:.1f}s (code: {code})"
            )
            if policy.on_retry:
                policy.on_retry(attempt - 1, code, delay)
        await asyncio.sleep(delay)
        attempt += 1
