"""Bounded retry with exponential backoff for remote calls."""

from .backoff import Backoff, ConstantBackoff, ExponentialBackoff
from .policy import DEFAULT_POLICY, NO_RETRY, RetryPolicy, execute_with_retry

__all__ = [
    "Backoff", "ExponentialBackoff", "ConstantBackoff",
    "RetryPolicy", "DEFAULT_POLICY", "NO_RETRY", "execute_with_retry",
]
