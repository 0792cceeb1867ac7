"""
stock_services.retry -- bounded retry of whole transactions under contention.

Responsibility:
    Re-run an operation's transaction when the kernel signals that another
    transaction changed a row under it (ConcurrentModificationRetry), or when
    the database reports a serialization failure, deadlock or lock timeout.
    Attempts are bounded; when they run out the caller gets
    RetryExhaustedError rather than an endless loop.

Invariants:
    - Domain errors (InsufficientStockError, UnknownUnitError, ...) are never
      retried.  They are deterministic and go straight to the caller.
    - Each attempt is a fresh transaction; nothing from a failed attempt is
      visible to the next one.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from stock_kernel.exceptions import ConcurrentModificationRetry, RetryExhaustedError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts, including the first (>= 1).
        backoff_seconds: Sleep before attempt n+1 is ``n * backoff_seconds``.
    """

    max_attempts: int = 5
    backoff_seconds: float = 0.01

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")


def is_transient(exc: BaseException) -> bool:
    """True for contention failures worth retrying."""
    if isinstance(exc, ConcurrentModificationRetry):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _TRANSIENT_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(orig):
            return True
    return False


def run_with_retry(
    operation: str,
    attempt: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``attempt`` until it succeeds, fails permanently, or the policy's
    attempts are used up.

    Raises:
        RetryExhaustedError: After ``policy.max_attempts`` transient failures.
            The last failure is chained as ``__cause__``.
        Any non-transient exception from ``attempt``, unchanged.
    """
    for number in range(1, policy.max_attempts + 1):
        try:
            return attempt()
        except Exception as exc:
            if not is_transient(exc):
                raise
            if number >= policy.max_attempts:
                logger.error(
                    "operation_retry_exhausted",
                    extra={
                        "operation": operation,
                        "attempts": number,
                        "error_type": type(exc).__name__,
                    },
                )
                raise RetryExhaustedError(operation, number) from exc
            logger.warning(
                "operation_retry",
                extra={
                    "operation": operation,
                    "attempt": number,
                    "max_attempts": policy.max_attempts,
                    "error_type": type(exc).__name__,
                },
            )
            delay = policy.backoff_seconds * number
            if delay:
                sleep(delay)
    raise AssertionError("unreachable")
