"""Retry policy for store calls that may hit a dropped connection.

Only connection-level failures are retried. Authorization, state and
validation errors surface on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError

from tutoring_engine.config import get_settings
from tutoring_engine.exceptions import LessonEngineError, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lower-cased fragments seen in driver messages when the server side drops a connection.
TRANSIENT_SIGNATURES: tuple[str, ...] = (
    "server has closed the connection",
    "server closed the connection",
    "connection reset",
    "econnreset",
    "connection closed",
    "connection was closed",
    "connection is closed",
    "code 10054",
    "code: 10054",
    "forcibly closed",
    "socket hang up",
)

_TRANSIENT_OS_ERRORS = (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)


def _error_chain(exc: BaseException) -> list[BaseException]:
    """The error plus its causes, DBAPI originals included, without cycles."""
    chain: list[BaseException] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        orig = getattr(current, "orig", None)
        if isinstance(orig, BaseException) and id(orig) not in seen:
            current = orig
        else:
            current = current.__cause__ or current.__context__
    return chain


def is_transient_disconnect(exc: BaseException) -> bool:
    """Return True if the error looks like a dropped store connection."""
    if isinstance(exc, LessonEngineError):
        return False

    for err in _error_chain(exc):
        if isinstance(err, DisconnectionError):
            return True
        if isinstance(err, DBAPIError) and err.connection_invalidated:
            return True
        if isinstance(err, _TRANSIENT_OS_ERRORS):
            return True
        message = str(err).lower()
        if any(signature in message for signature in TRANSIENT_SIGNATURES):
            return True
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    With the defaults a call is attempted three times, sleeping 100ms and
    then 200ms between attempts.
    """

    max_retries: int = 2
    base_delay: float = 0.1
    retryable: Callable[[BaseException], bool] = is_transient_disconnect
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        settings = get_settings()
        return cls(
            max_retries=settings.store_max_retries,
            base_delay=settings.store_retry_base_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (attempt is zero-based)."""
        return self.base_delay * (2**attempt)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    on_retry: Callable[[BaseException, int], Awaitable[None]] | None = None,
    name: str = "store operation",
) -> T:
    """Run ``operation``, retrying transient disconnects per ``policy``.

    ``on_retry(exc, attempt)`` runs before each retry and is where callers
    re-establish the connection. Raises TransientStoreError once retries
    are exhausted; any non-retryable error propagates unchanged.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not policy.retryable(exc):
                raise
            if attempt >= policy.max_retries:
                logger.error(
                    "%s failed after %d attempt(s): %s", name, attempt + 1, exc
                )
                raise TransientStoreError(name, attempt + 1) from exc

            logger.warning(
                "Transient store error in %s (attempt %d/%d): %s",
                name,
                attempt + 1,
                policy.max_retries + 1,
                exc,
            )
            await policy.sleep(policy.delay_for(attempt))
            if on_retry is not None:
                try:
                    await on_retry(exc, attempt)
                except Exception as reconnect_exc:
                    if not policy.retryable(reconnect_exc):
                        raise
                    logger.warning("Reconnect before retry of %s failed: %s", name, reconnect_exc)
            attempt += 1
