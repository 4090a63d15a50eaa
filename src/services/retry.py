# src/services/retry.py

"""Bounded fixed-delay retry for async source calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often to attempt a call and how long to wait in between."""

    max_attempts: int = Settings.MAX_RETRIES
    delay: float = Settings.RETRY_DELAY

    @classmethod
    def from_config(cls, config: dict[str, object]) -> "RetryPolicy":
        """Build a policy from a source config (``max_retries``, ``retry_delay``)."""
        attempts = config.get("max_retries", Settings.MAX_RETRIES)
        delay = config.get("retry_delay", Settings.RETRY_DELAY)
        return cls(
            max_attempts=max(1, int(attempts)),  # type: ignore[call-overload]
            delay=max(0.0, float(delay)),  # type: ignore[arg-type]
        )


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "call",
) -> T:
    """Await ``fn()`` up to ``policy.max_attempts`` times.

    The last exception is re-raised once every attempt has failed.
    Cancellation is never retried.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if attempt == attempts:
                logger.error(
                    "[%s] Attempt %d/%d failed, giving up: %s",
                    label,
                    attempt,
                    attempts,
                    exc,
                )
                raise
            logger.warning(
                "[%s] Attempt %d/%d failed: %s (retrying in %.1fs)",
                label,
                attempt,
                attempts,
                exc,
                policy.delay,
            )
            await asyncio.sleep(policy.delay)
    raise AssertionError("unreachable")  # pragma: no cover
