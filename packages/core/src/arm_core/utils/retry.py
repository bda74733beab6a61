"""Bounded exponential-backoff retry for remote calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from arm_core.utils.error_categorizer import categorize_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay_ms: int = 1000,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Call ``operation`` until it succeeds, retrying transient failures only.

    A permanent failure is re-raised on the spot. A transient failure is
    retried after ``base_delay_ms * 2**attempt`` milliseconds, for at most
    ``max_retries`` retries (``max_retries + 1`` calls in total); the last
    error is re-raised once they are used up.
    """
    sleep = sleep or time.sleep
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as e:
            info = categorize_error(e)
            if not info.is_transient:
                logger.error("Permanent error (%s), failing immediately: %s", info.category, e)
                raise
            if attempt >= max_retries:
                logger.error("Max retries (%d) exhausted: %s", max_retries, e)
                raise

            delay_ms = base_delay_ms * 2**attempt
            logger.warning(
                "Transient error (attempt %d/%d, %s): %s. Retrying in %dms...",
                attempt + 1,
                max_retries + 1,
                info.category,
                e,
                delay_ms,
            )
            sleep(delay_ms / 1000)
            attempt += 1
