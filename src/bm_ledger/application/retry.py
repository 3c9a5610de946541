"""Bounded retry for ledger reads.

Only TransientLedgerError is retried; a definitive answer (account missing,
signature unknown) returns immediately. After the last attempt the original
TransientLedgerError is re-raised so the HTTP layer reports 503.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from src.bm_common.errors import TransientLedgerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int | None = None,
    wait_min: float | None = None,
    wait_max: float | None = None,
) -> T:
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(TransientLedgerError),
        stop=stop_after_attempt(attempts or settings.LEDGER_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=wait_min if wait_min is not None else settings.LEDGER_BACKOFF_MIN_SECONDS,
            min=wait_min if wait_min is not None else settings.LEDGER_BACKOFF_MIN_SECONDS,
            max=wait_max if wait_max is not None else settings.LEDGER_BACKOFF_MAX_SECONDS,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn(*args)
    raise AssertionError("unreachable: tenacity reraises on exhaustion")
