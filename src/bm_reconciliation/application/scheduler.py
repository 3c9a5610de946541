"""Periodic reconciliation loop.

Every API worker may run the loop; a Redis lease makes sure only one of them
sweeps per interval. The lease TTL bounds how long a crashed holder blocks
the others.
"""

import asyncio
import logging
import os
import socket
import uuid
from collections.abc import Awaitable, Callable
from contextlib import suppress

from config.settings import settings
from src.bm_common.redis_client import acquire_lease, release_lease
from src.bm_reconciliation.application.engine import ReconciliationEngine
from src.bm_reconciliation.domain.models import ReconciliationReport

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    def __init__(
        self,
        engine: ReconciliationEngine,
        interval_seconds: float | None = None,
        lock_key: str | None = None,
        lock_ttl_seconds: int | None = None,
        acquire: Callable[[str, str, int], Awaitable[bool]] = acquire_lease,
        release: Callable[[str, str], Awaitable[None]] = release_lease,
    ) -> None:
        self._engine = engine
        self._interval = interval_seconds or settings.RECONCILE_INTERVAL_SECONDS
        self._lock_key = lock_key or settings.RECONCILE_LOCK_KEY
        self._lock_ttl = lock_ttl_seconds or settings.RECONCILE_LOCK_TTL_SECONDS
        self._acquire = acquire
        self._release = release
        self._owner = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="reconciliation-loop")
        logger.info(
            "Reconciliation scheduler started: every %ss, owner=%s", self._interval, self._owner
        )

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Reconciliation scheduler stopped")

    async def tick(self) -> ReconciliationReport | None:
        """Run one sweep if this process wins the lease; None otherwise."""
        if not await self._acquire(self._lock_key, self._owner, self._lock_ttl):
            logger.debug("Reconciliation lease held by another worker, skipping")
            return None
        try:
            return await self._engine.run_once()
        finally:
            await self._release(self._lock_key, self._owner)

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Reconciliation tick failed")
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
