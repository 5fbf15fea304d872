"""Domain action monitor - claims due actions and runs them."""

import asyncio
import traceback
from typing import Optional

import structlog

from ticketing import __version__
from ticketing.config import Settings
from ticketing.db.connection import Database
from ticketing.domain_actions.future import failure_reason
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.router import DomainActionRouter
from ticketing.domain_actions.types import DomainActionType
from ticketing.repositories.domain_actions import DomainActionRepository

logger = structlog.get_logger(__name__)

STUCK_CHECK_INTERVAL_S = 60


class DomainActionMonitor:
    """Polls for due actions and executes each on its own connection.

    A claimed batch runs concurrently; every action gets a dedicated
    connection and transaction, so no two actions share row locks.
    """

    def __init__(
        self,
        database: Database,
        router: DomainActionRouter,
        settings: Settings,
        action_types: Optional[list[DomainActionType]] = None,
    ):
        self._database = database
        self._router = router
        self._settings = settings
        self._action_types = action_types  # None = all types
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Poll until stop() is called or the task is cancelled."""
        self._running = True
        poll_interval = self._settings.domain_action_poll_interval_s

        logger.info(
            "domain_action_monitor_started",
            version=__version__,
            batch_size=self._settings.monitor_batch_size,
            action_types=(
                [t.value for t in self._action_types] if self._action_types else "all"
            ),
        )

        loop = asyncio.get_running_loop()
        last_stuck_check = loop.time()

        while self._running:
            try:
                processed = await self.run_once()
                if processed == 0:
                    await asyncio.sleep(poll_interval)

                now = loop.time()
                if now - last_stuck_check >= STUCK_CHECK_INTERVAL_S:
                    await self.report_stuck()
                    last_stuck_check = now

            except asyncio.CancelledError:
                logger.info("domain_action_monitor_cancelled")
                break
            except Exception as e:
                logger.error(
                    "domain_action_monitor_loop_error",
                    error=str(e),
                    traceback=traceback.format_exc(),
                )
                await asyncio.sleep(poll_interval)

        self._running = False
        logger.info("domain_action_monitor_stopped")

    def stop(self) -> None:
        """Finish the current batch, then leave the loop."""
        self._running = False

    async def run_until_empty(self) -> int:
        """Process batches until nothing is due. Returns actions claimed."""
        total = 0
        while True:
            processed = await self.run_once()
            if processed == 0:
                return total
            total += processed

    async def run_once(self) -> int:
        """Claim one batch and run it. Returns the number claimed."""
        actions = await self._claim()
        if not actions:
            return 0
        await asyncio.gather(*(self._process(action) for action in actions))
        return len(actions)

    async def report_stuck(self) -> list[DomainAction]:
        """Log actions whose backoff gate passed long ago without a pickup."""
        conn = await self._database.get_connection()
        try:
            stuck = await DomainActionRepository(conn.get()).find_stuck(
                self._settings.domain_action_stuck_threshold_minutes
            )
        finally:
            await conn.release()
        if stuck:
            logger.warning(
                "domain_actions_stuck",
                count=len(stuck),
                domain_action_ids=[str(a.id) for a in stuck[:20]],
            )
        return stuck

    async def _claim(self) -> list[DomainAction]:
        conn = await self._database.get_connection()
        try:
            return await DomainActionRepository(conn.get()).claim_pending(
                busy_seconds=self._settings.domain_action_busy_timeout_s,
                limit=self._settings.monitor_batch_size,
                action_types=self._action_types,
            )
        finally:
            await conn.release()

    async def _process(self, action: DomainAction) -> bool:
        """Run one action. Returns True on success; never raises for job errors."""
        log = logger.bind(
            domain_action_id=str(action.id),
            domain_action_type=action.domain_action_type.value,
        )
        conn = None
        try:
            conn = await self._database.get_connection()
            executor = self._router.get_executor_for(action.domain_action_type)
            if executor is None:
                reason = f"No executor registered for {action.domain_action_type.value}"
                log.error("domain_action_executor_missing", error=reason)
                await action.set_failed(reason, conn.get())
                return False

            await conn.begin_transaction()
            future = executor.execute(action, conn)
            timeout = self._settings.domain_action_timeout_s
            try:
                if timeout:
                    await asyncio.wait_for(future, timeout)
                else:
                    await future
            except asyncio.TimeoutError:
                log.error("domain_action_timed_out", timeout_s=timeout)
                if conn.in_transaction:
                    await conn.rollback_transaction()
                    await action.set_failed(f"Timed out after {timeout}s", conn.get())
                return False
            return True

        except Exception as e:
            if conn is None:
                # Lease expires and the action is claimed again later
                log.error("domain_action_connection_failed", error=failure_reason(e))
            else:
                # Already rolled back and recorded by the ExecutorFuture
                log.warning("domain_action_attempt_failed", error=failure_reason(e))
            return False
        finally:
            if conn is not None:
                await conn.release()
