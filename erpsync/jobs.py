"""Cron and manual entry points for the sync runs.

Each job owns a run lock so overlapping triggers (cron firing while a
manual run is in progress, or two manual triggers) collapse into one run.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set

from .config import Settings
from .constants import MAX_LOGGED_ERRORS
from .chatwoot_client import ChatwootClient
from .chatwoot_sync import ChatwootContactSync
from .sync_engine import ContactSyncEngine, SyncStatistics
from .woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)


class RunLock:
    """Single-flight guard owned by one job instance."""

    def __init__(self) -> None:
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        """Yield True when the lock was taken, False if a run is in flight.

        The flag is set before the body's first await and cleared on
        every exit path.
        """
        if self._running:
            yield False
            return

        self._running = True
        try:
            yield True
        finally:
            self._running = False


class SyncJob(ABC):
    """Shared plumbing: run lock, error reporting and fire-and-forget triggers."""

    name = "sync"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.lock = RunLock()
        self._background_tasks: Set[asyncio.Task] = set()

    def _log_results(self, stats: SyncStatistics) -> None:
        logger.info(f"Sync completed - {stats.summary()}")

        if stats.errors > 0 and stats.error_details:
            # Only log the first few errors to avoid flooding the logs
            errors_to_log = stats.error_details[:MAX_LOGGED_ERRORS]
            logger.warning(
                f"Errors encountered during sync "
                f"(showing {len(errors_to_log)} of {len(stats.error_details)}):"
            )
            for error in errors_to_log:
                logger.warning(f"  - {error}")

    @abstractmethod
    async def execute_sync(self, emails: Optional[List[str]] = None) -> Optional[SyncStatistics]:
        """Run the sync once; None when skipped or aborted."""

    def trigger_sync(self, emails: Optional[List[str]] = None) -> asyncio.Task:
        """Start ``execute_sync`` in the background and return immediately.

        Must be called from a running event loop.
        """
        logger.info(f"Manual {self.name} sync triggered")
        return self._start_background(self.execute_sync(emails=emails))

    def _start_background(self, coro) -> asyncio.Task:
        # The event loop keeps only weak references to tasks
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Error in manual {self.name} sync execution: {exc!r}")


class WooCommerceCustomerSyncJob(SyncJob):
    """Cron job for syncing WooCommerce customers to contacts."""

    name = "woocommerce-customer-sync"

    def __init__(
        self,
        settings: Settings,
        woocommerce_client: WooCommerceClient,
        engine: ContactSyncEngine,
    ):
        super().__init__(settings)
        self.woocommerce = woocommerce_client
        self.engine = engine

    @property
    def enabled(self) -> bool:
        return self.settings.woocommerce_sync_enabled

    @property
    def schedule(self) -> str:
        return self.settings.woocommerce_sync_cron

    def log_status(self) -> None:
        """Log whether the cron job is active."""
        if self.enabled:
            logger.info(
                f"WooCommerce customer sync cron enabled with schedule: {self.schedule}"
            )
        else:
            logger.warning(
                "WooCommerce customer sync cron disabled "
                "(not configured or WOOCOMMERCE_SYNC_CONTACTS=false)"
            )

    async def execute_sync(self, emails: Optional[List[str]] = None) -> Optional[SyncStatistics]:
        """Run the customer sync once.

        Used by the cron schedule and by manual triggers. Returns None
        when the run was skipped or aborted.

        Args:
            emails: If given, only these customers are synced
        """
        if self.lock.is_running:
            logger.warning("Sync already running, skipping this execution")
            return None

        if not self.enabled:
            logger.debug("Sync is disabled, skipping execution")
            return None

        async with self.lock.try_acquire() as acquired:
            if not acquired:
                logger.warning("Sync already running, skipping this execution")
                return None

            logger.info("Starting customer sync...")
            try:
                if not await self.woocommerce.validate_connection():
                    logger.error("WooCommerce connection validation failed, aborting sync")
                    return None

                stats = await self.engine.sync_customers(emails=emails)
                self._log_results(stats)
                return stats

            except Exception:
                logger.exception("Fatal error during customer sync")
                return None

    async def handle_cron(self) -> None:
        await self.execute_sync()


class ChatwootContactsJob(SyncJob):
    """Cron job for pushing local contacts to Chatwoot."""

    name = "chatwoot-contacts-sync"

    def __init__(
        self,
        settings: Settings,
        chatwoot_client: ChatwootClient,
        contact_sync: ChatwootContactSync,
    ):
        super().__init__(settings)
        self.chatwoot = chatwoot_client
        self.contact_sync = contact_sync

    @property
    def enabled(self) -> bool:
        return self.settings.chatwoot_cron_enabled

    @property
    def schedule(self) -> str:
        return self.settings.chatwoot_contacts_cron

    def log_status(self) -> None:
        if self.enabled:
            logger.info(f"Chatwoot contact sync cron enabled with schedule: {self.schedule}")
        else:
            logger.warning(
                "Chatwoot contact sync cron disabled "
                "(not configured or CHATWOOT_CONTACTS_CRON_ENABLED=false)"
            )

    async def execute_sync(
        self,
        emails: Optional[List[str]] = None,
        manual: bool = False,
    ) -> Optional[SyncStatistics]:
        """Push contacts to Chatwoot once.

        Args:
            emails: If given, only these contacts are pushed
            manual: True for manual triggers, which are gated by
                CHATWOOT_CONTACTS_SYNC instead of the cron flag
        """
        enabled = self.settings.chatwoot_sync_enabled if manual else self.enabled
        if not enabled:
            logger.debug("Chatwoot sync is disabled, skipping execution")
            return None

        async with self.lock.try_acquire() as acquired:
            if not acquired:
                logger.warning("Chatwoot sync is already running. Skipping.")
                return None

            logger.info("Starting Chatwoot contact sync...")
            try:
                if not await self.chatwoot.verify_credentials():
                    logger.error("Chatwoot credentials rejected, aborting sync")
                    return None

                if emails:
                    stats = await self.contact_sync.sync_by_emails(emails)
                else:
                    stats = await self.contact_sync.sync_all()
                self._log_results(stats)
                return stats

            except Exception:
                logger.exception("Chatwoot contact sync failed")
                return None

    def trigger_sync(self, emails: Optional[List[str]] = None) -> asyncio.Task:
        logger.info(f"Manual {self.name} sync triggered")
        return self._start_background(self.execute_sync(emails=emails, manual=True))

    async def handle_cron(self) -> None:
        await self.execute_sync()
