"""Push local contacts to Chatwoot.

Unlike the WooCommerce pull, pushes run concurrently: the resource to
protect is the Chatwoot API, not the local store, so a fixed number of
pushes may be in flight at once.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Iterable, List

from .config import Settings
from .database import ContactStore
from .chatwoot_client import ChatwootClient
from .models import Contact
from .retry import execute_with_retry
from .sync_engine import SyncStatistics

logger = logging.getLogger(__name__)


async def gather_bounded(limit: int, tasks: Iterable[Callable[[], Awaitable[None]]]) -> None:
    """Run task factories with at most ``limit`` running at once."""
    semaphore = asyncio.Semaphore(limit)

    async def _run(task: Callable[[], Awaitable[None]]) -> None:
        async with semaphore:
            await task()

    await asyncio.gather(*(_run(task) for task in tasks))


class ChatwootContactSync:
    """Pushes contacts from the local store to Chatwoot."""

    def __init__(
        self,
        settings: Settings,
        contact_store: ContactStore,
        chatwoot_client: ChatwootClient,
    ):
        self.settings = settings
        self.store = contact_store
        self.chatwoot = chatwoot_client

    async def _push(self, contact: Contact, stats: SyncStatistics) -> None:
        """Push one contact; failures are recorded, never raised."""
        try:
            action = await execute_with_retry(
                lambda: self.chatwoot.sync_contact(contact),
                self.settings.max_retries,
                self.settings.retry_delay,
            )
        except Exception as e:
            logger.error(f"Failed to sync contact {contact.email}: {e}")
            stats.record_error(f"Contact {contact.email}: {e}")
            return

        if action == "created":
            stats.created += 1
        elif action == "updated":
            stats.updated += 1
        else:
            stats.unchanged += 1

    async def sync_all(self) -> SyncStatistics:
        """Sync all active contacts, one page at a time.

        Returns:
            SyncStatistics for the run
        """
        stats = SyncStatistics()
        limit = self.settings.chatwoot_page_size
        page = 1

        while True:
            result = await self.store.find_all_paginated({}, page=page, limit=limit)
            contacts: List[Contact] = result.data

            if not contacts:
                break

            await gather_bounded(
                self.settings.chatwoot_concurrency,
                [lambda c=contact: self._push(c, stats) for contact in contacts],
            )

            stats.total += len(contacts)
            total_pages = math.ceil(result.total / limit)
            logger.info(f"Synced batch {page}/{total_pages} ({stats.total} contacts so far)")

            if page >= total_pages:
                break
            page += 1

        logger.info(f"Chatwoot contact sync completed: {stats.summary()}")
        return stats

    async def sync_by_emails(self, emails: List[str]) -> SyncStatistics:
        """Sync a specific list of contacts by email.

        Args:
            emails: Emails of local contacts to push

        Returns:
            SyncStatistics for the run
        """
        logger.info(f"Starting manual sync for {len(emails)} emails...")
        stats = SyncStatistics(total=len(emails))

        async def _sync_email(email: str) -> None:
            try:
                contact = await self.store.find_one({"email": email})
            except Exception as e:
                logger.error(f"Error syncing email {email}: {e}")
                stats.record_error(f"{email}: Lookup failed - {e}")
                return

            if contact is None:
                logger.warning(f"Contact not found for email: {email}")
                stats.record_error(f"{email}: Contact not found")
                return

            await self._push(contact, stats)

        await gather_bounded(
            self.settings.chatwoot_concurrency,
            [lambda e=email: _sync_email(e) for email in emails],
        )

        logger.info(f"Manual sync completed for {len(emails)} emails: {stats.summary()}")
        return stats
