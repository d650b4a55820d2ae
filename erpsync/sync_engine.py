"""Core sync orchestration engine.

Pulls WooCommerce orders page by page and reconciles the billing
customer of each order with the local contact store, handling change
detection, in-run duplicate prevention and create/create races.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .config import Settings
from .database import ContactStore
from .errors import DuplicateKeyError
from .mapping import map_order_to_contact, has_contact_changed
from .models import Contact, MappedContact, WooCommerceOrder
from .retry import execute_with_retry
from .woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)


@dataclass
class SyncStatistics:
    """Counters for one sync run."""
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    error_details: List[str] = field(default_factory=list)

    def record_error(self, detail: str) -> None:
        self.errors += 1
        self.error_details.append(detail)

    @property
    def success(self) -> bool:
        return self.errors == 0

    def summary(self) -> str:
        return (
            f"Total: {self.total}, Created: {self.created}, Updated: {self.updated}, "
            f"Unchanged: {self.unchanged}, Errors: {self.errors}"
        )


class ContactSyncEngine:
    """Syncs WooCommerce billing customers into the contact store.

    Pages are processed one after another, and the orders of a page are
    processed one at a time. The seen-email set and the duplicate-key
    recovery both rely on that ordering: parallelizing order processing
    requires revisiting them together.
    """

    def __init__(
        self,
        settings: Settings,
        contact_store: ContactStore,
        woocommerce_client: WooCommerceClient,
    ):
        """Initialize sync engine.

        Args:
            settings: Application settings
            contact_store: Local contact store
            woocommerce_client: WooCommerce API client
        """
        self.settings = settings
        self.store = contact_store
        self.woocommerce = woocommerce_client

    async def _with_retry(self, operation):
        return await execute_with_retry(
            operation,
            self.settings.max_retries,
            self.settings.retry_delay,
        )

    async def sync_customers(self, emails: Optional[Iterable[str]] = None) -> SyncStatistics:
        """Sync all customers from WooCommerce orders to contacts.

        Never raises: a failure of the order stream is recorded as one
        fatal error and the statistics gathered so far are returned.

        Args:
            emails: If given, only orders billed to these emails are synced

        Returns:
            SyncStatistics for the run
        """
        logger.info("Starting WooCommerce customer sync...")

        stats = SyncStatistics()
        seen_emails = set()
        email_filter = {e.strip().lower() for e in emails if e.strip()} if emails is not None else None

        try:
            async for orders in self.woocommerce.get_orders_stream(
                per_page=self.settings.woocommerce_page_size
            ):
                logger.info(f"Processing {len(orders)} orders...")

                for order in orders:
                    email = order.billing_email

                    if email_filter is not None and email not in email_filter:
                        continue

                    stats.total += 1

                    if not email:
                        stats.record_error(f"Order {order.id}: Missing email, skipping")
                        logger.warning(f"Order {order.id} missing email, skipping")
                        continue

                    if email in seen_emails:
                        logger.debug(f"Order {order.id}: {email} already synced in this run")
                        continue
                    seen_emails.add(email)

                    await self.process_order(order, stats)

        except Exception as e:
            logger.exception("Fatal error during customer sync")
            stats.record_error(f"Fatal error: {e}")

        logger.info(
            f"Sync completed: {stats.created} created, {stats.updated} updated, "
            f"{stats.unchanged} unchanged, {stats.errors} errors"
        )
        return stats

    async def process_order(self, order: WooCommerceOrder, stats: SyncStatistics) -> None:
        """Create or update the contact for a single order.

        Every failure is recorded in ``stats``; nothing is raised.
        """
        contact_data = map_order_to_contact(
            order,
            default_document_type=self.settings.default_document_type,
            country_code=self.settings.default_country_code,
        )
        if contact_data is None:
            stats.record_error(f"Order {order.id}: Invalid or missing data")
            return

        try:
            existing = await self.store.find_by_email(contact_data.email)
        except Exception as e:
            # Do not fall through to create: the contact may exist
            stats.record_error(f"Order {order.id}: Lookup failed: {e}")
            logger.error(f"Failed to look up contact for order {order.id}: {e}")
            return

        if existing:
            await self._update_if_changed(order, existing, contact_data, stats)
            return

        try:
            await self._with_retry(lambda: self.store.create(contact_data.to_store_dict()))
            stats.created += 1
            logger.debug(f"Created contact {contact_data.email} from order {order.id}")

        except DuplicateKeyError:
            logger.debug(f"Duplicate key error for order {order.id}, retrying as update...")
            await self._recover_duplicate(order, contact_data, stats)

        except Exception as e:
            stats.record_error(f"Order {order.id}: Creation failed - {e}")
            logger.error(f"Failed to create contact for order {order.id}: {e}")

    async def _update_if_changed(
        self,
        order: WooCommerceOrder,
        existing: Contact,
        contact_data: MappedContact,
        stats: SyncStatistics,
    ) -> None:
        if not has_contact_changed(existing, contact_data):
            stats.unchanged += 1
            return

        update_data = contact_data.to_store_dict()
        if existing.document_number:
            # A stored document is never overwritten
            update_data.pop("document_type", None)
            update_data.pop("document_number", None)

        try:
            updated = await self._with_retry(lambda: self.store.update(existing.id, update_data))
        except Exception as e:
            stats.record_error(f"Order {order.id}: Update failed - {e}")
            logger.error(f"Failed to update contact for order {order.id}: {e}")
            return

        if updated is None:
            stats.record_error(f"Order {order.id}: Update failed - contact {existing.id} no longer exists")
            return

        stats.updated += 1
        logger.debug(f"Updated contact {existing.id} from order {order.id}")

    async def _recover_duplicate(
        self,
        order: WooCommerceOrder,
        contact_data: MappedContact,
        stats: SyncStatistics,
    ) -> None:
        """Resolve a create that lost a race against another writer."""
        try:
            existing = await self.store.find_by_email(contact_data.email)
        except Exception as e:
            stats.record_error(f"Order {order.id}: Retry failed - {e}")
            logger.error(f"Failed to retry contact for order {order.id}: {e}")
            return

        if existing is None:
            stats.record_error(f"Order {order.id}: Contact not found after duplicate key error")
            return

        await self._update_if_changed(order, existing, contact_data, stats)
