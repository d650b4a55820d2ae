#!/usr/bin/env python3
"""Main entry point for the ERP contact sync.

Usage:
    python sync.py                          # Pull WooCommerce customers once
    python sync.py --chatwoot               # Push contacts to Chatwoot once
    python sync.py --emails a@x.com,b@y.com # Restrict the run to these emails
    python sync.py --serve                  # Run the cron schedule until interrupted
    python sync.py --stats                  # Show contact store statistics
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from erpsync.config import get_settings, Settings
from erpsync.database import ContactStore
from erpsync.chatwoot_client import ChatwootClient
from erpsync.chatwoot_sync import ChatwootContactSync
from erpsync.jobs import ChatwootContactsJob, WooCommerceCustomerSyncJob
from erpsync.logging_config import setup_logging
from erpsync.scheduler import build_scheduler
from erpsync.sync_engine import ContactSyncEngine, SyncStatistics
from erpsync.woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)


def parse_emails(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated email list, dropping blanks."""
    if not value:
        return None
    emails = [e.strip().lower() for e in value.split(",") if e.strip()]
    return emails or None


def report(stats: Optional[SyncStatistics]) -> int:
    """Log a run summary and return the exit code for it."""
    if stats is None:
        logger.error("Sync did not run (disabled, already running, or connection failed)")
        return 1

    logger.info("=" * 60)
    logger.info("Sync Complete")
    logger.info("=" * 60)
    logger.info(f"  Total: {stats.total}")
    logger.info(f"  Created: {stats.created}")
    logger.info(f"  Updated: {stats.updated}")
    logger.info(f"  Unchanged: {stats.unchanged}")
    logger.info(f"  Errors: {stats.errors}")

    return 0 if stats.success else 1


async def serve(settings: Settings, store: ContactStore) -> int:
    """Run the cron schedule until cancelled."""
    async with WooCommerceClient(settings) as woocommerce_client:
        async with ChatwootClient(settings) as chatwoot_client:
            woocommerce_job = WooCommerceCustomerSyncJob(
                settings,
                woocommerce_client,
                ContactSyncEngine(settings, store, woocommerce_client),
            )
            chatwoot_job = ChatwootContactsJob(
                settings,
                chatwoot_client,
                ChatwootContactSync(settings, store, chatwoot_client),
            )

            scheduler = build_scheduler(woocommerce_job, chatwoot_job)
            if not scheduler.get_jobs():
                logger.error("No sync job is enabled, nothing to schedule")
                return 1

            scheduler.start()
            logger.info("Scheduler started, press Ctrl+C to stop")
            try:
                await asyncio.Event().wait()
            finally:
                scheduler.shutdown(wait=False)
                logger.info("Scheduler stopped")

    return 0


async def run_sync(args: argparse.Namespace) -> int:
    """Run the requested operation.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        settings = get_settings()
    except Exception as e:
        logging.basicConfig()
        logger.error(f"Failed to load settings: {e}")
        logger.error("Check the environment variables or the .env file")
        return 1

    setup_logging(settings)

    logger.info("=" * 60)
    logger.info("ERP Contact Sync Starting")
    logger.info("=" * 60)

    store = ContactStore(settings.database_path)

    if args.stats:
        active = await store.count()
        total = await store.count(with_deleted=True)
        logger.info("Contact Statistics:")
        logger.info(f"  Active contacts: {active}")
        logger.info(f"  Soft-deleted contacts: {total - active}")
        return 0

    if args.serve:
        return await serve(settings, store)

    emails = parse_emails(args.emails)

    if args.chatwoot:
        async with ChatwootClient(settings) as chatwoot_client:
            job = ChatwootContactsJob(
                settings,
                chatwoot_client,
                ChatwootContactSync(settings, store, chatwoot_client),
            )
            return report(await job.execute_sync(emails=emails, manual=True))

    async with WooCommerceClient(settings) as woocommerce_client:
        job = WooCommerceCustomerSyncJob(
            settings,
            woocommerce_client,
            ContactSyncEngine(settings, store, woocommerce_client),
        )
        return report(await job.execute_sync(emails=emails))


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Sync ERP contacts from WooCommerce and push them to Chatwoot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python sync.py                       Pull WooCommerce customers into contacts
  python sync.py --emails a@x.com      Pull only the customer billed to a@x.com
  python sync.py --chatwoot            Push all contacts to Chatwoot
  python sync.py --serve               Run the configured cron schedules
  python sync.py --stats               Show contact statistics
        """,
    )

    parser.add_argument(
        "--chatwoot",
        action="store_true",
        help="Push local contacts to Chatwoot instead of pulling from WooCommerce",
    )

    parser.add_argument(
        "--emails",
        metavar="LIST",
        help="Comma-separated emails to restrict the run to",
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the cron scheduler and run until interrupted",
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show contact statistics and exit",
    )

    args = parser.parse_args()

    try:
        exit_code = asyncio.run(run_sync(args))
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
