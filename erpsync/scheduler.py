"""Cron scheduling for the sync jobs."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .jobs import ChatwootContactsJob, WooCommerceCustomerSyncJob

logger = logging.getLogger(__name__)


def build_scheduler(
    woocommerce_job: Optional[WooCommerceCustomerSyncJob] = None,
    chatwoot_job: Optional[ChatwootContactsJob] = None,
) -> AsyncIOScheduler:
    """Create a scheduler with a cron entry for every enabled job.

    The scheduler is returned unstarted. Disabled jobs are not registered.
    Overlapping fires are also guarded by each job's run lock.

    Args:
        woocommerce_job: WooCommerce customer pull job
        chatwoot_job: Chatwoot contact push job

    Returns:
        Configured AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler()

    for job in (woocommerce_job, chatwoot_job):
        if job is None:
            continue

        job.log_status()
        if not job.enabled:
            continue

        scheduler.add_job(
            job.handle_cron,
            trigger=CronTrigger.from_crontab(job.schedule),
            id=job.name,
            name=job.name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Scheduled {job.name} with cron '{job.schedule}'")

    return scheduler
