"""
Scheduled batch jobs.

============================================================================
IN-PROCESS SCHEDULE (ENABLE_SCHEDULER=true)
============================================================================
When no external scheduler calls the /api/cron endpoints, the same jobs run
here on cron triggers:

- process-raw-data   every hour at :05
- enhance-content    vision 02:00, translate 03:00, youtube 04:00 UTC
- seo-enhance        indexing 05:00, analytics 06:00 UTC

Branches whose Google API is not configured are skipped with a log line.
============================================================================
"""

import asyncio
import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog.config import get_settings
from catalog.db.database import async_session_maker
from catalog.ingestion.content_enhancer import not_configured_error, run_content_enhancement
from catalog.ingestion.raw_data_processor import process_raw_data
from catalog.ingestion.seo_enhancer import run_seo_enhancement

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(
    timezone=timezone.utc,
    job_defaults={
        "misfire_grace_time": 60 * 60,
        "coalesce": True,
        # A slow run must not overlap the next one
        "max_instances": 1,
    },
)


async def run_raw_data_job():
    logger.info("Running scheduled raw data processing...")
    try:
        async with async_session_maker() as db:
            result = await process_raw_data(db)
        logger.info(f"Raw data processing finished: {result['stats']}")
    except Exception as e:
        logger.error(f"Scheduled raw data processing failed: {e}", exc_info=True)


async def run_enhancement_job(enhancement_type: str):
    error = not_configured_error(enhancement_type, get_settings())
    if error:
        logger.info(f"{error}, skipping scheduled {enhancement_type} enhancement")
        return

    logger.info(f"Running scheduled {enhancement_type} enhancement...")
    try:
        async with async_session_maker() as db:
            result = await run_content_enhancement(db, enhancement_type)
        logger.info(f"{enhancement_type} enhancement finished: {result['stats']}")
    except Exception as e:
        logger.error(f"Scheduled {enhancement_type} enhancement failed: {e}", exc_info=True)


async def run_seo_job(seo_type: str):
    settings = get_settings()
    configured = settings.indexing_configured if seo_type == "indexing" else settings.analytics_configured
    if not configured:
        logger.info(f"Google {seo_type} not configured, skipping scheduled SEO job")
        return

    logger.info(f"Running scheduled SEO {seo_type}...")
    try:
        async with async_session_maker() as db:
            result = await run_seo_enhancement(db, seo_type)
        logger.info(f"SEO {seo_type} finished: {result['stats']}")
    except Exception as e:
        logger.error(f"Scheduled SEO {seo_type} failed: {e}", exc_info=True)


def start_scheduler():
    """Register the batch jobs and start the scheduler."""
    scheduler.add_job(
        run_raw_data_job,
        CronTrigger(minute=5),
        id="process_raw_data",
        replace_existing=True,
    )

    for hour, enhancement_type in ((2, "vision"), (3, "translate"), (4, "youtube")):
        scheduler.add_job(
            run_enhancement_job,
            CronTrigger(hour=hour, minute=0),
            args=[enhancement_type],
            id=f"enhance_{enhancement_type}",
            replace_existing=True,
        )

    for hour, seo_type in ((5, "indexing"), (6, "analytics")):
        scheduler.add_job(
            run_seo_job,
            CronTrigger(hour=hour, minute=0),
            args=[seo_type],
            id=f"seo_{seo_type}",
            replace_existing=True,
        )

    scheduler.start()
    logger.info("Scheduler started - raw data hourly, enrichment 02:00-04:00, SEO 05:00-06:00 UTC")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    # Run the raw data job once by hand
    from catalog.logging import configure_logging

    configure_logging()
    asyncio.run(run_raw_data_job())
