from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from marketfolio.dependencies import (
    market_data_service,
    portfolio_repository,
    snapshot_recorder,
)
from shared.config import settings
from shared.logging_config import get_logger

logger = get_logger("scheduler")
scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)


def job_listener(event):
    if event.code == EVENT_JOB_EXECUTED:
        logger.info(f"Job {event.job_id} executed successfully")
    elif event.code == EVENT_JOB_ERROR:
        logger.error(f"Job {event.job_id} failed with exception: {event.exception}")


async def refresh_quotes_job():
    symbols = await portfolio_repository.list_symbols()
    logger.info(f"Refreshing quotes for {len(symbols)} symbols")
    await market_data_service.get_current_prices(symbols)


async def record_daily_snapshots_job():
    await snapshot_recorder.record_daily_snapshots_for_all()


async def purge_quote_cache_job():
    await market_data_service.purge_stale_quotes(
        timedelta(days=settings.QUOTE_CACHE_RETENTION_DAYS)
    )


def configure_scheduler():
    """Configure the jobs and start the scheduler."""
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        refresh_quotes_job,
        trigger=IntervalTrigger(seconds=settings.STOCK_PRICES_INTERVAL_UPDATES_SECONDS),
        id="refresh_quotes",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.MISFIRE_GRACE_TIME_SECONDS,
    )

    scheduler.add_job(
        record_daily_snapshots_job,
        trigger=CronTrigger(hour=settings.SNAPSHOT_HOUR, minute=0),
        id="record_daily_snapshots",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.MISFIRE_GRACE_TIME_SECONDS,
    )

    scheduler.add_job(
        purge_quote_cache_job,
        trigger=CronTrigger(hour=settings.CACHE_PURGE_HOUR, minute=0),
        id="purge_quote_cache",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.MISFIRE_GRACE_TIME_SECONDS,
    )

    scheduler.start()


def start_scheduler():
    configure_scheduler()
