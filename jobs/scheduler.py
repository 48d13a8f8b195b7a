"""
Task scheduler process.

Enqueues the reconciliation actor on a fixed interval and serves the
health endpoints.

Usage:
    python -m jobs.scheduler
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.config.settings import settings
from app.utils.logging_config import setup_logging
from jobs.broker import broker  # noqa: F401  registers the broker
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.payout_reconciliation import reconcile_payouts


def create_scheduler() -> AsyncIOScheduler:
    """Scheduler with the reconciliation job registered."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        reconcile_payouts.send,
        "interval",
        minutes=settings.reconciliation_interval_minutes,
        id="payout_reconciliation",
        name="Payout reconciliation",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


async def main() -> None:
    setup_logging("scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    logger.info(
        f"Scheduler started: reconciliation every {settings.reconciliation_interval_minutes} min"
    )

    runner, _ = await start_health_server(port=settings.health_check_port)
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")
