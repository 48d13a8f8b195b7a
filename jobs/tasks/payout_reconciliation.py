"""
Payout reconciliation task.

Polls the payment processor for payouts still in processing and settles
the ones that reached a terminal state. Scheduled every
RECONCILIATION_INTERVAL_MINUTES; a Redis lock keeps overlapping runs
from polling the same batches twice.
"""

import dramatiq
import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from app.config.settings import settings
from app.services.container import ServiceContainer
from jobs.async_runner import run_async
from jobs.utils.database import task_session_maker


RECONCILIATION_LOCK_NAME = "payout_reconciliation"
RECONCILIATION_LOCK_TIMEOUT_SECONDS = 300
RECONCILIATION_TIME_LIMIT_MS = 300_000


@dramatiq.actor(max_retries=0, time_limit=RECONCILIATION_TIME_LIMIT_MS)
def reconcile_payouts() -> dict:
    """
    Reconcile processing payouts with the processor.

    Returns:
        Report counters, or {"skipped": reason}
    """
    logger.info("Starting payout reconciliation...")
    try:
        result = run_async(_reconcile_payouts_async())
    except Exception as e:
        logger.exception(f"Payout reconciliation failed: {e}")
        raise
    logger.info(f"Payout reconciliation complete: {result}")
    return result


async def _reconcile_payouts_async() -> dict:
    redis_client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
    )
    lock = redis_client.lock(
        RECONCILIATION_LOCK_NAME, timeout=RECONCILIATION_LOCK_TIMEOUT_SECONDS
    )
    try:
        if not await lock.acquire(blocking=False):
            logger.info("Another reconciliation run holds the lock, skipping")
            return {"skipped": "locked"}
        try:
            return await run_reconciliation()
        finally:
            try:
                await lock.release()
            except RedisError as e:
                logger.warning(f"Failed to release reconciliation lock: {e}")
    finally:
        await redis_client.aclose()


async def run_reconciliation(container: ServiceContainer | None = None) -> dict:
    """
    One reconciliation pass with task-local sessions.

    Args:
        container: Wiring override (tests)
    """
    container = container or ServiceContainer.from_settings(task_session_maker)
    try:
        async with container.session_factory() as session:
            poller = container.poller(session)
            if poller is None:
                logger.debug("PayPal not configured, nothing to reconcile")
                return {"skipped": "processor_not_configured"}
            report = await poller.run()
            return report.to_dict()
    finally:
        await container.close()
