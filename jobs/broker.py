"""
Dramatiq broker configuration.

Redis-backed broker for the reconciliation worker.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import Retries, ShutdownNotifications
from loguru import logger

from app.config.settings import settings


redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password or None,
    db=settings.redis_db,
)

# Reconciliation is re-run by the scheduler anyway, so retries stay short
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(
    Retries(
        max_retries=2,
        min_backoff=5000,
        max_backoff=60000,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    f"Dramatiq broker initialized: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)
