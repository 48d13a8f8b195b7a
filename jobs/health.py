"""
Health endpoints for the scheduler process.

/health reports the reconciliation job schedule, /readiness also checks
that the ledger database answers, /liveness only proves the loop runs.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from jobs.utils.database import task_session_maker


_scheduler: AsyncIOScheduler | None = None


def set_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Register the scheduler the endpoints report on."""
    global _scheduler
    _scheduler = scheduler


def scheduler_status() -> dict:
    """Snapshot of the registered scheduler and its jobs."""
    if _scheduler is None:
        return {"status": "unhealthy", "error": "Scheduler not initialized"}

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in _scheduler.get_jobs()
    ]
    return {
        "status": "healthy" if _scheduler.running else "stopped",
        "scheduler_running": _scheduler.running,
        "jobs": jobs,
    }


async def database_reachable() -> bool:
    try:
        async with task_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Ledger database unreachable: {e}")
        return False


async def health_handler(request: web.Request) -> web.Response:
    body = scheduler_status()
    return web.json_response(body, status=200 if body["status"] == "healthy" else 503)


async def readiness_handler(request: web.Request) -> web.Response:
    scheduler_ok = _scheduler is not None and _scheduler.running
    database_ok = await database_reachable()
    ready = scheduler_ok and database_ok
    return web.json_response(
        {"ready": ready, "scheduler": scheduler_ok, "database": database_ok},
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    return web.json_response({"alive": True})


def create_health_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8081,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start the health server.

    Returns:
        (AppRunner, TCPSite) for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Health server listening on {host}:{port}")
    return runner, site


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Health server cleanup timed out after {timeout}s")
