"""
Web process entry point.

Usage:
    python -m app.main
"""

import asyncio

from aiohttp import web
from loguru import logger

from app.config.database import async_engine, async_session_maker
from app.config.settings import settings
from app.services.container import ServiceContainer
from app.utils.logging_config import setup_logging
from app.web import create_app


async def main() -> None:
    """Run the web server until cancelled."""
    setup_logging("web")

    container = ServiceContainer.from_settings(async_session_maker)
    app = create_app(container)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.web_host, settings.web_port)
    await site.start()
    logger.info(f"Web server started on {settings.web_host}:{settings.web_port}")

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down web server...")
        await runner.cleanup()
        await async_engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Web server stopped")
