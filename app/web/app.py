"""
aiohttp application factory.
"""

from aiohttp import web

from app.services.container import ServiceContainer
from app.web import admin_routes, cron_routes, webhook_routes
from app.web.keys import CONTAINER_KEY
from app.web.middleware import error_middleware


MAX_BODY_BYTES = 2 * 1024 * 1024


async def _close_container(app: web.Application) -> None:
    await app[CONTAINER_KEY].close()


def create_app(container: ServiceContainer) -> web.Application:
    """
    Build the web application.

    Args:
        container: Wired services for this process
    """
    app = web.Application(middlewares=[error_middleware], client_max_size=MAX_BODY_BYTES)
    app[CONTAINER_KEY] = container
    app.add_routes(webhook_routes.routes)
    app.add_routes(admin_routes.routes)
    app.add_routes(cron_routes.routes)
    app.on_cleanup.append(_close_container)
    return app
