"""
Cron endpoint for the reconciliation poller.

External schedulers call it with "Authorization: Bearer <CRON_SECRET>".
Without a configured secret the endpoint is open and logs a warning.
"""

import hmac

from aiohttp import web
from loguru import logger

from app.config.settings import settings
from app.services.container import ServiceContainer
from app.utils.exceptions import AuthorizationError
from app.web.keys import CONTAINER_KEY


routes = web.RouteTableDef()


def check_cron_auth(authorization: str | None, secret: str | None) -> None:
    """
    Raises:
        AuthorizationError: Secret configured and header does not match
    """
    if not secret:
        logger.warning("CRON_SECRET not configured, cron endpoint is unauthenticated")
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise AuthorizationError("Unauthorized")


async def _payout_status(request: web.Request) -> web.Response:
    check_cron_auth(request.headers.get("Authorization"), settings.cron_secret)
    container: ServiceContainer = request.app[CONTAINER_KEY]
    async with container.session_factory() as session:
        poller = container.poller(session)
        if poller is None:
            return web.json_response({"message": "PayPal is not configured", "results": None})
        report = await poller.run()
    return web.json_response({"results": report.to_dict()})


routes.get("/cron/payout-status")(_payout_status)
routes.post("/cron/payout-status")(_payout_status)
