"""
Error middleware.

Typed domain errors become structured JSON responses with their own
status code; anything else is recorded in the diagnostic sink and
answered with 500.
"""

from aiohttp import web
from loguru import logger

from app.models.enums import ErrorSeverity, ErrorType
from app.utils.exceptions import AffiliateLedgerError
from app.utils.request_context import request_meta
from app.web.keys import CONTAINER_KEY


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except AffiliateLedgerError as e:
        if e.http_status >= 500:
            logger.error(f"{request.method} {request.path} failed: {e.message}")
        else:
            logger.info(f"{request.method} {request.path} rejected: {e.error_code}")
        return web.json_response(e.to_dict(), status=e.http_status)
    except Exception as e:
        container = request.app[CONTAINER_KEY]
        await container.diagnostics.record(
            f"Unhandled error on {request.path}: {e}",
            error_type=ErrorType.API_ERROR,
            severity=ErrorSeverity.ERROR,
            source="web",
            exc=e,
            meta=request_meta(request.headers, endpoint=request.path),
            http_status=500,
        )
        return web.json_response(
            {"error": "Internal server error", "error_code": "internal_error"}, status=500
        )
