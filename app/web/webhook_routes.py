"""
Webhook endpoints.

The response status is the only signal a source gets back: 2xx for
every handled or benign outcome, 401 for a bad signature and 5xx (after
a diagnostic record) when redelivery should be attempted.
"""

import json
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ErrorSeverity, ErrorType
from app.services.container import ServiceContainer
from app.services.webhooks import WebhookResult, verify_disbursement_webhook
from app.services.webhooks.signature import STOREFRONT_TOPIC_HEADER
from app.utils.exceptions import SignatureVerificationError
from app.utils.request_context import RequestMeta, request_meta
from app.web.keys import CONTAINER_KEY


routes = web.RouteTableDef()

Handler = Callable[[AsyncSession, dict, RequestMeta], Awaitable[WebhookResult]]


def _order_ref(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    inner = payload.get("charge") or payload.get("resource") or payload
    if not isinstance(inner, dict):
        return None
    ref = inner.get("id") or inner.get("order_id")
    return str(ref) if ref is not None else None


async def _process(
    request: web.Request,
    source: str,
    error_type: ErrorType,
    payload: dict,
    handler: Handler,
) -> web.Response:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    meta = request_meta(request.headers, endpoint=request.path)
    try:
        async with container.session_factory() as session:
            result = await handler(session, payload, meta)
    except Exception as e:
        await container.diagnostics.record(
            f"{source} webhook processing failed: {e}",
            error_type=error_type,
            severity=ErrorSeverity.ERROR,
            source=f"{source}_webhook",
            exc=e,
            meta=meta,
            order_id=_order_ref(payload),
            request_payload=payload,
            http_status=500,
        )
        return web.json_response({"error": "Processing failed"}, status=500)

    logger.info(f"{source} webhook handled: {result.outcome}", extra=result.detail)
    return web.json_response(result.to_dict())


def _parse_json(body: bytes) -> dict | None:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _unauthorized(source: str, error: SignatureVerificationError) -> web.Response:
    logger.warning(f"Rejected {source} webhook: {error.message}")
    return web.json_response(error.to_dict(), status=error.http_status)


def _bad_payload() -> web.Response:
    return web.json_response({"error": "Invalid JSON payload"}, status=400)


@routes.post("/webhooks/storefront")
async def storefront_webhook(request: web.Request) -> web.Response:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    body = await request.read()
    try:
        container.verifier.verify_storefront(body, request.headers)
    except SignatureVerificationError as e:
        return _unauthorized("storefront", e)

    payload = _parse_json(body)
    if payload is None:
        return _bad_payload()
    topic = request.headers.get(STOREFRONT_TOPIC_HEADER)

    async def handle(session: AsyncSession, data: dict, meta: RequestMeta) -> WebhookResult:
        return await container.storefront_handler(session).handle(topic, data, meta)

    return await _process(request, "storefront", ErrorType.STOREFRONT_ERROR, payload, handle)


@routes.post("/webhooks/subscription")
async def subscription_webhook(request: web.Request) -> web.Response:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    body = await request.read()
    try:
        container.verifier.verify_subscription(body, request.headers)
    except SignatureVerificationError as e:
        return _unauthorized("subscription", e)

    payload = _parse_json(body)
    if payload is None:
        return _bad_payload()

    async def handle(session: AsyncSession, data: dict, meta: RequestMeta) -> WebhookResult:
        return await container.subscription_handler(session).handle(data, meta)

    return await _process(request, "subscription", ErrorType.SUBSCRIPTION_ERROR, payload, handle)


@routes.post("/webhooks/identity")
async def identity_webhook(request: web.Request) -> web.Response:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    body = await request.read()
    try:
        container.verifier.verify_identity(body, request.headers)
    except SignatureVerificationError as e:
        return _unauthorized("identity", e)

    payload = _parse_json(body)
    if payload is None:
        return _bad_payload()

    async def handle(session: AsyncSession, data: dict, meta: RequestMeta) -> WebhookResult:
        return await container.identity_handler(session).handle(data, meta)

    return await _process(request, "identity", ErrorType.WEBHOOK_ERROR, payload, handle)


@routes.post("/webhooks/disbursement")
async def disbursement_webhook(request: web.Request) -> web.Response:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    payload = _parse_json(await request.read())
    if payload is None:
        return _bad_payload()

    try:
        await verify_disbursement_webhook(request.headers, payload, container.processor)
    except SignatureVerificationError as e:
        return _unauthorized("disbursement", e)
    except Exception as e:
        # Verification endpoint unreachable: let the processor redeliver
        await container.diagnostics.record(
            f"Disbursement webhook verification failed: {e}",
            error_type=ErrorType.DISBURSEMENT_ERROR,
            severity=ErrorSeverity.WARNING,
            source="disbursement_webhook",
            exc=e,
            meta=request_meta(request.headers, endpoint=request.path),
            request_payload=payload,
            http_status=500,
        )
        return web.json_response({"error": "Verification unavailable"}, status=500)

    async def handle(session: AsyncSession, data: dict, meta: RequestMeta) -> WebhookResult:
        return await container.disbursement_handler(session).handle(data)

    return await _process(request, "disbursement", ErrorType.DISBURSEMENT_ERROR, payload, handle)
