"""
Admin endpoints.

The identity layer in front of this service forwards the authenticated
subject in X-Identity-Subject; it must be on the admin allowlist.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any

from aiohttp import web

from app.services.container import ServiceContainer
from app.utils.exceptions import InvalidRequestError
from app.web.keys import CONTAINER_KEY
from app.web.serializers import (
    affiliate_to_dict,
    payout_to_dict,
    referral_to_dict,
    review_item_to_dict,
    system_error_to_dict,
    tier_to_dict,
)


SUBJECT_HEADER = "X-Identity-Subject"

routes = web.RouteTableDef()


def _admin(request: web.Request) -> tuple[ServiceContainer, str]:
    container: ServiceContainer = request.app[CONTAINER_KEY]
    subject = container.authorizer.require(request.headers.get(SUBJECT_HEADER))
    return container, subject


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError("Invalid JSON body") from e
    if not isinstance(data, dict):
        raise InvalidRequestError("JSON object expected")
    return data


def _required(data: dict[str, Any], *names: str) -> list[Any]:
    values = [data.get(name) for name in names]
    if any(value in (None, "", []) for value in values):
        raise InvalidRequestError("Missing required fields", required=list(names))
    return values


def _int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError(f"{name} must be an integer") from e


def _int_list(value: Any, name: str) -> list[int]:
    if not isinstance(value, list):
        raise InvalidRequestError(f"{name} must be a list")
    return [_int(item, name) for item in value]


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidRequestError(f"{name} must be a number") from e


# Affiliates

@routes.post("/admin/affiliates/status")
async def affiliate_status(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    affiliate_id, status = _required(data, "affiliate_id", "status")
    async with container.session_factory() as session:
        affiliate = await container.affiliate_admin(session).set_status(
            _int(affiliate_id, "affiliate_id"), status, changed_by=subject
        )
        return web.json_response({"success": True, "affiliate": affiliate_to_dict(affiliate)})


@routes.post("/admin/affiliates/bulk-status")
async def affiliate_bulk_status(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    affiliate_ids, status = _required(data, "affiliate_ids", "status")
    async with container.session_factory() as session:
        count = await container.affiliate_admin(session).bulk_set_status(
            _int_list(affiliate_ids, "affiliate_ids"), status, changed_by=subject
        )
    return web.json_response({"success": True, "count": count})


@routes.post("/admin/affiliates/recalculate")
async def affiliate_recalculate(request: web.Request) -> web.Response:
    container, _ = _admin(request)
    data = await _json_body(request)
    (affiliate_id,) = _required(data, "affiliate_id")
    async with container.session_factory() as session:
        result = await container.affiliate_admin(session).recalculate(
            _int(affiliate_id, "affiliate_id")
        )
        return web.json_response({
            "success": True,
            "affiliate": affiliate_to_dict(result.affiliate),
            "tier_upgraded": result.tier_change is not None,
        })


# Referrals

@routes.post("/admin/referrals/status")
async def referral_status(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    referral_id, status = _required(data, "referral_id", "status")
    async with container.session_factory() as session:
        referral = await container.referral_admin(session).set_status(
            _int(referral_id, "referral_id"), status, changed_by=subject
        )
        return web.json_response({"success": True, "referral": referral_to_dict(referral)})


@routes.post("/admin/referrals/bulk-status")
async def referral_bulk_status(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    referral_ids, status = _required(data, "referral_ids", "status")
    async with container.session_factory() as session:
        count = await container.referral_admin(session).bulk_set_status(
            _int_list(referral_ids, "referral_ids"), status, changed_by=subject
        )
    return web.json_response({"success": True, "count": count})


# Payouts

@routes.post("/admin/payouts/create")
async def payouts_create(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    affiliate_ids, method = _required(data, "affiliate_ids", "method")
    async with container.session_factory() as session:
        result = await container.payout_admin(session).create_payouts(
            _int_list(affiliate_ids, "affiliate_ids"),
            method,
            created_by=subject,
            notes=data.get("notes"),
        )
        return web.json_response({
            "success": True,
            "method": str(result.method),
            "batch_id": result.batch_id,
            "total_amount": str(result.total_amount),
            "payouts": [payout_to_dict(p) for p in result.payouts],
            "excluded": {str(k): v for k, v in result.excluded.items()},
        })


@routes.post("/admin/payouts/status")
async def payout_status(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    payout_id, status = _required(data, "payout_id", "status")
    async with container.session_factory() as session:
        payout = await container.payout_admin(session).set_status(
            _int(payout_id, "payout_id"),
            status,
            changed_by=subject,
            failure_reason=data.get("failure_reason"),
        )
        return web.json_response({"success": True, "payout": payout_to_dict(payout)})


@routes.post("/admin/payouts/check-status")
async def payouts_check_status(request: web.Request) -> web.Response:
    container, _ = _admin(request)
    async with container.session_factory() as session:
        poller = container.poller(session)
        if poller is None:
            return web.json_response(
                {"error": "PayPal is not configured", "error_code": "processor_not_configured"},
                status=503,
            )
        report = await poller.run()
    return web.json_response({"success": True, "results": report.to_dict()})


# Tiers

@routes.post("/admin/tiers/update")
async def tier_update(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    tier_id, name = _required(data, "id", "name")
    async with container.session_factory() as session:
        tier, affected = await container.tier_admin(session).update_tier(
            _int(tier_id, "id"),
            name=name,
            min_referrals=_int(data.get("min_referrals") or 0, "min_referrals"),
            commission_rate=_decimal(data.get("commission_rate") or "0.10", "commission_rate"),
            updated_by=subject,
            description=data.get("description"),
            perks=data.get("perks"),
        )
        return web.json_response(
            {"success": True, "tier": tier_to_dict(tier), "affiliates_updated": affected}
        )


# Operations

@routes.get("/admin/errors")
async def errors_list(request: web.Request) -> web.Response:
    container, _ = _admin(request)
    async with container.session_factory() as session:
        records = await container.operations_admin(session).list_errors(
            severity=request.query.get("severity")
        )
        return web.json_response({"errors": [system_error_to_dict(r) for r in records]})


@routes.post("/admin/errors/resolve")
async def errors_resolve(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    (error_id,) = _required(data, "error_id")
    async with container.session_factory() as session:
        record = await container.operations_admin(session).resolve_error(
            _int(error_id, "error_id"), resolved_by=subject, notes=data.get("notes")
        )
        return web.json_response({"success": True, "error": system_error_to_dict(record)})


@routes.get("/admin/review-items")
async def review_items_list(request: web.Request) -> web.Response:
    container, _ = _admin(request)
    async with container.session_factory() as session:
        items = await container.operations_admin(session).list_review_items(
            kind=request.query.get("kind")
        )
        return web.json_response({"items": [review_item_to_dict(i) for i in items]})


@routes.post("/admin/review-items/resolve")
async def review_items_resolve(request: web.Request) -> web.Response:
    container, subject = _admin(request)
    data = await _json_body(request)
    (item_id,) = _required(data, "item_id")
    async with container.session_factory() as session:
        item = await container.operations_admin(session).resolve_review_item(
            _int(item_id, "item_id"), resolved_by=subject, notes=data.get("notes")
        )
        return web.json_response({"success": True, "item": review_item_to_dict(item)})
