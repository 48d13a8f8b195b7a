"""
PayPal Payouts client.

OAuth client-credential token cached until shortly before expiry,
batch creation, batch status queries and webhook signature
verification. Transient failures (timeouts, 429, 5xx) are retried with
jittered exponential backoff.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import aiohttp
from loguru import logger

from app.config import constants as c
from app.config.settings import settings
from app.services.integrations.expiring_token import ExpiringToken
from app.services.integrations.interfaces import (
    BatchSubmission,
    PayoutItemRequest,
    RemoteBatch,
    RemoteItem,
)
from app.utils.backoff import jittered_backoff
from app.utils.exceptions import PaymentProcessorError, ProcessorNotConfiguredError
from app.utils.money import format_money


_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

_TRANSMISSION_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


def map_batch_status(batch_status: str) -> str:
    """Processor batch status -> local payout status."""
    return c.PAYPAL_BATCH_STATUS_MAP.get(batch_status.upper(), "processing")


def map_item_status(transaction_status: str) -> str:
    """Processor item status -> local payout status."""
    return c.PAYPAL_ITEM_STATUS_MAP.get(transaction_status.upper(), "processing")


def parse_batch(data: dict[str, Any]) -> RemoteBatch:
    """
    Parse a batch status response.

    Args:
        data: JSON body of GET /v1/payments/payouts/{id}

    Returns:
        RemoteBatch with mapped statuses
    """
    header = data.get("batch_header") or {}
    batch_status = str(header.get("batch_status") or "PENDING")
    items = []
    for raw in data.get("items") or []:
        transaction_status = str(raw.get("transaction_status") or "PENDING")
        errors = raw.get("errors") or {}
        items.append(
            RemoteItem(
                sender_item_id=(raw.get("payout_item") or {}).get("sender_item_id"),
                payout_item_id=raw.get("payout_item_id"),
                transaction_status=transaction_status,
                mapped_status=map_item_status(transaction_status),
                error=errors.get("message") if isinstance(errors, dict) else None,
            )
        )
    return RemoteBatch(
        batch_id=str(header.get("payout_batch_id") or ""),
        batch_status=batch_status,
        mapped_status=map_batch_status(batch_status),
        items=tuple(items),
    )


def missing_transmission_headers(headers: Mapping[str, str]) -> list[str]:
    """Names of required transmission headers that are absent."""
    return [name for name in _TRANSMISSION_HEADERS.values() if not headers.get(name)]


def is_trusted_cert_url(cert_url: str | None) -> bool:
    """Cert URL must live on a processor domain."""
    return bool(cert_url) and cert_url.startswith(c.PAYPAL_CERT_URL_PREFIXES)


class PayPalClient:
    """Async PayPal REST client."""

    SERVICE = "paypal"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        mode: str | None = None,
        timeout_seconds: float | None = None,
        http_session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize PayPal client.

        Args default to settings; http_session, sleep and clock are
        injectable for tests.
        """
        self.client_id = client_id if client_id is not None else settings.paypal_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.paypal_client_secret
        )
        self.base_url = c.PAYPAL_BASE_URLS[mode or settings.paypal_mode]
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.http_timeout_seconds
        )
        self._session = http_session
        self._owns_session = http_session is None
        self._sleep = sleep
        self._clock = clock
        self._token: ExpiringToken | None = None
        self._token_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the owned HTTP session."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _access_token(self) -> str:
        """Cached OAuth token, refreshed within the expiry buffer."""
        if not self.configured:
            raise ProcessorNotConfiguredError(
                "PayPal credentials not configured", service=self.SERVICE
            )

        async with self._token_lock:
            now = self._clock()
            if self._token and self._token.is_usable(now, c.TOKEN_EXPIRY_BUFFER_SECONDS):
                return self._token.value

            session = await self._get_session()
            try:
                async with session.post(
                    f"{self.base_url}/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
                    timeout=self.timeout,
                ) as response:
                    body = await response.json(content_type=None)
                    if response.status != 200:
                        raise PaymentProcessorError(
                            f"PayPal auth failed: HTTP {response.status}",
                            service=self.SERVICE,
                            status=response.status,
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise PaymentProcessorError(
                    f"PayPal auth request failed: {e}", service=self.SERVICE
                ) from e

            self._token = ExpiringToken.issued(
                body["access_token"], float(body.get("expires_in", 0)), now
            )
            logger.debug("PayPal access token refreshed")
            return self._token.value

    async def _request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Authenticated JSON request with retries.

        Raises:
            PaymentProcessorError: Non-retryable answer, or retries exhausted.
                context["outcome_unknown"] is True when an earlier attempt
                timed out after the request may have reached the processor.
        """
        outcome_unknown = False
        last_error = ""
        last_status: int | None = None

        for attempt in range(1, c.PROCESSOR_MAX_ATTEMPTS + 1):
            token = await self._access_token()
            session = await self._get_session()
            try:
                async with session.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json_body,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                    },
                    timeout=self.timeout,
                ) as response:
                    body = await response.json(content_type=None)
                    if response.status < 300:
                        return body or {}

                    last_status = response.status
                    last_error = (body or {}).get("message") or f"HTTP {response.status}"
                    if response.status == 401:
                        self._token = None
                    elif response.status not in _RETRYABLE_STATUSES:
                        raise PaymentProcessorError(
                            f"PayPal {method} {path} failed: {last_error}",
                            service=self.SERVICE,
                            status=response.status,
                            response=body,
                            outcome_unknown=outcome_unknown,
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or type(e).__name__
                last_status = None
                outcome_unknown = True

            if attempt < c.PROCESSOR_MAX_ATTEMPTS:
                delay = jittered_backoff(
                    attempt, c.PROCESSOR_BACKOFF_BASE_SECONDS, c.PROCESSOR_BACKOFF_MAX_SECONDS
                )
                logger.warning(
                    f"PayPal {method} {path} attempt {attempt} failed ({last_error}); "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        raise PaymentProcessorError(
            f"PayPal {method} {path} failed after {c.PROCESSOR_MAX_ATTEMPTS} attempts: {last_error}",
            service=self.SERVICE,
            status=last_status,
            outcome_unknown=outcome_unknown,
        )

    async def create_batch(
        self,
        sender_batch_id: str,
        items: list[PayoutItemRequest],
        email_subject: str,
        email_message: str,
    ) -> BatchSubmission:
        """
        Submit a payout batch.

        sender_batch_id makes resubmission of the same batch idempotent on
        the processor side.
        """
        payload = {
            "sender_batch_header": {
                "sender_batch_id": sender_batch_id,
                "email_subject": email_subject,
                "email_message": email_message,
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {"value": format_money(item.amount), "currency": c.CURRENCY},
                    "receiver": item.receiver_email,
                    "note": item.note,
                    "sender_item_id": item.sender_item_id,
                }
                for item in items
            ],
        }
        data = await self._request("POST", "/v1/payments/payouts", payload)
        header = data.get("batch_header") or {}
        batch_id = header.get("payout_batch_id")
        if not batch_id:
            raise PaymentProcessorError(
                "PayPal batch response missing payout_batch_id",
                service=self.SERVICE,
                response=data,
                outcome_unknown=True,
            )
        logger.info(f"PayPal batch {batch_id} created with {len(items)} items")
        return BatchSubmission(
            batch_id=batch_id,
            batch_status=str(header.get("batch_status") or "PENDING"),
            sender_batch_id=sender_batch_id,
        )

    async def get_batch(self, batch_id: str) -> RemoteBatch:
        """Batch and item status."""
        data = await self._request("GET", f"/v1/payments/payouts/{batch_id}")
        return parse_batch(data)

    async def verify_webhook_signature(
        self,
        headers: Mapping[str, str],
        event: dict[str, Any],
        webhook_id: str,
    ) -> bool:
        """
        Ask the processor to verify a webhook delivery.

        Returns:
            True when verification_status is SUCCESS
        """
        payload = {key: headers.get(header) for key, header in _TRANSMISSION_HEADERS.items()}
        payload["webhook_id"] = webhook_id
        payload["webhook_event"] = event
        data = await self._request("POST", "/v1/notifications/verify-webhook-signature", payload)
        return data.get("verification_status") == "SUCCESS"
