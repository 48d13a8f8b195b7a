"""
Shopify Admin API client.

Creates affiliate discount codes through the GraphQL Admin API.
"""

import asyncio
from decimal import Decimal
from typing import Any

import aiohttp
from loguru import logger

from app.config.settings import settings
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import ExternalServiceError


DISCOUNT_CODE_CREATE = """
mutation discountCodeBasicCreate($basicCodeDiscount: DiscountCodeBasicInput!) {
  discountCodeBasicCreate(basicCodeDiscount: $basicCodeDiscount) {
    codeDiscountNode { id }
    userErrors { field message }
  }
}
"""


class ShopifyClient:
    """Minimal Shopify Admin GraphQL client."""

    SERVICE = "shopify"

    def __init__(
        self,
        store_domain: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
        timeout_seconds: float | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.store_domain = store_domain or settings.shopify_store_domain
        self.access_token = access_token or settings.shopify_admin_access_token
        self.api_version = api_version or settings.shopify_api_version
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.http_timeout_seconds
        )
        self._session = http_session
        self._owns_session = http_session is None

    @property
    def configured(self) -> bool:
        return bool(self.store_domain and self.access_token)

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            raise ExternalServiceError("Shopify admin API not configured", service=self.SERVICE)
        try:
            session = await self._get_session()
            async with session.post(
                self.graphql_url,
                json={"query": query, "variables": variables},
                headers={
                    "X-Shopify-Access-Token": self.access_token,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            ) as response:
                body = await response.json(content_type=None)
                if response.status >= 300:
                    raise ExternalServiceError(
                        f"Shopify GraphQL HTTP {response.status}",
                        service=self.SERVICE,
                        status=response.status,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalServiceError(
                f"Shopify request failed: {e}", service=self.SERVICE
            ) from e

        if body.get("errors"):
            raise ExternalServiceError(
                f"Shopify GraphQL errors: {body['errors']}", service=self.SERVICE
            )
        return body.get("data") or {}

    async def create_discount_code(
        self, code: str, percent: Decimal, title: str
    ) -> str:
        """
        Create a percentage discount code usable once per customer.

        Args:
            code: Code customers type at checkout
            percent: Discount percentage (10 = 10%)
            title: Admin-facing title

        Returns:
            Discount node id

        Raises:
            ExternalServiceError: On transport failure or user errors
        """
        variables = {
            "basicCodeDiscount": {
                "title": title,
                "code": code,
                "startsAt": utc_now().isoformat(),
                "customerSelection": {"all": True},
                "customerGets": {
                    "value": {"percentage": float(percent / 100)},
                    "items": {"all": True},
                },
                "appliesOncePerCustomer": True,
            }
        }
        data = await self._graphql(DISCOUNT_CODE_CREATE, variables)
        result = data.get("discountCodeBasicCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ExternalServiceError(
                f"Shopify rejected discount {code}: {user_errors[0].get('message')}",
                service=self.SERVICE,
                user_errors=user_errors,
            )
        node_id = (result.get("codeDiscountNode") or {}).get("id")
        if not node_id:
            raise ExternalServiceError(
                f"Shopify returned no discount id for {code}", service=self.SERVICE
            )
        logger.info(f"Shopify discount {code} created ({node_id})")
        return node_id
