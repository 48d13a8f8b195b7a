"""
Klaviyo events client.

Fire-and-forget profile events. Never raises: a failed event is logged
and reported as False.
"""

import asyncio
from typing import Any

import aiohttp
from loguru import logger

from app.config import constants as c
from app.config.settings import settings
from app.utils.security import mask_email


class KlaviyoClient:
    """Sends named events to the Klaviyo Events API."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.klaviyo_api_key
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.http_timeout_seconds
        )
        self._session = http_session
        self._owns_session = http_session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def track(self, event_name: str, email: str, properties: dict[str, Any]) -> bool:
        """
        Send one event.

        Args:
            event_name: Metric name ("Affiliate Referral", ...)
            email: Profile email
            properties: Event properties

        Returns:
            True if the platform accepted the event
        """
        if not self.api_key:
            logger.debug(f"Klaviyo not configured, skipping {event_name!r}")
            return False

        payload = {
            "data": {
                "type": "event",
                "attributes": {
                    "properties": properties,
                    "metric": {"data": {"type": "metric", "attributes": {"name": event_name}}},
                    "profile": {"data": {"type": "profile", "attributes": {"email": email}}},
                },
            }
        }
        headers = {
            "Authorization": f"Klaviyo-API-Key {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "revision": c.KLAVIYO_REVISION,
        }

        try:
            session = await self._get_session()
            async with session.post(
                c.KLAVIYO_EVENTS_URL, json=payload, headers=headers, timeout=self.timeout
            ) as response:
                if response.status >= 300:
                    text = await response.text()
                    logger.warning(
                        f"Klaviyo event {event_name!r} rejected: HTTP {response.status} {text[:200]}"
                    )
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Klaviyo event {event_name!r} for {mask_email(email)} failed: {e}")
            return False

        logger.debug(f"Klaviyo event {event_name!r} sent for {mask_email(email)}")
        return True
