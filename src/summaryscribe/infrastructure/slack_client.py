"""Slack Web API client."""

import logging
from typing import Any

import aiohttp
from aiohttp import ClientTimeout

from summaryscribe.config import get_settings
from summaryscribe.errors import UpstreamError

logger = logging.getLogger(__name__)
settings = get_settings()


class SlackAPIError(UpstreamError):
    """Slack answered ``ok: false`` or a non-2xx status."""


class SlackClient:
    """Async client for the handful of Slack Web API methods we call."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        """Initialize Slack client.

        Args:
            base_url: Slack Web API base URL (defaults to config)
            timeout_seconds: Request timeout in seconds
        """
        self.base_url = (base_url or settings.slack_api_base_url).rstrip("/")
        self.timeout = ClientTimeout(total=timeout_seconds or settings.http_timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _call(self, method: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload to a Web API method and return the body.

        Raises:
            SlackAPIError: on transport failure, non-2xx, or ``ok: false``
        """
        session = await self._get_session()
        url = f"{self.base_url}/{method}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status >= 300:
                    raise SlackAPIError(
                        f"Slack API error: HTTP {response.status}",
                        upstream_status=response.status,
                    )
                data = await response.json()
        except aiohttp.ClientError as e:
            logger.warning(f"Slack {method} transport error: {e}")
            raise SlackAPIError(f"Slack API error: {e}") from e
        except TimeoutError as e:
            logger.warning(f"Slack {method} timed out")
            raise SlackAPIError("Slack API error: request timed out") from e

        if not data.get("ok"):
            raise SlackAPIError(f"Slack API error: {data.get('error', 'unknown_error')}")
        return data

    async def open_dm(self, token: str, slack_user_id: str) -> str:
        """Open (or resolve) a DM with a user and return its channel id."""
        data = await self._call("conversations.open", token, {"users": slack_user_id})
        return data["channel"]["id"]

    async def post_message(
        self,
        token: str,
        channel: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        """Post a message and return its ``ts``."""
        payload: dict[str, Any] = {
            "channel": channel,
            "text": text,
            "unfurl_links": False,
            "unfurl_media": False,
        }
        if blocks:
            payload["blocks"] = blocks
        data = await self._call("chat.postMessage", token, payload)
        return data["ts"]
