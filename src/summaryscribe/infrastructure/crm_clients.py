"""HTTP clients that write a summary into HubSpot, Salesforce or Notion."""

import logging
from datetime import UTC, datetime
from typing import Any

import aiohttp
from aiohttp import ClientTimeout

from summaryscribe.config import get_settings
from summaryscribe.domain.summary import Summary
from summaryscribe.errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)
settings = get_settings()

HUBSPOT_NOTES_URL = "https://api.hubapi.com/crm/v3/objects/notes"
SALESFORCE_API_VERSION = "v57.0"
NOTION_PAGES_URL = "https://api.notion.com/v1/pages"

# Notion rejects rich_text items longer than this
NOTION_TEXT_LIMIT = 2000
NOTION_MAX_CHILDREN = 100


def chunk_text(text: str, size: int = NOTION_TEXT_LIMIT) -> list[str]:
    """Split text into pieces of at most ``size`` characters."""
    if not text:
        return [""]
    return [text[i : i + size] for i in range(0, len(text), size)]


def build_notion_page(parent_id: str, summary: Summary) -> dict[str, Any]:
    """Build the Notion create-page payload for a summary."""
    children = [
        {
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": [{"type": "text", "text": {"content": piece}}]},
        }
        for piece in chunk_text(summary.content)[:NOTION_MAX_CHILDREN]
    ]
    return {
        "parent": {"type": "page_id", "page_id": parent_id},
        "properties": {
            "title": {"title": [{"text": {"content": summary.title or "Slack Summary"}}]}
        },
        "children": children,
    }


class CRMClient:
    """Async client for the CRM note/page endpoints."""

    def __init__(self, timeout_seconds: int | None = None) -> None:
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

    async def _post_json(
        self, label: str, url: str, token: str, payload: dict, extra_headers: dict | None = None
    ) -> dict[str, Any]:
        session = await self._get_session()
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        if extra_headers:
            headers.update(extra_headers)
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise UpstreamError(
                        f"{label} API error: {body[:500]}", upstream_status=response.status
                    )
                return await response.json()
        except aiohttp.ClientError as e:
            raise UpstreamError(f"{label} API error: {e}") from e
        except TimeoutError as e:
            raise UpstreamError(f"{label} API error: request timed out") from e

    async def push_hubspot_note(self, token: str, summary: Summary) -> str:
        """Create a HubSpot note and return its id."""
        data = await self._post_json(
            "HubSpot",
            HUBSPOT_NOTES_URL,
            token,
            {
                "properties": {
                    "hs_note_body": summary.content,
                    "hs_timestamp": datetime.now(UTC).isoformat(),
                    "hs_note_source": "Slack Summary Scribe",
                    "hs_note_source_id": summary.id,
                }
            },
        )
        return str(data["id"])

    async def push_salesforce_note(
        self, token: str, instance_url: str | None, summary: Summary
    ) -> str:
        """Create a Salesforce Note sObject and return its id."""
        if not instance_url:
            raise ConfigError("Salesforce integration has no instance URL")
        url = f"{instance_url.rstrip('/')}/services/data/{SALESFORCE_API_VERSION}/sobjects/Note"
        data = await self._post_json(
            "Salesforce",
            url,
            token,
            {"Title": summary.title or "Slack Summary", "Body": summary.content, "IsPrivate": False},
        )
        return str(data["id"])

    async def push_notion_page(self, token: str, parent_id: str | None, summary: Summary) -> str:
        """Create a Notion page under ``parent_id`` and return its id."""
        if not parent_id:
            raise ConfigError("Notion integration has no parent page configured")
        data = await self._post_json(
            "Notion",
            NOTION_PAGES_URL,
            token,
            build_notion_page(parent_id, summary),
            extra_headers={"Notion-Version": settings.notion_api_version},
        )
        return str(data["id"])
