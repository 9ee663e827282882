"""Read-only dashboard aggregation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.config import get_settings
from summaryscribe.errors import UpstreamError
from summaryscribe.infrastructure.supabase_auth import CurrentUser
from summaryscribe.repositories.activity_repo import NotificationRepository, SubscriptionRepository
from summaryscribe.repositories.delivery_repo import SlackIntegrationRepository
from summaryscribe.repositories.summary_repo import SummaryRepository

logger = logging.getLogger(__name__)
settings = get_settings()

RECENT_SUMMARIES = 5
UNREAD_NOTIFICATIONS = 10
PREVIEW_CHARS = 200


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class DashboardService:
    """Fans out to the stores a dashboard needs.

    Every field is fetched on its own; a failed fetch leaves that field
    ``None`` and names it in ``errors`` instead of reporting a zero.
    """

    def __init__(self, session: AsyncSession, timeout_seconds: float | None = None) -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds or settings.dashboard_timeout_seconds
        self.summaries = SummaryRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.integrations = SlackIntegrationRepository(session)
        self.notifications = NotificationRepository(session)

    async def get_dashboard(self, user: CurrentUser) -> dict[str, Any]:
        """Build the dashboard read model.

        Raises:
            UpstreamError: the whole aggregation exceeded the timeout
        """
        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await self._aggregate(user)
        except TimeoutError as e:
            logger.error(f"Dashboard for user {user.id} timed out after {self.timeout_seconds}s")
            raise UpstreamError("Dashboard data request timed out") from e

    async def _aggregate(self, user: CurrentUser) -> dict[str, Any]:
        errors: list[str] = []
        month_start = datetime.now(UTC).replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        async def fetch(name: str, loader: Callable[[], Awaitable[Any]]) -> Any:
            try:
                async with self.session.begin_nested():
                    return await loader()
            except Exception as e:
                logger.warning(f"Dashboard field '{name}' failed for user {user.id}: {e}")
                errors.append(name)
                return None

        subscription = await fetch("subscription", lambda: self._subscription(user.id))
        total = await fetch("stats.total_summaries", lambda: self.summaries.count_for_user(user.id))
        this_month = await fetch(
            "stats.summaries_this_month",
            lambda: self.summaries.count_for_user_since(user.id, month_start),
        )
        workspaces = await fetch("slack_workspaces", lambda: self._workspaces(user.id))
        recent = await fetch("recent_summaries", lambda: self._recent(user.id))
        notifications = await fetch("notifications", lambda: self._notifications(user.id))

        return {
            "user": {"id": user.id, "email": user.email, "name": user.name},
            "subscription": subscription,
            "stats": {
                "total_summaries": total,
                "summaries_this_month": this_month,
                "slack_workspaces": len(workspaces) if workspaces is not None else None,
            },
            "slack_workspaces": workspaces,
            "recent_summaries": recent,
            "notifications": notifications,
            "errors": errors,
        }

    async def _subscription(self, user_id: str) -> dict[str, Any]:
        sub = await self.subscriptions.get_for_user(user_id)
        if sub is None:
            return {"plan": "free", "status": "active", "current_period_end": None}
        return {
            "plan": sub.plan,
            "status": sub.status,
            "current_period_end": _iso(sub.current_period_end),
        }

    async def _workspaces(self, user_id: str) -> list[dict[str, Any]]:
        rows = await self.integrations.list_for_user(user_id)
        return [
            {
                "id": row.id,
                "team_id": row.slack_team_id,
                "team_name": row.slack_team_name,
                "is_active": row.is_active,
                "connected_at": _iso(row.created_at),
            }
            for row in rows
        ]

    async def _recent(self, user_id: str) -> list[dict[str, Any]]:
        rows = await self.summaries.list_recent(user_id, limit=RECENT_SUMMARIES)
        return [
            {
                "id": row.id,
                "title": row.title,
                "preview": row.content[:PREVIEW_CHARS],
                "source_type": row.source_type,
                "slack_channel": row.slack_channel,
                "created_at": _iso(row.created_at),
            }
            for row in rows
        ]

    async def _notifications(self, user_id: str) -> list[dict[str, Any]]:
        rows = await self.notifications.list_for_user(
            user_id, unread_only=True, limit=UNREAD_NOTIFICATIONS
        )
        return [
            {
                "id": row.id,
                "type": row.type,
                "title": row.title,
                "message": row.message,
                "created_at": _iso(row.created_at),
            }
            for row in rows
        ]
