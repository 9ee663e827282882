"""Repositories for export logs, notifications and subscriptions."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.infrastructure.models import (
    ExportModel,
    NotificationModel,
    SubscriptionModel,
)


class ExportRepository:
    """Append-only export log."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def log(
        self,
        user_id: str,
        summary_id: str,
        export_type: str,
        status: str,
        organization_id: str | None = None,
        error_message: str | None = None,
    ) -> ExportModel:
        """Insert an export record."""
        row = ExportModel(
            user_id=user_id,
            organization_id=organization_id,
            summary_id=summary_id,
            export_type=export_type,
            export_status=status,
            error_message=error_message,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_summary(self, user_id: str, summary_id: str) -> list[ExportModel]:
        stmt = (
            select(ExportModel)
            .where(ExportModel.user_id == user_id, ExportModel.summary_id == summary_id)
            .order_by(ExportModel.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class NotificationRepository:
    """In-app notifications."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        organization_id: str | None = None,
    ) -> NotificationModel:
        """Insert a notification."""
        row = NotificationModel(
            user_id=user_id,
            organization_id=organization_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 20
    ) -> list[NotificationModel]:
        """List notifications, newest first."""
        stmt = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.read_at.is_(None))
        stmt = stmt.order_by(NotificationModel.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        stmt = select(func.count(NotificationModel.id)).where(
            NotificationModel.user_id == user_id,
            NotificationModel.read_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def mark_read(self, notification_id: str, user_id: str) -> NotificationModel | None:
        """Mark one of the user's notifications read. Returns None if not theirs."""
        stmt = select(NotificationModel).where(
            NotificationModel.id == notification_id,
            NotificationModel.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row and row.read_at is None:
            row.read_at = datetime.now(UTC)
            await self.session.flush()
        return row


class SubscriptionRepository:
    """Read access to billing state."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get_for_user(self, user_id: str) -> SubscriptionModel | None:
        stmt = select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_plan(self, user_id: str) -> str:
        """Active plan name, ``free`` when there is no active subscription."""
        sub = await self.get_for_user(user_id)
        if sub is None or sub.status not in ("active", "trialing"):
            return "free"
        return sub.plan
