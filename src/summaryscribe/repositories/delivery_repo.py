"""Repositories for delivery settings, integrations and delivery records."""

from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from summaryscribe.domain.delivery import CRMPushResult, PostResult
from summaryscribe.infrastructure.models import (
    CRMIntegrationModel,
    CRMPushModel,
    SlackIntegrationModel,
    SummaryPostModel,
    UserSettingsModel,
)


class SettingsRepository:
    """Per-user delivery preferences."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get(self, user_id: str, organization_id: str | None) -> UserSettingsModel | None:
        """Get settings for (user, organization)."""
        stmt = select(UserSettingsModel).where(UserSettingsModel.user_id == user_id)
        if organization_id is None:
            stmt = stmt.where(UserSettingsModel.organization_id.is_(None))
        else:
            stmt = stmt.where(UserSettingsModel.organization_id == organization_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def upsert(
        self, user_id: str, organization_id: str | None, **fields: object
    ) -> UserSettingsModel:
        """Create or update the settings row, changing only the given fields."""
        row = await self.get(user_id, organization_id)
        if row is None:
            row = UserSettingsModel(user_id=user_id, organization_id=organization_id)
            self.session.add(row)
        for key, value in fields.items():
            if value is not None:
                setattr(row, key, value)
        row.updated_at = datetime.now(UTC)
        await self.session.flush()
        return row


class SlackIntegrationRepository:
    """Slack workspace installs."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get_active(
        self, user_id: str, organization_id: str | None
    ) -> SlackIntegrationModel | None:
        """Get the active install for (user, organization), newest first."""
        stmt = select(SlackIntegrationModel).where(
            SlackIntegrationModel.user_id == user_id,
            SlackIntegrationModel.is_active.is_(True),
        )
        if organization_id is not None:
            stmt = stmt.where(SlackIntegrationModel.organization_id == organization_id)
        stmt = stmt.order_by(SlackIntegrationModel.created_at.desc()).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[SlackIntegrationModel]:
        """List every install (active or not) for a user."""
        stmt = (
            select(SlackIntegrationModel)
            .where(SlackIntegrationModel.user_id == user_id)
            .order_by(SlackIntegrationModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SummaryPostRepository:
    """Slack delivery records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def log(
        self,
        summary_id: str,
        user_id: str,
        organization_id: str | None,
        result: PostResult,
    ) -> SummaryPostModel:
        """Insert a post record reflecting ``result``."""
        post = SummaryPostModel(
            summary_id=summary_id,
            user_id=user_id,
            organization_id=organization_id,
            slack_channel_id=result.channel_id or "",
            slack_message_ts=result.message_ts,
            status="posted" if result.success else "failed",
            error_log=result.error,
            retry_count=0,
            posted_at=datetime.now(UTC) if result.success else None,
        )
        self.session.add(post)
        await self.session.flush()
        return post

    async def list_retryable(
        self, max_retries: int, limit: int = 10, user_id: str | None = None
    ) -> list[SummaryPostModel]:
        """Failed posts still under the retry cap, oldest first."""
        stmt = select(SummaryPostModel).where(
            SummaryPostModel.status == "failed",
            SummaryPostModel.retry_count < max_retries,
        )
        if user_id is not None:
            stmt = stmt.where(SummaryPostModel.user_id == user_id)
        stmt = stmt.order_by(SummaryPostModel.created_at.asc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def record_retry(self, post: SummaryPostModel, result: PostResult) -> None:
        """Update a post in place after a retry attempt."""
        post.status = "posted" if result.success else "failed"
        post.slack_message_ts = result.message_ts
        post.error_log = result.error
        if result.channel_id:
            post.slack_channel_id = result.channel_id
        post.retry_count = post.retry_count + 1
        post.posted_at = datetime.now(UTC) if result.success else None
        post.updated_at = datetime.now(UTC)
        await self.session.flush()

    async def bump_retry_count(self, post_id: str) -> None:
        """Count an attempt without touching the rest of the row."""
        stmt = (
            update(SummaryPostModel)
            .where(SummaryPostModel.id == post_id)
            .values(retry_count=SummaryPostModel.retry_count + 1)
        )
        await self.session.execute(stmt)


class CRMRepository:
    """CRM connections and push records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get_active_integration(
        self, user_id: str, organization_id: str | None, crm_type: str
    ) -> CRMIntegrationModel | None:
        """Get the active connection of one CRM type."""
        stmt = select(CRMIntegrationModel).where(
            CRMIntegrationModel.user_id == user_id,
            CRMIntegrationModel.crm_type == crm_type,
            CRMIntegrationModel.is_active.is_(True),
        )
        if organization_id is not None:
            stmt = stmt.where(CRMIntegrationModel.organization_id == organization_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def list_connections(
        self, user_id: str, organization_id: str | None
    ) -> list[CRMIntegrationModel]:
        """List active connections for a user."""
        stmt = select(CRMIntegrationModel).where(
            CRMIntegrationModel.user_id == user_id,
            CRMIntegrationModel.is_active.is_(True),
        )
        if organization_id is not None:
            stmt = stmt.where(CRMIntegrationModel.organization_id == organization_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_synced(self, integration: CRMIntegrationModel) -> None:
        integration.last_sync_at = datetime.now(UTC)
        await self.session.flush()

    async def log_push(self, summary_id: str, user_id: str, result: CRMPushResult) -> CRMPushModel:
        """Insert one push record."""
        push = CRMPushModel(
            summary_id=summary_id,
            user_id=user_id,
            crm_type=result.crm_type,
            status="success" if result.success else "failed",
            crm_record_id=result.crm_record_id,
            error_log=result.error,
            pushed_at=datetime.now(UTC) if result.success else None,
        )
        self.session.add(push)
        await self.session.flush()
        return push

    async def list_pushes(
        self, user_id: str, summary_id: str | None = None, limit: int = 20
    ) -> list[CRMPushModel]:
        """Recent pushes for a user, newest first."""
        stmt = (
            select(CRMPushModel)
            .options(selectinload(CRMPushModel.summary))
            .where(CRMPushModel.user_id == user_id)
        )
        if summary_id:
            stmt = stmt.where(CRMPushModel.summary_id == summary_id)
        stmt = stmt.order_by(CRMPushModel.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def push_statistics(self, user_id: str) -> dict:
        """Counts by status and by CRM type."""
        stmt = (
            select(CRMPushModel.status, CRMPushModel.crm_type, func.count(CRMPushModel.id))
            .where(CRMPushModel.user_id == user_id)
            .group_by(CRMPushModel.status, CRMPushModel.crm_type)
        )
        result = await self.session.execute(stmt)

        stats = {
            "total_pushes": 0,
            "successful_pushes": 0,
            "failed_pushes": 0,
            "pending_pushes": 0,
            "by_crm_type": {},
        }
        status_keys = {
            "success": "successful_pushes",
            "failed": "failed_pushes",
            "pending": "pending_pushes",
        }
        for status, crm_type, count in result.all():
            stats["total_pushes"] += count
            if status in status_keys:
                stats[status_keys[status]] += count
            stats["by_crm_type"][crm_type] = stats["by_crm_type"].get(crm_type, 0) + count
        return stats
