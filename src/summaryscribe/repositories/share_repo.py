"""Repository for shared summaries."""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from summaryscribe.infrastructure.models import SharedSummaryModel


class ShareRepository:
    """Repository for SharedSummary rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def add(self, share: SharedSummaryModel) -> SharedSummaryModel:
        self.session.add(share)
        await self.session.flush()
        return share

    async def count_live_for_user(self, user_id: str, now: datetime) -> int:
        """Count shares that still occupy a plan slot (active and unexpired)."""
        stmt = select(func.count(SharedSummaryModel.id)).where(
            SharedSummaryModel.user_id == user_id,
            SharedSummaryModel.is_active.is_(True),
            SharedSummaryModel.expires_at >= now,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_by_token(
        self, token: str, for_update: bool = False
    ) -> SharedSummaryModel | None:
        """Get a share by token, optionally row-locked for a read-modify-write."""
        stmt = (
            select(SharedSummaryModel)
            .options(selectinload(SharedSummaryModel.summary))
            .where(SharedSummaryModel.share_token == token)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user(self, share_id: str, user_id: str) -> SharedSummaryModel | None:
        stmt = select(SharedSummaryModel).where(
            SharedSummaryModel.id == share_id,
            SharedSummaryModel.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: str, limit: int | None = 50
    ) -> list[SharedSummaryModel]:
        """List a user's shares, newest first. ``limit=None`` returns all."""
        stmt = (
            select(SharedSummaryModel)
            .where(SharedSummaryModel.user_id == user_id)
            .order_by(SharedSummaryModel.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def apply_view(self, share: SharedSummaryModel, analytics: dict) -> bool:
        """Count one view in a single UPDATE guarded by the view cap.

        Returns False when a concurrent viewer took the last slot.
        """
        stmt = (
            update(SharedSummaryModel)
            .where(
                SharedSummaryModel.id == share.id,
                SharedSummaryModel.is_active.is_(True),
                SharedSummaryModel.view_count < SharedSummaryModel.max_views,
            )
            .values(view_count=SharedSummaryModel.view_count + 1, analytics=analytics)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return False
        await self.session.refresh(share, attribute_names=["view_count", "analytics"])
        return True
