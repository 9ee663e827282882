"""Summary repository for database operations."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.domain.summary import Summary
from summaryscribe.infrastructure.models import SummaryModel


class SummaryRepository:
    """Repository for Summary persistence. Insert and read only."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def create(self, summary: Summary) -> SummaryModel:
        """Insert a summary and return the row with its id and timestamp."""
        model = SummaryModel(
            user_id=summary.user_id,
            organization_id=summary.organization_id,
            title=summary.title,
            content=summary.content,
            source_type=str(summary.source_type),
            slack_channel=summary.slack_channel,
            file_name=summary.file_name,
            ai_model=summary.ai_model,
            metadata_=summary.metadata or {},
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, summary_id: str, user_id: str) -> SummaryModel | None:
        """Get a summary by ID, only if owned by ``user_id``."""
        stmt = select(SummaryModel).where(
            SummaryModel.id == summary_id,
            SummaryModel.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent(self, user_id: str, limit: int = 5) -> list[SummaryModel]:
        """List a user's summaries, newest first."""
        stmt = (
            select(SummaryModel)
            .where(SummaryModel.user_id == user_id)
            .order_by(SummaryModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        """Get total summary count for a user."""
        stmt = select(func.count(SummaryModel.id)).where(SummaryModel.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_for_user_since(self, user_id: str, since: datetime) -> int:
        """Count a user's summaries created at or after ``since``."""
        stmt = select(func.count(SummaryModel.id)).where(
            SummaryModel.user_id == user_id,
            SummaryModel.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
