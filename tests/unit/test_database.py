"""Tests for best-effort side-effect writes."""

import logging

import pytest
from sqlalchemy import select

from summaryscribe.infrastructure.database import best_effort
from summaryscribe.infrastructure.models import NotificationModel
from summaryscribe.repositories.activity_repo import NotificationRepository


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_success_returns_true(self, test_session):
        repo = NotificationRepository(test_session)
        ok = await best_effort(
            test_session, "create notification", lambda: repo.create("u", "t", "Title", "Msg")
        )
        assert ok is True
        rows = (await test_session.execute(select(NotificationModel))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, test_session, caplog):
        async def boom():
            raise RuntimeError("insert failed")

        with caplog.at_level(logging.WARNING):
            ok = await best_effort(test_session, "log export", boom)

        assert ok is False
        assert "Failed to log export: insert failed" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_rolls_back_only_the_savepoint(self, test_session):
        repo = NotificationRepository(test_session)
        await repo.create("u", "kept", "Kept", "Msg")

        async def partial():
            await repo.create("u", "dropped", "Dropped", "Msg")
            raise RuntimeError("late failure")

        assert await best_effort(test_session, "write", partial) is False
        rows = (await test_session.execute(select(NotificationModel))).scalars().all()
        assert [r.type for r in rows] == ["kept"]
