"""Tests for SlackPoster delivery and the retry sweep."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from summaryscribe.domain.delivery import PostResult
from summaryscribe.domain.summary import SourceType, Summary
from summaryscribe.infrastructure.models import SlackIntegrationModel, SummaryPostModel
from summaryscribe.infrastructure.slack_client import SlackAPIError
from summaryscribe.repositories.delivery_repo import SettingsRepository, SummaryPostRepository
from summaryscribe.repositories.summary_repo import SummaryRepository
from summaryscribe.services.slack_poster import (
    MAX_SLACK_CONTENT,
    TRUNCATION_SUFFIX,
    SlackPoster,
    format_summary_message,
    truncate_for_slack,
)


async def _setup(session, *, auto_post=True, preference="same_channel", integration=True):
    row = await SummaryRepository(session).create(
        Summary(
            id=None,
            user_id="user-1",
            title="Sprint planning",
            content="Ship Friday.",
            source_type=SourceType.SLACK,
            slack_channel="C123",
        )
    )
    await SettingsRepository(session).upsert(
        "user-1",
        None,
        auto_post_to_slack=auto_post,
        slack_post_channel_preference=preference,
    )
    if integration:
        session.add(
            SlackIntegrationModel(
                user_id="user-1",
                slack_team_id="T1",
                slack_team_name="Acme",
                access_token="xoxb-test",
                authed_user_id="U1",
            )
        )
        await session.flush()
    return row


async def _posts(session) -> list[SummaryPostModel]:
    result = await session.execute(select(SummaryPostModel).order_by(SummaryPostModel.created_at))
    return list(result.scalars().all())


class TestFormatting:
    def _summary(self, **kwargs) -> Summary:
        fields = {"id": "s-1", "user_id": "u", "title": "Weekly sync", "content": "Body"}
        fields.update(kwargs)
        return Summary(**fields)

    def test_short_content_unchanged(self):
        assert truncate_for_slack("short") == "short"

    def test_long_content_truncated_with_suffix(self):
        text = "x" * (MAX_SLACK_CONTENT + 10)
        out = truncate_for_slack(text)
        assert out == "x" * MAX_SLACK_CONTENT + TRUNCATION_SUFFIX

    def test_blocks_layout(self):
        now = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
        message = format_summary_message(self._summary(), "https://app.test/", now=now)
        types = [b["type"] for b in message["blocks"]]
        assert types == ["header", "section", "context", "actions"]
        assert message["blocks"][0]["text"]["text"] == "📋 Weekly sync"
        footer = message["blocks"][2]["elements"][0]["text"]
        assert footer == "Generated by Slack Summary Scribe • 2024-05-01 12:30 UTC"
        button = message["blocks"][3]["elements"][0]
        assert button["text"]["text"] == "View Full Summary"
        assert button["url"] == "https://app.test/dashboard/summaries/s-1"

    def test_header_capped(self):
        message = format_summary_message(self._summary(title="t" * 300), "https://app.test")
        assert len(message["blocks"][0]["text"]["text"]) == 150


class TestPost:
    @pytest.mark.asyncio
    async def test_disabled_short_circuits(self, test_session, slack_client):
        row = await _setup(test_session, auto_post=False)
        poster = SlackPoster(test_session, slack_client=slack_client, site_url="https://app.test")

        result = await poster.post(row.id, "user-1", None)

        assert result == PostResult(success=False, error="disabled")
        slack_client.post_message.assert_not_called()
        assert await _posts(test_session) == []

    @pytest.mark.asyncio
    async def test_posts_to_originating_channel(self, test_session, slack_client):
        row = await _setup(test_session)
        poster = SlackPoster(test_session, slack_client=slack_client, site_url="https://app.test")

        result = await poster.post(row.id, "user-1", None)

        assert result.success is True
        assert result.message_ts == "1700000000.000100"
        args = slack_client.post_message.call_args.args
        assert args[0] == "xoxb-test"
        assert args[1] == "C123"
        posts = await _posts(test_session)
        assert len(posts) == 1
        assert posts[0].status == "posted"
        assert posts[0].slack_channel_id == "C123"
        assert posts[0].retry_count == 0

    @pytest.mark.asyncio
    async def test_missing_integration_is_reported_and_logged(self, test_session, slack_client):
        row = await _setup(test_session, integration=False)
        poster = SlackPoster(test_session, slack_client=slack_client)

        result = await poster.post(row.id, "user-1", None)

        assert result.success is False
        assert "No active Slack integration" in result.error
        posts = await _posts(test_session)
        assert posts[0].status == "failed"

    @pytest.mark.asyncio
    async def test_foreign_summary_is_reported(self, test_session, slack_client):
        row = await _setup(test_session)
        await SettingsRepository(test_session).upsert("intruder", None, auto_post_to_slack=True)
        poster = SlackPoster(test_session, slack_client=slack_client)

        result = await poster.post(row.id, "intruder", None)

        assert result.success is False
        assert "not found" in result.error
        slack_client.post_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_slack_error_is_reported(self, test_session, slack_client):
        row = await _setup(test_session)
        slack_client.post_message.side_effect = SlackAPIError("Slack API error: channel_not_found")
        poster = SlackPoster(test_session, slack_client=slack_client)

        result = await poster.post(row.id, "user-1", None)

        assert result.success is False
        assert result.error == "Slack API error: channel_not_found"
        assert (await _posts(test_session))[0].error_log == "Slack API error: channel_not_found"

    @pytest.mark.asyncio
    async def test_dm_preference_opens_dm_once(self, test_session, slack_client):
        row = await _setup(test_session, preference="dm_user")
        poster = SlackPoster(test_session, slack_client=slack_client)

        await poster.post(row.id, "user-1", None)
        result = await poster.post(row.id, "user-1", None)

        assert result.channel_id == "D0DM"
        slack_client.open_dm.assert_awaited_once_with("xoxb-test", "U1")
        assert slack_client.post_message.await_count == 2


class TestRetrySweep:
    async def _failed_post(self, session, summary_id, retry_count):
        post = await SummaryPostRepository(session).log(
            summary_id, "user-1", None, PostResult(success=False, error="timeout")
        )
        post.retry_count = retry_count
        await session.flush()
        return post

    @pytest.mark.asyncio
    async def test_rows_at_cap_minus_one_reach_cap_and_drop_out(self, test_session, slack_client):
        row = await _setup(test_session)
        first = await self._failed_post(test_session, row.id, 2)
        second = await self._failed_post(test_session, row.id, 2)
        slack_client.post_message.side_effect = SlackAPIError("Slack API error: rate_limited")
        poster = SlackPoster(test_session, slack_client=slack_client)

        sweep = await poster.retry_failed(max_retries=3)

        assert (sweep.processed, sweep.succeeded, sweep.failed) == (2, 0, 2)
        for post in (first, second):
            assert post.retry_count == 3
            assert post.status == "failed"

        again = await poster.retry_failed(max_retries=3)
        assert again.processed == 0

    @pytest.mark.asyncio
    async def test_success_updates_row_in_place(self, test_session, slack_client):
        row = await _setup(test_session)
        post = await self._failed_post(test_session, row.id, 0)
        poster = SlackPoster(test_session, slack_client=slack_client)

        sweep = await poster.retry_failed(max_retries=3)

        assert sweep.succeeded == 1
        assert post.status == "posted"
        assert post.retry_count == 1
        assert post.slack_message_ts == "1700000000.000100"
        assert post.error_log is None
        assert len(await _posts(test_session)) == 1

    @pytest.mark.asyncio
    async def test_one_row_failure_does_not_stop_sweep(self, test_session, slack_client):
        row = await _setup(test_session)
        await self._failed_post(test_session, row.id, 0)
        await self._failed_post(test_session, row.id, 0)
        slack_client.post_message.side_effect = [RuntimeError("boom"), "1700000000.000200"]
        poster = SlackPoster(test_session, slack_client=slack_client)

        sweep = await poster.retry_failed(max_retries=3)

        assert (sweep.processed, sweep.succeeded, sweep.failed) == (2, 1, 1)

    @pytest.mark.asyncio
    async def test_batch_size_bounds_sweep(self, test_session, slack_client):
        row = await _setup(test_session)
        for _ in range(3):
            await self._failed_post(test_session, row.id, 0)
        poster = SlackPoster(test_session, slack_client=slack_client)

        sweep = await poster.retry_failed(max_retries=3, batch_size=2)

        assert sweep.processed == 2

    @pytest.mark.asyncio
    async def test_user_filter(self, test_session, slack_client):
        row = await _setup(test_session)
        await self._failed_post(test_session, row.id, 0)
        poster = SlackPoster(test_session, slack_client=slack_client)

        sweep = await poster.retry_failed(max_retries=3, user_id="someone-else")

        assert sweep.processed == 0

    @pytest.mark.asyncio
    async def test_unrecorded_attempt_still_counts(self, test_session, slack_client):
        row = await _setup(test_session)
        post = await self._failed_post(test_session, row.id, 2)
        poster = SlackPoster(test_session, slack_client=slack_client)
        poster.posts.record_retry = AsyncMock(side_effect=RuntimeError("write failed"))

        sweep = await poster.retry_failed(max_retries=3)

        assert (sweep.processed, sweep.succeeded, sweep.failed) == (1, 0, 1)
        await test_session.refresh(post)
        assert post.retry_count == 3
        assert (await poster.retry_failed(max_retries=3)).processed == 0
        assert slack_client.post_message.await_count == 1

    @pytest.mark.asyncio
    async def test_sweep_stops_when_attempts_cannot_be_counted(self, test_session, slack_client):
        row = await _setup(test_session)
        await self._failed_post(test_session, row.id, 0)
        await self._failed_post(test_session, row.id, 0)
        poster = SlackPoster(test_session, slack_client=slack_client)
        poster.posts.record_retry = AsyncMock(side_effect=RuntimeError("write failed"))
        poster.posts.bump_retry_count = AsyncMock(side_effect=RuntimeError("write failed"))

        sweep = await poster.retry_failed(max_retries=3)

        assert sweep.processed == 1
        assert slack_client.post_message.await_count == 1
