"""Delivers summaries to Slack and sweeps failed deliveries."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.config import get_settings
from summaryscribe.domain.delivery import PostResult, RetrySweepResult
from summaryscribe.domain.summary import Summary
from summaryscribe.infrastructure.database import best_effort
from summaryscribe.infrastructure.models import SummaryPostModel, UserSettingsModel
from summaryscribe.infrastructure.slack_client import SlackClient
from summaryscribe.repositories.delivery_repo import (
    SettingsRepository,
    SlackIntegrationRepository,
    SummaryPostRepository,
)
from summaryscribe.repositories.summary_repo import SummaryRepository

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_SLACK_CONTENT = 3000
MAX_HEADER_TEXT = 150
TRUNCATION_SUFFIX = "...\n\n_[Content truncated - view full summary in dashboard]_"
DEFAULT_CHANNEL = "#general"
DISABLED = "disabled"


def truncate_for_slack(content: str, limit: int = MAX_SLACK_CONTENT) -> str:
    """Cap content at ``limit`` characters, marking the cut."""
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_SUFFIX


def format_summary_message(
    summary: Summary, site_url: str, now: datetime | None = None
) -> dict[str, Any]:
    """Build the chat.postMessage text and Block Kit blocks for a summary."""
    now = now or datetime.now(UTC)
    title = summary.title or "Summary"
    header = f"📋 {title}"
    if len(header) > MAX_HEADER_TEXT:
        header = header[: MAX_HEADER_TEXT - 3] + "..."

    return {
        "text": f"📋 *{title}*",
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": header}},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": truncate_for_slack(summary.content or "")},
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": "Generated by Slack Summary Scribe • "
                        + now.strftime("%Y-%m-%d %H:%M UTC"),
                    }
                ],
            },
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "View Full Summary"},
                        "url": f"{site_url.rstrip('/')}/dashboard/summaries/{summary.id}",
                        "action_id": "view_summary",
                    }
                ],
            },
        ],
    }


class SlackPoster:
    """Posts a stored summary to Slack and records every attempt."""

    def __init__(
        self,
        session: AsyncSession,
        slack_client: SlackClient | None = None,
        site_url: str | None = None,
    ) -> None:
        self.session = session
        self.slack = slack_client or SlackClient()
        self.site_url = site_url or settings.site_url
        self.summaries = SummaryRepository(session)
        self.user_settings = SettingsRepository(session)
        self.integrations = SlackIntegrationRepository(session)
        self.posts = SummaryPostRepository(session)
        # (token, slack user) -> DM channel id
        self._dm_channels: dict[tuple[str, str], str] = {}

    async def post(
        self, summary_id: str, user_id: str, organization_id: str | None
    ) -> PostResult:
        """Auto-post a summary if the user has it enabled.

        Never raises for delivery problems; they come back as a failed
        PostResult and are recorded as a ``summary_posts`` row.
        """
        prefs = await self.user_settings.get(user_id, organization_id)
        if prefs is None or not prefs.auto_post_to_slack:
            return PostResult(success=False, error=DISABLED)

        result = await self._deliver(summary_id, user_id, organization_id, prefs)
        await best_effort(
            self.session,
            "log Slack post",
            lambda: self.posts.log(summary_id, user_id, organization_id, result),
        )
        if result.success:
            logger.info(f"Posted summary {summary_id} to Slack channel {result.channel_id}")
        else:
            logger.warning(f"Slack post for summary {summary_id} failed: {result.error}")
        return result

    async def retry_failed(
        self,
        max_retries: int | None = None,
        batch_size: int | None = None,
        user_id: str | None = None,
    ) -> RetrySweepResult:
        """Re-deliver failed posts still under ``max_retries``, updating rows in place.

        Args:
            max_retries: Rows at or above this retry count are skipped
            batch_size: Rows handled per sweep, oldest first
            user_id: Restrict the sweep to one user's posts

        If a row cannot be updated its retry count is still bumped; if even
        that fails the sweep stops rather than re-posting the row next time.
        """
        max_retries = settings.slack_max_retries if max_retries is None else max_retries
        batch_size = batch_size or settings.slack_retry_batch_size

        posts = await self.posts.list_retryable(max_retries, limit=batch_size, user_id=user_id)
        sweep = RetrySweepResult()
        for post in posts:
            # A failed savepoint expires the row, so keep the id at hand
            post_id = post.id
            sweep.processed += 1
            try:
                result = await self._retry_one(post)
            except Exception as e:
                logger.error(f"Error retrying Slack post {post_id}: {e}", exc_info=True)
                result = PostResult(success=False, error=str(e))

            recorded = await best_effort(
                self.session,
                f"update Slack post {post_id}",
                lambda post=post, result=result: self.posts.record_retry(post, result),
            )
            if result.success and recorded:
                sweep.succeeded += 1
            else:
                sweep.failed += 1

            if not recorded:
                # An uncounted attempt would be selected again on every sweep
                counted = await best_effort(
                    self.session,
                    f"count retry of Slack post {post_id}",
                    lambda post_id=post_id: self.posts.bump_retry_count(post_id),
                )
                if not counted:
                    logger.error(
                        f"Stopping Slack retry sweep: attempt on post {post_id} was not recorded"
                    )
                    break

        if sweep.processed:
            logger.info(
                f"Slack retry sweep: {sweep.succeeded}/{sweep.processed} delivered, "
                f"{sweep.failed} still failing"
            )
        return sweep

    async def _retry_one(self, post: SummaryPostModel) -> PostResult:
        prefs = await self.user_settings.get(post.user_id, post.organization_id)
        return await self._deliver(post.summary_id, post.user_id, post.organization_id, prefs)

    async def _deliver(
        self,
        summary_id: str,
        user_id: str,
        organization_id: str | None,
        prefs: UserSettingsModel | None,
    ) -> PostResult:
        """Load, resolve target, format and post. Failures become results."""
        row = await self.summaries.get_by_id(summary_id, user_id)
        if row is None:
            return PostResult(success=False, error="Summary not found or access denied")
        summary = Summary.from_model(row)

        integration = await self.integrations.get_active(user_id, organization_id)
        if integration is None:
            return PostResult(success=False, error="No active Slack integration found")

        channel: str | None = None
        try:
            channel = await self._resolve_channel(summary, integration, prefs)
            message = format_summary_message(summary, self.site_url)
            ts = await self.slack.post_message(
                integration.access_token, channel, message["text"], message["blocks"]
            )
        except Exception as e:
            return PostResult(success=False, channel_id=channel, error=str(e))

        return PostResult(success=True, message_ts=ts, channel_id=channel)

    async def _resolve_channel(self, summary: Summary, integration, prefs) -> str:
        wants_dm = prefs is not None and prefs.slack_post_channel_preference == "dm_user"
        if not wants_dm:
            return summary.slack_channel or DEFAULT_CHANNEL

        if not integration.authed_user_id:
            raise ValueError("Slack integration has no authorized user to DM")
        key = (integration.access_token, integration.authed_user_id)
        if key not in self._dm_channels:
            self._dm_channels[key] = await self.slack.open_dm(
                integration.access_token, integration.authed_user_id
            )
        return self._dm_channels[key]
