"""Summarization pipeline: transcript in, stored summary plus deliveries out."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.domain.delivery import CRMFanOutResult, PostResult
from summaryscribe.domain.summary import SourceType, Summary
from summaryscribe.infrastructure.llm_client import LLMClient, LLMSummary
from summaryscribe.repositories.summary_repo import SummaryRepository
from summaryscribe.services.crm_pusher import CRMPusher
from summaryscribe.services.slack_poster import SlackPoster

logger = logging.getLogger(__name__)


def default_title(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"Summary - {now.date().isoformat()}"


@dataclass
class SummaryRequest:
    """Everything the pipeline needs besides the caller's identity."""

    transcript: str
    title: str | None = None
    source_type: SourceType = SourceType.MANUAL
    organization_id: str | None = None
    slack_channel: str | None = None
    file_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def prompt_context(self) -> dict[str, Any]:
        context: dict[str, Any] = {"source": str(self.source_type)}
        if self.slack_channel:
            context["channel"] = self.slack_channel.lstrip("#")
        if self.file_name:
            context["file_name"] = self.file_name
        participants = self.metadata.get("participants")
        if isinstance(participants, list) and participants:
            context["participants"] = [str(p) for p in participants]
        return context


@dataclass
class PipelineResult:
    """A stored summary and what happened to its deliveries."""

    summary: Summary
    skills_detected: list[str] = field(default_factory=list)
    slack: PostResult | None = None
    crm: CRMFanOutResult | None = None


class SummarizerService:
    """Runs LLM call, insert and deliveries strictly in that order."""

    def __init__(
        self,
        session: AsyncSession,
        llm_client: LLMClient | None = None,
        slack_poster: SlackPoster | None = None,
        crm_pusher: CRMPusher | None = None,
    ) -> None:
        self.session = session
        self.llm = llm_client or LLMClient()
        self.summaries = SummaryRepository(session)
        self.slack_poster = slack_poster or SlackPoster(session)
        self.crm_pusher = crm_pusher or CRMPusher(session)

    async def summarize_transcript(
        self, transcript: str | None, context: dict[str, Any] | None = None
    ) -> LLMSummary:
        """Summarize without storing anything."""
        return await self.llm.summarize(transcript, context)

    async def create_summary(self, user_id: str, request: SummaryRequest) -> PipelineResult:
        """Summarize, store, then deliver.

        LLM and insert failures propagate; delivery failures are reported
        in the result and never fail the call.
        """
        llm_result = await self.llm.summarize(request.transcript, request.prompt_context())

        metadata = dict(request.metadata)
        metadata.setdefault("kind", str(request.source_type))
        if llm_result.skills_detected:
            metadata["skills_detected"] = llm_result.skills_detected

        row = await self.summaries.create(
            Summary(
                id=None,
                user_id=user_id,
                organization_id=request.organization_id,
                title=(request.title or "").strip() or default_title(),
                content=llm_result.content,
                source_type=request.source_type,
                slack_channel=request.slack_channel,
                file_name=request.file_name,
                ai_model=llm_result.ai_model,
                metadata=metadata,
            )
        )
        summary = Summary.from_model(row)
        logger.info(f"Stored summary {summary.id} for user {user_id} ({summary.source_type})")

        result = PipelineResult(summary=summary, skills_detected=llm_result.skills_detected)
        result.slack = await self._auto_post(summary)
        result.crm = await self._auto_push(summary)
        return result

    async def _auto_post(self, summary: Summary) -> PostResult:
        try:
            return await self.slack_poster.post(
                summary.id, summary.user_id, summary.organization_id
            )
        except Exception as e:
            logger.error(f"Slack auto-post crashed for summary {summary.id}: {e}", exc_info=True)
            return PostResult(success=False, error=str(e))

    async def _auto_push(self, summary: Summary) -> CRMFanOutResult | None:
        try:
            crm_types = await self.crm_pusher.auto_push_types(
                summary.user_id, summary.organization_id
            )
            if not crm_types:
                return None
            return await self.crm_pusher.push_to_many(
                summary.id, summary.user_id, summary.organization_id, crm_types
            )
        except Exception as e:
            logger.error(f"CRM auto-push crashed for summary {summary.id}: {e}", exc_info=True)
            return None
