"""Manual Slack delivery triggers."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter

from summaryscribe.api.dependencies import CurrentUserDep, SlackPosterDep
from summaryscribe.api.schemas import SlackAutoPostRequest, SlackRetryRequest
from summaryscribe.errors import ValidationError

router = APIRouter(prefix="/api/slack", tags=["slack"])


@router.post("/auto-post")
async def auto_post(
    body: SlackAutoPostRequest,
    poster: SlackPosterDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Post one of the caller's summaries to Slack now."""
    if not body.summary_id:
        raise ValidationError("summary_id is required")

    result = await poster.post(body.summary_id, user.id, body.organization_id)
    return asdict(result)


@router.post("/auto-post/retry")
async def retry_failed_posts(
    poster: SlackPosterDep,
    user: CurrentUserDep,
    body: SlackRetryRequest | None = None,
) -> dict[str, Any]:
    """Sweep the caller's failed Slack posts once."""
    max_retries = body.max_retries if body else None
    sweep = await poster.retry_failed(max_retries=max_retries, user_id=user.id)
    return {"success": True, **asdict(sweep)}
