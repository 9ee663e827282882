"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SummarizeRequest(BaseModel):
    """Request schema for one-shot summarization."""

    transcript: str | None = None
    title: str | None = None
    organization_id: str | None = None


class SummarizeResponse(BaseModel):
    """Response schema for one-shot summarization.

    Anonymous callers only get ``summary``; signed-in callers also get the
    stored summary's id.
    """

    summary: str
    summary_id: str | None = None
    ai_model: str | None = None
    skills_detected: list[str] | None = None


class CreateSummaryRequest(BaseModel):
    """Request schema for storing a summary from a pasted or Slack transcript."""

    transcript: str | None = None
    title: str | None = None
    source_type: Literal["manual", "slack"] = "manual"
    organization_id: str | None = None
    slack_channel: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SummaryResponse(BaseModel):
    """Response schema for a stored summary."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    organization_id: str | None
    title: str
    content: str
    source_type: str
    slack_channel: str | None
    file_name: str | None
    ai_model: str | None
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: datetime


class SummaryListResponse(BaseModel):
    summaries: list[SummaryResponse]
    total: int
    limit: int


class PipelineResponse(BaseModel):
    """Response schema for a stored summary plus what happened to its deliveries."""

    success: bool = True
    summary: SummaryResponse
    skills_detected: list[str] = Field(default_factory=list)
    slack: dict[str, Any] | None = None
    crm: dict[str, Any] | None = None


class CRMPushRequest(BaseModel):
    summary_id: str | None = None
    crm_types: list[str] | None = None
    organization_id: str | None = None


class CRMSettingsRequest(BaseModel):
    auto_push_enabled: bool
    organization_id: str | None = None
    crm_types: list[str] | None = None


class ExportRequest(BaseModel):
    """Request schema for exports. Accepts ``summaryId`` or ``summary_id``."""

    summary_id: str | None = Field(
        default=None, validation_alias=AliasChoices("summaryId", "summary_id")
    )
    organization_id: str | None = None


class SlackAutoPostRequest(BaseModel):
    summary_id: str | None = None
    organization_id: str | None = None


class SlackRetryRequest(BaseModel):
    max_retries: int | None = Field(default=None, ge=1, le=10)


class CreateShareRequest(BaseModel):
    """Request schema for creating a public share."""

    summary_id: str | None = None
    title: str | None = None
    expiry_days: int | None = None
    max_views: int | None = None
    password: str | None = None
    branding: dict[str, Any] = Field(default_factory=dict)


class ShareResponse(BaseModel):
    """Response schema for a share."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    summary_id: str
    title: str
    user_plan: str
    share_token: str
    view_count: int
    max_views: int
    conversion_count: int
    is_active: bool
    created_at: datetime
    expires_at: datetime
    password_protected: bool = False
    share_url: str | None = None


class ConversionRequest(BaseModel):
    conversion_type: str
    value: float = 0.0


class NotificationResponse(BaseModel):
    """Response schema for a notification."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    message: str
    data: dict[str, Any]
    read_at: datetime | None
    created_at: datetime
