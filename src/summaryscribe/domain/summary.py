"""Summary domain entity and its metadata variants."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError


class SourceType(StrEnum):
    """Where the transcript came from."""

    SLACK = "slack"
    UPLOAD = "upload"
    MANUAL = "manual"


class _MetadataBase(BaseModel):
    """Known metadata fields; anything else is kept as an extra."""

    model_config = ConfigDict(extra="allow")

    def display_items(self) -> list[tuple[str, str]]:
        """Flatten to (label, value) rows for exports, known fields first."""
        rows = []
        for key, value in self.model_dump(exclude_none=True).items():
            if key == "kind" or value in ([], {}, ""):
                continue
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            rows.append((key.replace("_", " ").capitalize(), str(value)))
        return rows


class SlackMetadata(_MetadataBase):
    kind: Literal["slack"]
    channel_name: str | None = None
    message_count: int | None = None
    participants: list[str] = Field(default_factory=list)


class UploadMetadata(_MetadataBase):
    kind: Literal["upload"]
    file_size: int | None = None
    file_type: str | None = None


class ManualMetadata(_MetadataBase):
    kind: Literal["manual"]
    word_count: int | None = None


class GenericMetadata(_MetadataBase):
    """Metadata with no recognized ``kind``."""

    kind: str | None = None


SummaryMetadata = Annotated[
    SlackMetadata | UploadMetadata | ManualMetadata,
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter = TypeAdapter(SummaryMetadata)


def parse_metadata(raw: dict[str, Any] | None) -> _MetadataBase:
    """Parse stored metadata JSON into its tagged variant."""
    raw = raw or {}
    try:
        return _metadata_adapter.validate_python(raw)
    except PydanticValidationError:
        return GenericMetadata.model_validate(raw)


@dataclass
class Summary:
    """Represents a persisted AI-generated summary."""

    id: str | None
    user_id: str
    title: str
    content: str
    source_type: SourceType = SourceType.MANUAL
    organization_id: str | None = None
    slack_channel: str | None = None
    file_name: str | None = None
    ai_model: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def typed_metadata(self) -> _MetadataBase:
        return parse_metadata(self.metadata)

    @classmethod
    def from_model(cls, model: Any) -> "Summary":
        """Create Summary from a SummaryModel row."""
        return cls(
            id=model.id,
            user_id=model.user_id,
            title=model.title,
            content=model.content,
            source_type=SourceType(model.source_type),
            organization_id=model.organization_id,
            slack_channel=model.slack_channel,
            file_name=model.file_name,
            ai_model=model.ai_model,
            metadata=dict(model.metadata_ or {}),
            created_at=model.created_at,
        )
