"""Delivery outcomes for Slack posts and CRM pushes."""

from dataclasses import asdict, dataclass, field
from enum import StrEnum


class CRMType(StrEnum):
    HUBSPOT = "hubspot"
    SALESFORCE = "salesforce"
    NOTION = "notion"


SUPPORTED_CRM_TYPES = frozenset(c.value for c in CRMType)
UNSUPPORTED_CRM_ERROR = "Unsupported CRM type"


@dataclass
class PostResult:
    """Outcome of one Slack post attempt."""

    success: bool
    message_ts: str | None = None
    channel_id: str | None = None
    error: str | None = None


@dataclass
class CRMPushResult:
    """Outcome of pushing one summary to one CRM."""

    crm_type: str
    success: bool
    crm_record_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CRMFanOutResult:
    """Aggregate of a multi-CRM push. Always one entry per requested type."""

    results: list[CRMPushResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_count(self) -> int:
        return len(self.results)


@dataclass
class RetrySweepResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
