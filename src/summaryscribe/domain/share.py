"""Share rules: plan limits, view admission and analytics accounting."""

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from urllib.parse import urlparse

UNLIMITED = -1
UNLIMITED_VIEWS_SENTINEL = 999999


@dataclass(frozen=True)
class PlanSharingLimits:
    """Sharing limits for one subscription plan."""

    max_shares: int
    max_views: int
    expiry_days: int
    branding_required: bool
    features: frozenset[str] = field(default_factory=frozenset)

    @property
    def allows_password(self) -> bool:
        return "password_protection" in self.features


PLAN_LIMITS: dict[str, PlanSharingLimits] = {
    "free": PlanSharingLimits(
        max_shares=5,
        max_views=50,
        expiry_days=7,
        branding_required=True,
        features=frozenset({"basic_sharing", "branding"}),
    ),
    "pro": PlanSharingLimits(
        max_shares=50,
        max_views=1000,
        expiry_days=30,
        branding_required=False,
        features=frozenset({"basic_sharing", "custom_branding", "analytics", "password_protection"}),
    ),
    "enterprise": PlanSharingLimits(
        max_shares=UNLIMITED,
        max_views=UNLIMITED,
        expiry_days=365,
        branding_required=False,
        features=frozenset({
            "basic_sharing",
            "custom_branding",
            "analytics",
            "password_protection",
            "custom_domain",
            "white_label",
        }),
    ),
}

DEFAULT_BRANDING: dict[str, Any] = {
    "brand_name": "Slack Summary Scribe",
    "tagline": "AI-Powered Conversation Summaries",
    "colors": {"primary": "#2563eb", "secondary": "#64748b", "accent": "#059669"},
}


BRANDING_TEXT_KEYS = ("brand_name", "tagline")
BRANDING_URL_KEYS = ("logo_url", "website_url")
BRANDING_COLOR_KEYS = ("primary", "secondary", "accent")
MAX_BRANDING_TEXT = 100
_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_branding(custom: dict[str, Any]) -> dict[str, Any]:
    """Check caller-supplied branding before it reaches the public page.

    Only known keys are accepted, URLs must be http(s) and colors ``#RRGGBB``.

    Raises:
        ValueError: naming the first offending field
    """
    allowed = {*BRANDING_TEXT_KEYS, *BRANDING_URL_KEYS, "colors", "enabled"}
    unknown = sorted(set(custom) - allowed)
    if unknown:
        raise ValueError(f"Unknown branding field: {', '.join(unknown)}")

    cleaned: dict[str, Any] = {}
    for key in BRANDING_TEXT_KEYS:
        if key in custom:
            value = custom[key]
            if not isinstance(value, str) or len(value) > MAX_BRANDING_TEXT:
                raise ValueError(
                    f"branding.{key} must be text of at most {MAX_BRANDING_TEXT} characters"
                )
            cleaned[key] = value
    for key in BRANDING_URL_KEYS:
        if key in custom:
            value = custom[key]
            parsed = urlparse(value) if isinstance(value, str) else None
            if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"branding.{key} must be an http or https URL")
            cleaned[key] = value
    if "colors" in custom:
        colors = custom["colors"]
        if not isinstance(colors, dict) or set(colors) - set(BRANDING_COLOR_KEYS):
            raise ValueError(f"branding.colors accepts only: {', '.join(BRANDING_COLOR_KEYS)}")
        for name, value in colors.items():
            if not isinstance(value, str) or not _HEX_COLOR.match(value):
                raise ValueError(f"branding.colors.{name} must be a #RRGGBB color")
        cleaned["colors"] = {**DEFAULT_BRANDING["colors"], **colors}
    if "enabled" in custom:
        if not isinstance(custom["enabled"], bool):
            raise ValueError("branding.enabled must be true or false")
        cleaned["enabled"] = custom["enabled"]
    return cleaned


class ViewOutcome(StrEnum):
    """Result of a view attempt, evaluated in declaration order."""

    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    VIEW_LIMIT_REACHED = "view_limit_reached"
    PASSWORD_REQUIRED = "password_required"


VIEW_OUTCOME_MESSAGES = {
    ViewOutcome.NOT_FOUND: "Share not found",
    ViewOutcome.INACTIVE: "Share is no longer active",
    ViewOutcome.EXPIRED: "Share has expired",
    ViewOutcome.VIEW_LIMIT_REACHED: "Share view limit reached",
    ViewOutcome.PASSWORD_REQUIRED: "A valid password is required",
}


@dataclass
class ViewerInfo:
    """What we know about an anonymous viewer."""

    user_agent: str = ""
    ip: str | None = None
    country: str | None = None
    referrer: str | None = None
    password: str | None = None


def get_plan_limits(plan: str) -> PlanSharingLimits:
    """Limits for a plan; unknown plans get the free tier."""
    return PLAN_LIMITS.get(plan.lower(), PLAN_LIMITS["free"])


def generate_share_token() -> str:
    return secrets.token_urlsafe(16)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def empty_analytics() -> dict[str, Any]:
    return {
        "total_views": 0,
        "views_by_date": {},
        "views_by_country": {},
        "views_by_referrer": {},
        "conversions_by_type": {},
        "conversion_value": 0,
        "last_viewed_at": None,
    }


def check_admission(
    *,
    is_active: bool,
    expires_at: datetime,
    view_count: int,
    max_views: int,
    now: datetime,
) -> ViewOutcome:
    """Decide whether a share may be viewed. Order: inactive, expired, exhausted."""
    if not is_active:
        return ViewOutcome.INACTIVE
    if now > as_utc(expires_at):
        return ViewOutcome.EXPIRED
    if view_count >= max_views:
        return ViewOutcome.VIEW_LIMIT_REACHED
    return ViewOutcome.ACCEPTED


def referrer_host(referrer: str | None) -> str | None:
    if not referrer:
        return None
    host = urlparse(referrer).hostname
    return host or None


def record_view_analytics(
    analytics: dict[str, Any] | None, viewer: ViewerInfo, now: datetime
) -> dict[str, Any]:
    """Return a new analytics block with one more view counted."""
    updated = empty_analytics()
    for key, value in (analytics or {}).items():
        updated[key] = dict(value) if isinstance(value, dict) else value

    updated["total_views"] = int(updated.get("total_views") or 0) + 1

    day = now.date().isoformat()
    updated["views_by_date"][day] = updated["views_by_date"].get(day, 0) + 1

    if viewer.country:
        by_country = updated["views_by_country"]
        by_country[viewer.country] = by_country.get(viewer.country, 0) + 1

    host = referrer_host(viewer.referrer)
    if host:
        by_referrer = updated["views_by_referrer"]
        by_referrer[host] = by_referrer.get(host, 0) + 1

    updated["last_viewed_at"] = now.isoformat()
    return updated


def record_conversion_analytics(
    analytics: dict[str, Any] | None, conversion_type: str, value: float
) -> dict[str, Any]:
    """Return a new analytics block with one more conversion counted."""
    updated = empty_analytics()
    for key, item in (analytics or {}).items():
        updated[key] = dict(item) if isinstance(item, dict) else item
    by_type = updated["conversions_by_type"]
    by_type[conversion_type] = by_type.get(conversion_type, 0) + 1
    updated["conversion_value"] = float(updated.get("conversion_value") or 0) + value
    return updated


def hash_password(password: str, salt: str | None = None) -> str:
    """Salted SHA-256, stored as ``salt$hexdigest``."""
    salt = salt or secrets.token_hex(8)
    digest = hashlib.sha256(f"{salt}{password}".encode()).hexdigest()
    return f"{salt}${digest}"


def verify_password(password: str | None, stored: str) -> bool:
    if password is None:
        return False
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt), stored)
