"""Plan-limited public sharing of summaries."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.config import get_settings
from summaryscribe.domain.share import (
    DEFAULT_BRANDING,
    UNLIMITED,
    UNLIMITED_VIEWS_SENTINEL,
    VIEW_OUTCOME_MESSAGES,
    ViewerInfo,
    ViewOutcome,
    as_utc,
    check_admission,
    empty_analytics,
    generate_share_token,
    get_plan_limits,
    hash_password,
    record_conversion_analytics,
    record_view_analytics,
    validate_branding,
    verify_password,
)
from summaryscribe.errors import NotFoundOrForbidden, ValidationError
from summaryscribe.infrastructure.models import SharedSummaryModel
from summaryscribe.repositories.activity_repo import SubscriptionRepository
from summaryscribe.repositories.share_repo import ShareRepository
from summaryscribe.repositories.summary_repo import SummaryRepository

logger = logging.getLogger(__name__)
settings = get_settings()

CONVERSION_TYPES = frozenset({"signup", "trial", "purchase"})


@dataclass
class ShareOptions:
    title: str | None = None
    expiry_days: int | None = None
    max_views: int | None = None
    password: str | None = None
    branding: dict[str, Any] = field(default_factory=dict)


@dataclass
class CreateShareResult:
    """Plan-limit refusals are reported here rather than raised."""

    success: bool
    share: SharedSummaryModel | None = None
    error: str | None = None
    plan: str | None = None


@dataclass
class ViewResult:
    outcome: ViewOutcome
    share: SharedSummaryModel | None = None

    @property
    def can_view(self) -> bool:
        return self.outcome is ViewOutcome.ACCEPTED

    @property
    def error(self) -> str | None:
        return VIEW_OUTCOME_MESSAGES.get(self.outcome)


def build_share_url(token: str) -> str:
    return f"{settings.site_url.rstrip('/')}/shared/{token}"


class SharingService:
    """Creates shares, admits views and tracks conversions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.shares = ShareRepository(session)
        self.summaries = SummaryRepository(session)
        self.subscriptions = SubscriptionRepository(session)

    async def create_share(
        self,
        summary_id: str,
        user_id: str,
        plan: str | None = None,
        options: ShareOptions | None = None,
    ) -> CreateShareResult:
        """Create a share for one of the caller's summaries.

        Args:
            plan: Subscription plan; looked up when not given
            options: Overrides, each capped by the plan

        Raises:
            NotFoundOrForbidden: the summary is not the caller's
            ValidationError: an override is out of range
        """
        options = options or ShareOptions()
        summary = await self.summaries.get_by_id(summary_id, user_id)
        if summary is None:
            raise NotFoundOrForbidden("Summary not found or access denied")

        plan = plan or await self.subscriptions.get_plan(user_id)
        limits = get_plan_limits(plan)
        now = datetime.now(UTC)

        if limits.max_shares != UNLIMITED:
            live = await self.shares.count_live_for_user(user_id, now)
            if live >= limits.max_shares:
                return CreateShareResult(
                    success=False,
                    plan=plan,
                    error=(
                        f"Share limit reached ({limits.max_shares}) for {plan} plan. "
                        "Upgrade to create more shares."
                    ),
                )

        if options.password and not limits.allows_password:
            return CreateShareResult(
                success=False,
                plan=plan,
                error=f"Password protection is not available on the {plan} plan",
            )

        share = SharedSummaryModel(
            summary_id=summary.id,
            user_id=user_id,
            user_plan=plan,
            title=(options.title or "").strip() or summary.title,
            share_token=generate_share_token(),
            view_count=0,
            max_views=self._max_views(limits.max_views, options.max_views),
            conversion_count=0,
            created_at=now,
            expires_at=now + timedelta(days=self._expiry_days(limits.expiry_days, options)),
            is_active=True,
            password_hash=hash_password(options.password) if options.password else None,
            branding=self._branding(limits, options.branding),
            analytics=empty_analytics(),
        )
        await self.shares.add(share)
        logger.info(f"Created share {share.id} for summary {summary.id} ({plan} plan)")
        return CreateShareResult(success=True, share=share, plan=plan)

    @staticmethod
    def _max_views(plan_max: int, requested: int | None) -> int:
        if requested is not None and requested < 1:
            raise ValidationError("max_views must be at least 1")
        if plan_max == UNLIMITED:
            return requested or UNLIMITED_VIEWS_SENTINEL
        return min(requested, plan_max) if requested else plan_max

    @staticmethod
    def _expiry_days(plan_days: int, options: ShareOptions) -> int:
        if options.expiry_days is None:
            return plan_days
        if options.expiry_days < 1:
            raise ValidationError("expiry_days must be at least 1")
        return min(options.expiry_days, plan_days)

    @staticmethod
    def _branding(limits, custom: dict[str, Any]) -> dict[str, Any]:
        try:
            custom = validate_branding(custom or {})
        except ValueError as e:
            raise ValidationError(str(e)) from e

        site = settings.site_url.rstrip("/")
        branding: dict[str, Any] = {
            **DEFAULT_BRANDING,
            "logo_url": f"{site}/logo.png",
            "website_url": site,
        }
        if "custom_branding" in limits.features:
            branding.update(custom)
        branding["enabled"] = limits.branding_required or bool(custom.get("enabled", True))
        return branding

    async def record_view(self, token: str, viewer: ViewerInfo | None = None) -> ViewResult:
        """Admit or refuse one view.

        Checks run in order: missing, inactive, expired, view limit,
        password. An accepted view updates the counter and analytics
        together in one guarded UPDATE.
        """
        viewer = viewer or ViewerInfo()
        share = await self.shares.get_by_token(token, for_update=True)
        if share is None:
            return ViewResult(ViewOutcome.NOT_FOUND)

        now = datetime.now(UTC)
        outcome = check_admission(
            is_active=share.is_active,
            expires_at=share.expires_at,
            view_count=share.view_count,
            max_views=share.max_views,
            now=now,
        )
        if outcome is not ViewOutcome.ACCEPTED:
            return ViewResult(outcome, share)

        if share.password_hash and not verify_password(viewer.password, share.password_hash):
            return ViewResult(ViewOutcome.PASSWORD_REQUIRED, share)

        analytics = record_view_analytics(share.analytics, viewer, now)
        if not await self.shares.apply_view(share, analytics):
            return ViewResult(ViewOutcome.VIEW_LIMIT_REACHED, share)
        return ViewResult(ViewOutcome.ACCEPTED, share)

    async def record_conversion(
        self, token: str, conversion_type: str, value: float = 0.0
    ) -> SharedSummaryModel:
        """Count a conversion. Leaves view accounting untouched.

        Raises:
            ValidationError: unknown conversion type
            NotFoundOrForbidden: no share with this token
        """
        if conversion_type not in CONVERSION_TYPES:
            raise ValidationError(
                f"conversion_type must be one of: {', '.join(sorted(CONVERSION_TYPES))}"
            )
        share = await self.shares.get_by_token(token, for_update=True)
        if share is None:
            raise NotFoundOrForbidden("Share not found")

        share.conversion_count = share.conversion_count + 1
        share.analytics = record_conversion_analytics(share.analytics, conversion_type, value)
        await self.session.flush()
        return share

    async def deactivate(self, share_id: str, user_id: str) -> SharedSummaryModel:
        """Turn a share off for good."""
        share = await self.shares.get_for_user(share_id, user_id)
        if share is None:
            raise NotFoundOrForbidden("Share not found or access denied")
        if share.is_active:
            share.is_active = False
            await self.session.flush()
            logger.info(f"Deactivated share {share_id}")
        return share

    async def list_shares(self, user_id: str, limit: int = 50) -> list[SharedSummaryModel]:
        return await self.shares.list_for_user(user_id, limit=limit)

    async def user_share_analytics(self, user_id: str, top: int = 5) -> dict[str, Any]:
        """Aggregate view and conversion numbers across all of a user's shares."""
        shares = await self.shares.list_for_user(user_id, limit=None)
        now = datetime.now(UTC)

        total_views = sum(s.view_count for s in shares)
        total_conversions = sum(s.conversion_count for s in shares)
        views_by_date: dict[str, int] = {}
        views_by_country: dict[str, int] = {}
        for share in shares:
            analytics = share.analytics or {}
            for day, count in (analytics.get("views_by_date") or {}).items():
                views_by_date[day] = views_by_date.get(day, 0) + count
            for country, count in (analytics.get("views_by_country") or {}).items():
                views_by_country[country] = views_by_country.get(country, 0) + count

        ranked = sorted(shares, key=lambda s: s.view_count, reverse=True)[:top]
        return {
            "total_shares": len(shares),
            "active_shares": sum(
                1
                for s in shares
                if s.is_active and now <= as_utc(s.expires_at) and s.view_count < s.max_views
            ),
            "total_views": total_views,
            "total_conversions": total_conversions,
            "conversion_rate": round(total_conversions / total_views * 100, 2)
            if total_views
            else 0.0,
            "top_shares": [
                {
                    "id": s.id,
                    "title": s.title,
                    "views": s.view_count,
                    "conversions": s.conversion_count,
                    "created_at": s.created_at.isoformat() if s.created_at else None,
                }
                for s in ranked
            ],
            "views_by_date": dict(sorted(views_by_date.items())),
            "views_by_country": views_by_country,
        }
