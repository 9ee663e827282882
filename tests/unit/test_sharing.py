"""Tests for share rules and the sharing service."""

from datetime import UTC, datetime, timedelta

import pytest

from summaryscribe.domain.share import (
    PLAN_LIMITS,
    UNLIMITED_VIEWS_SENTINEL,
    ViewerInfo,
    ViewOutcome,
    check_admission,
    get_plan_limits,
    hash_password,
    record_conversion_analytics,
    record_view_analytics,
    referrer_host,
    validate_branding,
    verify_password,
)
from summaryscribe.domain.summary import Summary
from summaryscribe.errors import NotFoundOrForbidden, ValidationError
from summaryscribe.repositories.summary_repo import SummaryRepository
from summaryscribe.services.sharing import ShareOptions, SharingService, build_share_url

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class TestAdmission:
    def _check(self, **overrides):
        fields = {
            "is_active": True,
            "expires_at": NOW + timedelta(days=1),
            "view_count": 0,
            "max_views": 3,
            "now": NOW,
        }
        fields.update(overrides)
        return check_admission(**fields)

    def test_accepts_live_share(self):
        assert self._check() is ViewOutcome.ACCEPTED

    def test_inactive_wins_over_everything(self):
        outcome = self._check(is_active=False, expires_at=NOW - timedelta(days=1), view_count=3)
        assert outcome is ViewOutcome.INACTIVE

    def test_expired_before_view_limit(self):
        outcome = self._check(expires_at=NOW - timedelta(seconds=1), view_count=3)
        assert outcome is ViewOutcome.EXPIRED

    def test_expiry_instant_is_still_viewable(self):
        assert self._check(expires_at=NOW) is ViewOutcome.ACCEPTED

    def test_naive_expiry_treated_as_utc(self):
        naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert self._check(expires_at=naive) is ViewOutcome.EXPIRED

    def test_view_limit(self):
        assert self._check(view_count=3) is ViewOutcome.VIEW_LIMIT_REACHED


class TestPlanLimits:
    def test_known_plans(self):
        assert get_plan_limits("free").max_shares == 5
        assert get_plan_limits("PRO").max_views == 1000
        assert get_plan_limits("enterprise").expiry_days == 365

    def test_unknown_plan_falls_back_to_free(self):
        assert get_plan_limits("platinum") is PLAN_LIMITS["free"]

    def test_password_feature(self):
        assert not PLAN_LIMITS["free"].allows_password
        assert PLAN_LIMITS["pro"].allows_password


class TestAnalyticsHelpers:
    def test_view_counted_without_mutating_input(self):
        original = {"total_views": 1, "views_by_date": {"2024-06-01": 1}}
        viewer = ViewerInfo(country="DE", referrer="https://news.example.com/post/1")

        updated = record_view_analytics(original, viewer, NOW)

        assert original == {"total_views": 1, "views_by_date": {"2024-06-01": 1}}
        assert updated["total_views"] == 2
        assert updated["views_by_date"] == {"2024-06-01": 2}
        assert updated["views_by_country"] == {"DE": 1}
        assert updated["views_by_referrer"] == {"news.example.com": 1}
        assert updated["last_viewed_at"] == NOW.isoformat()

    def test_anonymous_view(self):
        updated = record_view_analytics(None, ViewerInfo(), NOW)
        assert updated["views_by_country"] == {}
        assert updated["views_by_referrer"] == {}

    def test_referrer_host(self):
        assert referrer_host(None) is None
        assert referrer_host("not a url") is None
        assert referrer_host("https://t.co/abc") == "t.co"

    def test_conversion(self):
        updated = record_conversion_analytics({"total_views": 4}, "trial", 10)
        updated = record_conversion_analytics(updated, "trial", 5.5)
        assert updated["total_views"] == 4
        assert updated["conversions_by_type"] == {"trial": 2}
        assert updated["conversion_value"] == 15.5


class TestBrandingValidation:
    def test_accepts_known_fields(self):
        cleaned = validate_branding(
            {
                "brand_name": "Acme",
                "website_url": "https://acme.example",
                "logo_url": "http://cdn.acme.example/logo.png",
                "enabled": False,
            }
        )
        assert cleaned == {
            "brand_name": "Acme",
            "website_url": "https://acme.example",
            "logo_url": "http://cdn.acme.example/logo.png",
            "enabled": False,
        }

    @pytest.mark.parametrize(
        "url", ["javascript:alert(1)", "JAVASCRIPT:alert(1)", "//evil.example", "ftp://x.example"]
    )
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(ValueError, match="website_url"):
            validate_branding({"website_url": url})

    @pytest.mark.parametrize("color", ["red", "#12345", "#1234567", "#12345g", "#fff;}"])
    def test_rejects_bad_colors(self, color):
        with pytest.raises(ValueError, match="colors.accent"):
            validate_branding({"colors": {"accent": color}})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="custom_css"):
            validate_branding({"custom_css": "body{}"})

    def test_rejects_long_text(self):
        with pytest.raises(ValueError, match="tagline"):
            validate_branding({"tagline": "x" * 101})


class TestPasswords:
    def test_round_trip(self):
        stored = hash_password("hunter2")
        assert verify_password("hunter2", stored)
        assert not verify_password("hunter3", stored)
        assert not verify_password(None, stored)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")


async def _summary(session, user_id="user-1"):
    return await SummaryRepository(session).create(
        Summary(id=None, user_id=user_id, title="Board update", content="Revenue up 12%.")
    )


class TestCreateShare:
    @pytest.mark.asyncio
    async def test_defaults_from_plan(self, test_session):
        row = await _summary(test_session)
        result = await SharingService(test_session).create_share(row.id, "user-1", plan="free")

        assert result.success is True
        share = result.share
        assert share.title == "Board update"
        assert share.max_views == 50
        assert share.view_count == 0
        assert share.branding["enabled"] is True
        assert share.branding["brand_name"] == "Slack Summary Scribe"
        assert share.expires_at - share.created_at == timedelta(days=7)
        assert len(share.share_token) >= 16
        assert build_share_url(share.share_token).endswith(f"/shared/{share.share_token}")

    @pytest.mark.asyncio
    async def test_plan_looked_up_when_not_given(self, test_session):
        row = await _summary(test_session)
        result = await SharingService(test_session).create_share(row.id, "user-1")
        assert result.plan == "free"

    @pytest.mark.asyncio
    async def test_overrides_capped_by_plan(self, test_session):
        row = await _summary(test_session)
        options = ShareOptions(title="  Investors  ", max_views=5000, expiry_days=90)
        result = await SharingService(test_session).create_share(
            row.id, "user-1", plan="pro", options=options
        )

        share = result.share
        assert share.title == "Investors"
        assert share.max_views == 1000
        assert share.expires_at - share.created_at == timedelta(days=30)

    @pytest.mark.asyncio
    async def test_enterprise_unlimited_views(self, test_session):
        row = await _summary(test_session)
        result = await SharingService(test_session).create_share(
            row.id, "user-1", plan="enterprise"
        )
        assert result.share.max_views == UNLIMITED_VIEWS_SENTINEL

    @pytest.mark.asyncio
    async def test_invalid_max_views(self, test_session):
        row = await _summary(test_session)
        with pytest.raises(ValidationError):
            await SharingService(test_session).create_share(
                row.id, "user-1", plan="pro", options=ShareOptions(max_views=0)
            )

    @pytest.mark.asyncio
    async def test_free_plan_cap(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        for _ in range(5):
            assert (await service.create_share(row.id, "user-1", plan="free")).success

        result = await service.create_share(row.id, "user-1", plan="free")

        assert result.success is False
        assert result.error == "Share limit reached (5) for free plan. Upgrade to create more shares."

    @pytest.mark.asyncio
    async def test_deactivated_shares_free_a_slot(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        shares = [(await service.create_share(row.id, "user-1", plan="free")).share for _ in range(5)]

        await service.deactivate(shares[0].id, "user-1")

        assert (await service.create_share(row.id, "user-1", plan="free")).success

    @pytest.mark.asyncio
    async def test_password_needs_plan_feature(self, test_session):
        row = await _summary(test_session)
        result = await SharingService(test_session).create_share(
            row.id, "user-1", plan="free", options=ShareOptions(password="secret")
        )
        assert result.success is False
        assert "Password protection" in result.error

    @pytest.mark.asyncio
    async def test_custom_branding_only_on_paid_plans(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        custom = {"brand_name": "Acme", "enabled": False}

        free = await service.create_share(
            row.id, "user-1", plan="free", options=ShareOptions(branding=custom)
        )
        pro = await service.create_share(
            row.id, "user-1", plan="pro", options=ShareOptions(branding=custom)
        )

        assert free.share.branding["brand_name"] == "Slack Summary Scribe"
        assert free.share.branding["enabled"] is True
        assert pro.share.branding["brand_name"] == "Acme"
        assert pro.share.branding["enabled"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "branding",
        [
            {"website_url": "javascript:alert(document.cookie)"},
            {"logo_url": "data:image/svg+xml,<svg onload=alert(1)>"},
            {"colors": {"primary": "red;}body{display:none"}},
            {"footer_html": "<script>alert(1)</script>"},
        ],
    )
    async def test_unsafe_branding_rejected(self, test_session, branding):
        row = await _summary(test_session)
        with pytest.raises(ValidationError):
            await SharingService(test_session).create_share(
                row.id, "user-1", plan="pro", options=ShareOptions(branding=branding)
            )

    @pytest.mark.asyncio
    async def test_partial_colors_keep_defaults(self, test_session):
        row = await _summary(test_session)
        result = await SharingService(test_session).create_share(
            row.id,
            "user-1",
            plan="pro",
            options=ShareOptions(branding={"colors": {"primary": "#112233"}}),
        )
        assert result.share.branding["colors"] == {
            "primary": "#112233",
            "secondary": "#64748b",
            "accent": "#059669",
        }

    @pytest.mark.asyncio
    async def test_foreign_summary(self, test_session):
        row = await _summary(test_session, user_id="someone-else")
        with pytest.raises(NotFoundOrForbidden):
            await SharingService(test_session).create_share(row.id, "user-1", plan="pro")


class TestRecordView:
    async def _share(self, session, plan="pro", **options):
        row = await _summary(session)
        result = await SharingService(session).create_share(
            row.id, "user-1", plan=plan, options=ShareOptions(**options)
        )
        return result.share

    @pytest.mark.asyncio
    async def test_view_limit_enforced(self, test_session):
        share = await self._share(test_session, max_views=3)
        service = SharingService(test_session)

        outcomes = [
            (await service.record_view(share.share_token)).outcome for _ in range(4)
        ]

        assert outcomes == [ViewOutcome.ACCEPTED] * 3 + [ViewOutcome.VIEW_LIMIT_REACHED]
        assert share.view_count == 3
        assert share.analytics["total_views"] == 3

    @pytest.mark.asyncio
    async def test_unknown_token(self, test_session):
        result = await SharingService(test_session).record_view("nope")
        assert result.outcome is ViewOutcome.NOT_FOUND
        assert result.error == "Share not found"
        assert not result.can_view

    @pytest.mark.asyncio
    async def test_expired(self, test_session):
        share = await self._share(test_session)
        share.expires_at = datetime.now(UTC) - timedelta(minutes=1)
        await test_session.flush()

        result = await SharingService(test_session).record_view(share.share_token)

        assert result.outcome is ViewOutcome.EXPIRED
        assert share.view_count == 0

    @pytest.mark.asyncio
    async def test_inactive(self, test_session):
        share = await self._share(test_session)
        service = SharingService(test_session)
        await service.deactivate(share.id, "user-1")

        result = await service.record_view(share.share_token)

        assert result.outcome is ViewOutcome.INACTIVE

    @pytest.mark.asyncio
    async def test_password(self, test_session):
        share = await self._share(test_session, password="open sesame")
        service = SharingService(test_session)

        refused = await service.record_view(share.share_token, ViewerInfo(password="wrong"))
        accepted = await service.record_view(share.share_token, ViewerInfo(password="open sesame"))

        assert refused.outcome is ViewOutcome.PASSWORD_REQUIRED
        assert accepted.can_view
        assert share.view_count == 1

    @pytest.mark.asyncio
    async def test_viewer_analytics_recorded(self, test_session):
        share = await self._share(test_session)
        viewer = ViewerInfo(country="FR", referrer="https://slack.com/archives/C1")

        await SharingService(test_session).record_view(share.share_token, viewer)

        assert share.analytics["views_by_country"] == {"FR": 1}
        assert share.analytics["views_by_referrer"] == {"slack.com": 1}


class TestConversionsAndAnalytics:
    @pytest.mark.asyncio
    async def test_conversion_leaves_views_alone(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        share = (await service.create_share(row.id, "user-1", plan="pro")).share
        await service.record_view(share.share_token)

        await service.record_conversion(share.share_token, "signup", 0)

        assert share.view_count == 1
        assert share.conversion_count == 1
        assert share.analytics["conversions_by_type"] == {"signup": 1}
        assert share.analytics["total_views"] == 1

    @pytest.mark.asyncio
    async def test_conversion_validation(self, test_session):
        service = SharingService(test_session)
        with pytest.raises(ValidationError):
            await service.record_conversion("token", "refund")
        with pytest.raises(NotFoundOrForbidden):
            await service.record_conversion("missing", "trial")

    @pytest.mark.asyncio
    async def test_deactivate_foreign_share(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        share = (await service.create_share(row.id, "user-1", plan="pro")).share

        with pytest.raises(NotFoundOrForbidden):
            await service.deactivate(share.id, "someone-else")

    @pytest.mark.asyncio
    async def test_user_share_analytics(self, test_session):
        row = await _summary(test_session)
        service = SharingService(test_session)
        popular = (await service.create_share(row.id, "user-1", plan="pro")).share
        quiet = (await service.create_share(row.id, "user-1", plan="pro")).share
        for _ in range(3):
            await service.record_view(popular.share_token, ViewerInfo(country="US"))
        await service.record_view(quiet.share_token)
        await service.record_conversion(popular.share_token, "purchase", 49)
        await service.deactivate(quiet.id, "user-1")

        stats = await service.user_share_analytics("user-1")

        assert stats["total_shares"] == 2
        assert stats["active_shares"] == 1
        assert stats["total_views"] == 4
        assert stats["total_conversions"] == 1
        assert stats["conversion_rate"] == 25.0
        assert stats["top_shares"][0]["id"] == popular.id
        assert stats["views_by_country"] == {"US": 3}
        assert sum(stats["views_by_date"].values()) == 4
