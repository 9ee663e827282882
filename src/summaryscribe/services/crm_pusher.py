"""Pushes summaries into connected CRMs, one attempt per requested CRM."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.domain.delivery import (
    SUPPORTED_CRM_TYPES,
    UNSUPPORTED_CRM_ERROR,
    CRMFanOutResult,
    CRMPushResult,
    CRMType,
)
from summaryscribe.domain.summary import Summary
from summaryscribe.errors import NotFoundOrForbidden
from summaryscribe.infrastructure.crm_clients import CRMClient
from summaryscribe.infrastructure.database import best_effort
from summaryscribe.infrastructure.models import CRMIntegrationModel
from summaryscribe.repositories.delivery_repo import CRMRepository, SettingsRepository
from summaryscribe.repositories.summary_repo import SummaryRepository

logger = logging.getLogger(__name__)


class CRMPusher:
    """Fans a summary out to several CRMs, isolating each one's failure."""

    def __init__(self, session: AsyncSession, crm_client: CRMClient | None = None) -> None:
        self.session = session
        self.client = crm_client or CRMClient()
        self.summaries = SummaryRepository(session)
        self.crm = CRMRepository(session)
        self.user_settings = SettingsRepository(session)

    async def push_to_many(
        self,
        summary_id: str,
        user_id: str,
        organization_id: str | None,
        crm_types: list[str],
    ) -> CRMFanOutResult:
        """Push to each requested CRM in order.

        Raises:
            NotFoundOrForbidden: the summary is not the caller's
        """
        row = await self.summaries.get_by_id(summary_id, user_id)
        if row is None:
            raise NotFoundOrForbidden("Summary not found or access denied")
        summary = Summary.from_model(row)

        fan_out = CRMFanOutResult()
        for crm_type in crm_types:
            if crm_type not in SUPPORTED_CRM_TYPES:
                fan_out.results.append(
                    CRMPushResult(crm_type=str(crm_type), success=False, error=UNSUPPORTED_CRM_ERROR)
                )
                continue

            try:
                result = await self.push_one(summary, user_id, organization_id, CRMType(crm_type))
            except Exception as e:
                logger.error(f"Error pushing summary {summary_id} to {crm_type}: {e}")
                result = CRMPushResult(crm_type=crm_type, success=False, error=str(e))

            await best_effort(
                self.session,
                f"log {crm_type} push",
                lambda result=result: self.crm.log_push(summary_id, user_id, result),
            )
            fan_out.results.append(result)

        logger.info(
            f"Summary {summary_id} pushed to {fan_out.success_count}/{fan_out.total_count} CRMs"
        )
        return fan_out

    async def push_one(
        self,
        summary: Summary,
        user_id: str,
        organization_id: str | None,
        crm_type: CRMType,
    ) -> CRMPushResult:
        """Push to a single CRM. Upstream errors propagate to the caller."""
        integration = await self.crm.get_active_integration(user_id, organization_id, crm_type)
        if integration is None:
            return CRMPushResult(
                crm_type=crm_type, success=False, error=f"No active {crm_type} integration found"
            )

        record_id = await self._dispatch(integration, summary, crm_type)
        await self.crm.mark_synced(integration)
        return CRMPushResult(crm_type=crm_type, success=True, crm_record_id=record_id)

    async def _dispatch(
        self, integration: CRMIntegrationModel, summary: Summary, crm_type: CRMType
    ) -> str:
        token = integration.access_token
        if crm_type is CRMType.HUBSPOT:
            return await self.client.push_hubspot_note(token, summary)
        if crm_type is CRMType.SALESFORCE:
            return await self.client.push_salesforce_note(token, integration.instance_url, summary)
        return await self.client.push_notion_page(token, integration.default_parent_id, summary)

    async def auto_push_types(self, user_id: str, organization_id: str | None) -> list[str]:
        """CRM types to push to automatically, empty when auto-push is off."""
        prefs = await self.user_settings.get(user_id, organization_id)
        if prefs is None or not prefs.auto_push_to_crm:
            return []
        configured = [t for t in (prefs.auto_push_crm_types or []) if t in SUPPORTED_CRM_TYPES]
        if configured:
            return configured
        connections = await self.crm.list_connections(user_id, organization_id)
        return [c.crm_type for c in connections]
