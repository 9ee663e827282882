"""CRM push endpoints."""

from typing import Any

from fastapi import APIRouter, Query

from summaryscribe.api.dependencies import (
    CRMPusherDep,
    CRMRepoDep,
    CurrentUserDep,
    SettingsRepoDep,
)
from summaryscribe.api.schemas import CRMPushRequest, CRMSettingsRequest
from summaryscribe.domain.delivery import SUPPORTED_CRM_TYPES
from summaryscribe.errors import ValidationError

router = APIRouter(prefix="/api/crm", tags=["crm"])


def _iso(value) -> str | None:
    return value.isoformat() if value else None


@router.post("/push")
async def push_summary(
    body: CRMPushRequest,
    pusher: CRMPusherDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Push a summary to several CRMs. Per-CRM failures are reported, not raised."""
    if not body.summary_id or not body.crm_types:
        raise ValidationError("summary_id and crm_types are required")

    fan_out = await pusher.push_to_many(
        body.summary_id, user.id, body.organization_id, body.crm_types
    )
    return {
        "success": fan_out.success_count > 0,
        "message": f"Pushed to {fan_out.success_count}/{fan_out.total_count} CRM systems",
        "results": [r.to_dict() for r in fan_out.results],
        "summary_id": body.summary_id,
    }


@router.get("/push")
async def get_push_overview(
    crm_repo: CRMRepoDep,
    settings_repo: SettingsRepoDep,
    user: CurrentUserDep,
    organization_id: str | None = Query(None),
    summary_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    """Connections, auto-push settings, statistics and recent pushes."""
    connections = await crm_repo.list_connections(user.id, organization_id)
    prefs = await settings_repo.get(user.id, organization_id)
    statistics = await crm_repo.push_statistics(user.id)
    pushes = await crm_repo.list_pushes(user.id, summary_id=summary_id, limit=limit)

    return {
        "success": True,
        "data": {
            "connections": [
                {
                    "id": c.id,
                    "crm_type": c.crm_type,
                    "instance_url": c.instance_url,
                    "is_active": c.is_active,
                    "last_sync_at": _iso(c.last_sync_at),
                    "created_at": _iso(c.created_at),
                }
                for c in connections
            ],
            "settings": {
                "auto_push_enabled": bool(prefs and prefs.auto_push_to_crm),
                "crm_types": list(prefs.auto_push_crm_types or []) if prefs else [],
            },
            "statistics": statistics,
            "recent_pushes": [
                {
                    "id": p.id,
                    "summary_id": p.summary_id,
                    "summary_title": p.summary.title if p.summary else None,
                    "crm_type": p.crm_type,
                    "status": p.status,
                    "crm_record_id": p.crm_record_id,
                    "error": p.error_log,
                    "pushed_at": _iso(p.pushed_at),
                    "created_at": _iso(p.created_at),
                }
                for p in pushes
            ],
        },
    }


@router.put("/push")
async def update_push_settings(
    body: CRMSettingsRequest,
    settings_repo: SettingsRepoDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Turn CRM auto-push on or off."""
    if body.crm_types is not None:
        unsupported = [t for t in body.crm_types if t not in SUPPORTED_CRM_TYPES]
        if unsupported:
            raise ValidationError(f"Unsupported CRM type: {', '.join(unsupported)}")

    prefs = await settings_repo.upsert(
        user.id,
        body.organization_id,
        auto_push_to_crm=body.auto_push_enabled,
        auto_push_crm_types=body.crm_types,
    )
    return {
        "success": True,
        "message": "CRM auto-push settings updated",
        "data": {
            "auto_push_enabled": prefs.auto_push_to_crm,
            "crm_types": list(prefs.auto_push_crm_types or []),
        },
    }
