"""Share management endpoints."""

from typing import Any

from fastapi import APIRouter, Query

from summaryscribe.api.dependencies import CurrentUserDep, SharingDep
from summaryscribe.api.schemas import ConversionRequest, CreateShareRequest, ShareResponse
from summaryscribe.errors import PlanLimitError, ValidationError
from summaryscribe.infrastructure.models import SharedSummaryModel
from summaryscribe.services.sharing import ShareOptions, build_share_url

router = APIRouter(prefix="/api/shares", tags=["shares"])


def _share_response(share: SharedSummaryModel) -> ShareResponse:
    response = ShareResponse.model_validate(share)
    response.password_protected = bool(share.password_hash)
    response.share_url = build_share_url(share.share_token)
    return response


@router.post("", status_code=201)
async def create_share(
    body: CreateShareRequest,
    sharing: SharingDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Create a public link to one of the caller's summaries."""
    if not body.summary_id:
        raise ValidationError("summary_id is required")

    result = await sharing.create_share(
        body.summary_id,
        user.id,
        options=ShareOptions(
            title=body.title,
            expiry_days=body.expiry_days,
            max_views=body.max_views,
            password=body.password,
            branding=body.branding,
        ),
    )
    if not result.success:
        raise PlanLimitError(result.error or "Share limit reached", details={"plan": result.plan})
    return {"success": True, "share": _share_response(result.share).model_dump(mode="json")}


@router.get("")
async def list_shares(
    sharing: SharingDep,
    user: CurrentUserDep,
    limit: int = Query(50, ge=1, le=200),
) -> dict[str, Any]:
    """List the caller's shares, newest first."""
    shares = await sharing.list_shares(user.id, limit=limit)
    return {
        "success": True,
        "shares": [_share_response(s).model_dump(mode="json") for s in shares],
    }


@router.get("/analytics")
async def share_analytics(sharing: SharingDep, user: CurrentUserDep) -> dict[str, Any]:
    """Views and conversions across all of the caller's shares."""
    return {"success": True, "data": await sharing.user_share_analytics(user.id)}


@router.delete("/{share_id}")
async def deactivate_share(
    share_id: str,
    sharing: SharingDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Deactivate a share. There is no way back."""
    share = await sharing.deactivate(share_id, user.id)
    return {"success": True, "share": _share_response(share).model_dump(mode="json")}


@router.post("/{token}/conversion")
async def record_conversion(
    token: str,
    body: ConversionRequest,
    sharing: SharingDep,
) -> dict[str, Any]:
    """Count a signup, trial or purchase that came from a share. Public."""
    share = await sharing.record_conversion(token, body.conversion_type, body.value)
    return {"success": True, "conversion_count": share.conversion_count}
