"""Export endpoints. Success is a file download; failure is the JSON error body."""

from fastapi import APIRouter
from fastapi.responses import Response

from summaryscribe.api.dependencies import CurrentUserDep, ExporterDep
from summaryscribe.api.schemas import ExportRequest
from summaryscribe.errors import ValidationError
from summaryscribe.services.exporter import ExportFormat

router = APIRouter(prefix="/api/export", tags=["export"])


@router.post("/{export_format}")
async def export_summary(
    export_format: ExportFormat,
    body: ExportRequest,
    exporter: ExporterDep,
    user: CurrentUserDep,
) -> Response:
    """Download a summary as Excel, Notion markdown or PDF."""
    if not body.summary_id:
        raise ValidationError("summaryId is required")

    export_file = await exporter.export(
        body.summary_id, user.id, export_format, organization_id=body.organization_id
    )
    return Response(
        content=export_file.content,
        media_type=export_file.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export_file.filename}"'},
    )
