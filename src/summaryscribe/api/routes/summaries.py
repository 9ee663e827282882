"""Stored summary endpoints, including file uploads."""

from dataclasses import asdict
from pathlib import PurePath

from fastapi import APIRouter, File, Form, Query, UploadFile

from summaryscribe.api.dependencies import CurrentUserDep, SummarizerDep, SummaryRepoDep
from summaryscribe.api.schemas import (
    CreateSummaryRequest,
    PipelineResponse,
    SummaryListResponse,
    SummaryResponse,
)
from summaryscribe.domain.summary import SourceType
from summaryscribe.errors import NotFoundOrForbidden, ValidationError
from summaryscribe.services.summarizer import PipelineResult, SummaryRequest

router = APIRouter(prefix="/api", tags=["summaries"])

ALLOWED_UPLOAD_EXTENSIONS = frozenset({".txt", ".md", ".csv", ".vtt", ".srt"})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _pipeline_response(result: PipelineResult) -> PipelineResponse:
    crm = None
    if result.crm is not None:
        crm = {
            "results": [r.to_dict() for r in result.crm.results],
            "success_count": result.crm.success_count,
            "total_count": result.crm.total_count,
        }
    return PipelineResponse(
        summary=SummaryResponse.model_validate(asdict(result.summary)),
        skills_detected=result.skills_detected,
        slack=asdict(result.slack) if result.slack else None,
        crm=crm,
    )


@router.post("/summaries", response_model=PipelineResponse, status_code=201)
async def create_summary(
    body: CreateSummaryRequest,
    summarizer: SummarizerDep,
    user: CurrentUserDep,
) -> PipelineResponse:
    """Summarize a transcript, store it and run auto-deliveries."""
    if not body.transcript or not body.transcript.strip():
        raise ValidationError("Transcript is required")

    result = await summarizer.create_summary(
        user.id,
        SummaryRequest(
            transcript=body.transcript,
            title=body.title,
            source_type=SourceType(body.source_type),
            organization_id=body.organization_id,
            slack_channel=body.slack_channel,
            metadata=body.metadata,
        ),
    )
    return _pipeline_response(result)


@router.get("/summaries", response_model=SummaryListResponse)
async def list_summaries(
    summary_repo: SummaryRepoDep,
    user: CurrentUserDep,
    limit: int = Query(20, ge=1, le=100),
) -> SummaryListResponse:
    """List the caller's summaries, newest first."""
    rows = await summary_repo.list_recent(user.id, limit=limit)
    total = await summary_repo.count_for_user(user.id)
    return SummaryListResponse(
        summaries=[SummaryResponse.model_validate(r) for r in rows],
        total=total,
        limit=limit,
    )


@router.get("/summaries/{summary_id}", response_model=SummaryResponse)
async def get_summary(
    summary_id: str,
    summary_repo: SummaryRepoDep,
    user: CurrentUserDep,
) -> SummaryResponse:
    """Get one of the caller's summaries."""
    row = await summary_repo.get_by_id(summary_id, user.id)
    if row is None:
        raise NotFoundOrForbidden("Summary not found")
    return SummaryResponse.model_validate(row)


@router.post("/upload", response_model=PipelineResponse, status_code=201)
async def upload_transcript(
    summarizer: SummarizerDep,
    user: CurrentUserDep,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    organization_id: str | None = Form(None),
) -> PipelineResponse:
    """Summarize an uploaded transcript file."""
    file_name = PurePath(file.filename or "").name
    extension = PurePath(file_name).suffix.lower()
    if extension not in ALLOWED_UPLOAD_EXTENSIONS:
        raise ValidationError(
            f"Unsupported file type. Allowed: {', '.join(sorted(ALLOWED_UPLOAD_EXTENSIONS))}"
        )

    raw = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(raw) > MAX_UPLOAD_BYTES:
        raise ValidationError("File is too large (max 5 MB)")
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("File must be UTF-8 text") from e
    if not text.strip():
        raise ValidationError("File is empty")

    result = await summarizer.create_summary(
        user.id,
        SummaryRequest(
            transcript=text,
            title=title or PurePath(file_name).stem,
            source_type=SourceType.UPLOAD,
            organization_id=organization_id,
            file_name=file_name,
            metadata={"kind": "upload", "file_size": len(raw), "file_type": extension.lstrip(".")},
        ),
    )
    return _pipeline_response(result)
