"""One-shot summarization endpoint."""

from fastapi import APIRouter

from summaryscribe.api.dependencies import OptionalUserDep, SummarizerDep
from summaryscribe.api.schemas import SummarizeRequest, SummarizeResponse
from summaryscribe.errors import ValidationError
from summaryscribe.services.summarizer import SummaryRequest

router = APIRouter(prefix="/api", tags=["summarize"])


@router.post("/summarize", response_model=SummarizeResponse, response_model_exclude_none=True)
async def summarize(
    body: SummarizeRequest,
    summarizer: SummarizerDep,
    user: OptionalUserDep,
) -> SummarizeResponse:
    """Summarize a transcript.

    Anonymous callers get the text only. Signed-in callers also get the
    summary stored and delivered per their settings.
    """
    if not body.transcript or not body.transcript.strip():
        raise ValidationError("Transcript is required")

    if user is None:
        result = await summarizer.summarize_transcript(body.transcript)
        return SummarizeResponse(summary=result.content)

    pipeline = await summarizer.create_summary(
        user.id,
        SummaryRequest(
            transcript=body.transcript,
            title=body.title,
            organization_id=body.organization_id,
        ),
    )
    return SummarizeResponse(
        summary=pipeline.summary.content,
        summary_id=pipeline.summary.id,
        ai_model=pipeline.summary.ai_model,
        skills_detected=pipeline.skills_detected,
    )
