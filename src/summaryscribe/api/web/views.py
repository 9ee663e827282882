"""Public share page."""

from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from summaryscribe.api.dependencies import SharingDep
from summaryscribe.domain.share import DEFAULT_BRANDING, ViewerInfo, ViewOutcome

router = APIRouter(tags=["web"])

# Templates ship inside the package
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[2] / "templates"))

OUTCOME_STATUS = {
    ViewOutcome.ACCEPTED: 200,
    ViewOutcome.NOT_FOUND: 404,
    ViewOutcome.INACTIVE: 410,
    ViewOutcome.EXPIRED: 410,
    ViewOutcome.VIEW_LIMIT_REACHED: 403,
    ViewOutcome.PASSWORD_REQUIRED: 401,
}

COUNTRY_HEADERS = ("cf-ipcountry", "x-vercel-ip-country", "x-country-code")


def viewer_from_request(request: Request, password: str | None = None) -> ViewerInfo:
    """Collect what the request tells us about an anonymous viewer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() or (request.client.host if request.client else None)
    country = next(
        (request.headers[h] for h in COUNTRY_HEADERS if request.headers.get(h)), None
    )
    return ViewerInfo(
        user_agent=request.headers.get("user-agent", ""),
        ip=ip,
        country=country,
        referrer=request.headers.get("referer"),
        password=password,
    )


async def _render_share(
    request: Request, token: str, sharing, password: str | None
) -> HTMLResponse:
    """Record a view attempt and render the page for its outcome."""
    result = await sharing.record_view(token, viewer_from_request(request, password))
    share = result.share
    branding = (share.branding if share and share.branding else None) or {
        **DEFAULT_BRANDING,
        "enabled": True,
    }

    return templates.TemplateResponse(
        request,
        "shared_summary.html",
        {
            "can_view": result.can_view,
            "outcome": str(result.outcome),
            "error": result.error,
            "share": share,
            "summary": share.summary if share and result.can_view else None,
            "branding": branding,
            "token": token,
        },
        status_code=OUTCOME_STATUS[result.outcome],
    )


@router.get("/shared/{token}", response_class=HTMLResponse)
async def shared_summary_page(request: Request, token: str, sharing: SharingDep) -> HTMLResponse:
    """Render a shared summary, counting the view if it is admitted."""
    return await _render_share(request, token, sharing, None)


@router.post("/shared/{token}", response_class=HTMLResponse)
async def unlock_shared_summary(
    request: Request,
    token: str,
    sharing: SharingDep,
    password: str | None = Form(None),
) -> HTMLResponse:
    """Password form target; the password stays out of the URL and logs."""
    return await _render_share(request, token, sharing, password)
