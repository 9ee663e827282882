"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.errors import AuthError
from summaryscribe.infrastructure.crm_clients import CRMClient
from summaryscribe.infrastructure.database import get_session
from summaryscribe.infrastructure.llm_client import LLMClient
from summaryscribe.infrastructure.slack_client import SlackClient
from summaryscribe.infrastructure.supabase_auth import CurrentUser, verify_access_token
from summaryscribe.repositories.activity_repo import NotificationRepository
from summaryscribe.repositories.delivery_repo import CRMRepository, SettingsRepository
from summaryscribe.repositories.summary_repo import SummaryRepository
from summaryscribe.services.crm_pusher import CRMPusher
from summaryscribe.services.dashboard import DashboardService
from summaryscribe.services.exporter import ExporterService
from summaryscribe.services.sharing import SharingService
from summaryscribe.services.slack_poster import SlackPoster
from summaryscribe.services.summarizer import SummarizerService

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# --- Supabase session authentication ---

SESSION_COOKIE = "sb-access-token"
_bearer = HTTPBearer(auto_error=False)


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> CurrentUser | None:
    """Resolve the caller from a bearer token or the session cookie, if any."""
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    try:
        return await verify_access_token(token)
    except AuthError:
        return None


async def get_current_user(
    user: Annotated[CurrentUser | None, Depends(get_optional_user)],
) -> CurrentUser:
    """Require an authenticated caller."""
    if user is None:
        raise AuthError("Authentication required")
    return user


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
OptionalUserDep = Annotated[CurrentUser | None, Depends(get_optional_user)]

# --- Outbound clients (overridden in tests) ---


def get_llm_client() -> LLMClient:
    """Provide LLMClient instance."""
    return LLMClient()


async def get_slack_client() -> AsyncGenerator[SlackClient, None]:
    """Provide a SlackClient and close its HTTP session afterwards."""
    client = SlackClient()
    try:
        yield client
    finally:
        await client.close()


async def get_crm_client() -> AsyncGenerator[CRMClient, None]:
    """Provide a CRMClient and close its HTTP session afterwards."""
    client = CRMClient()
    try:
        yield client
    finally:
        await client.close()


LLMClientDep = Annotated[LLMClient, Depends(get_llm_client)]
SlackClientDep = Annotated[SlackClient, Depends(get_slack_client)]
CRMClientDep = Annotated[CRMClient, Depends(get_crm_client)]

# --- Repositories ---


async def get_summary_repository(
    session: SessionDep,
) -> AsyncGenerator[SummaryRepository, None]:
    """Provide SummaryRepository instance."""
    yield SummaryRepository(session)


async def get_settings_repository(
    session: SessionDep,
) -> AsyncGenerator[SettingsRepository, None]:
    """Provide SettingsRepository instance."""
    yield SettingsRepository(session)


async def get_crm_repository(
    session: SessionDep,
) -> AsyncGenerator[CRMRepository, None]:
    """Provide CRMRepository instance."""
    yield CRMRepository(session)


async def get_notification_repository(
    session: SessionDep,
) -> AsyncGenerator[NotificationRepository, None]:
    """Provide NotificationRepository instance."""
    yield NotificationRepository(session)


SummaryRepoDep = Annotated[SummaryRepository, Depends(get_summary_repository)]
SettingsRepoDep = Annotated[SettingsRepository, Depends(get_settings_repository)]
CRMRepoDep = Annotated[CRMRepository, Depends(get_crm_repository)]
NotificationRepoDep = Annotated[NotificationRepository, Depends(get_notification_repository)]

# --- Services ---


async def get_slack_poster(
    session: SessionDep, slack_client: SlackClientDep
) -> AsyncGenerator[SlackPoster, None]:
    """Provide SlackPoster instance."""
    yield SlackPoster(session, slack_client=slack_client)


async def get_crm_pusher(
    session: SessionDep, crm_client: CRMClientDep
) -> AsyncGenerator[CRMPusher, None]:
    """Provide CRMPusher instance."""
    yield CRMPusher(session, crm_client=crm_client)


SlackPosterDep = Annotated[SlackPoster, Depends(get_slack_poster)]
CRMPusherDep = Annotated[CRMPusher, Depends(get_crm_pusher)]


async def get_summarizer_service(
    session: SessionDep,
    llm_client: LLMClientDep,
    slack_poster: SlackPosterDep,
    crm_pusher: CRMPusherDep,
) -> AsyncGenerator[SummarizerService, None]:
    """Provide SummarizerService instance."""
    yield SummarizerService(
        session, llm_client=llm_client, slack_poster=slack_poster, crm_pusher=crm_pusher
    )


async def get_exporter_service(session: SessionDep) -> AsyncGenerator[ExporterService, None]:
    """Provide ExporterService instance."""
    yield ExporterService(session)


async def get_sharing_service(session: SessionDep) -> AsyncGenerator[SharingService, None]:
    """Provide SharingService instance."""
    yield SharingService(session)


async def get_dashboard_service(session: SessionDep) -> AsyncGenerator[DashboardService, None]:
    """Provide DashboardService instance."""
    yield DashboardService(session)


SummarizerDep = Annotated[SummarizerService, Depends(get_summarizer_service)]
ExporterDep = Annotated[ExporterService, Depends(get_exporter_service)]
SharingDep = Annotated[SharingService, Depends(get_sharing_service)]
DashboardDep = Annotated[DashboardService, Depends(get_dashboard_service)]
