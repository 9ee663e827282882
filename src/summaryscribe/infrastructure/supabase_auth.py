"""Session verification against Supabase Auth."""

import logging
from dataclasses import dataclass

import aiohttp
from aiohttp import ClientTimeout

from summaryscribe.config import get_settings
from summaryscribe.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """The authenticated caller."""

    id: str
    email: str = ""
    name: str = ""


async def verify_access_token(token: str) -> CurrentUser:
    """Resolve a Supabase access token to its user.

    Raises:
        AuthError: token rejected, Supabase unreachable, or Supabase not configured
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.warning("Supabase Auth is not configured; rejecting request")
        raise AuthError("Authentication required")

    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
    headers = {"Authorization": f"Bearer {token}", "apikey": settings.supabase_anon_key}
    try:
        async with aiohttp.ClientSession(
            timeout=ClientTimeout(total=settings.http_timeout_seconds)
        ) as session:
            async with session.get(url, headers=headers) as response:
                if response.status != 200:
                    raise AuthError("Authentication required")
                data = await response.json()
    except (aiohttp.ClientError, TimeoutError) as e:
        logger.warning(f"Supabase Auth unreachable: {e}")
        raise AuthError("Authentication required") from e

    meta = data.get("user_metadata") or {}
    email = data.get("email") or ""
    return CurrentUser(
        id=data["id"],
        email=email,
        name=meta.get("full_name") or meta.get("name") or email or "User",
    )
