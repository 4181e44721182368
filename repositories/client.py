"""
Supabase client construction and caller authentication.

Nothing here runs at import time: the service builds one client when the
pipeline context is created and hands it to each repository.
"""

from typing import Any, Optional

from loguru import logger
from supabase import Client, create_client

from config import Settings
from domain.errors import AuthenticationError, StoreError


def create_supabase_client(settings: Settings) -> Client:
    """Create the server-side Supabase client (service role key)."""
    if not settings.supabase_url:
        raise StoreError("Missing environment variable: SUPABASE_URL")
    if not settings.supabase_service_key:
        raise StoreError("Missing environment variable: SUPABASE_SERVICE_ROLE_KEY")
    return create_client(settings.supabase_url, settings.supabase_service_key)


def execute(query: Any, action: str) -> list:
    """Run a PostgREST query builder and return its rows, raising StoreError on failure."""
    try:
        response = query.execute()
    except Exception as e:
        logger.error(f"Supabase {action} failed: {e}")
        raise StoreError(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        logger.error(f"Supabase {action} returned an error: {error}")
        raise StoreError(f"Failed to {action}: {error}")

    data = getattr(response, "data", None)
    if data is None:
        return []
    return data if isinstance(data, list) else [data]


class SupabaseAuthenticator:
    """Resolves a bearer token to the calling user's id through Supabase Auth."""

    def __init__(self, client: Client):
        self.client = client

    def user_id(self, authorization: Optional[str]) -> str:
        token = _bearer_token(authorization)
        if not token:
            raise AuthenticationError("User not authenticated")
        try:
            response = self.client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            raise AuthenticationError("User not authenticated") from e

        user = getattr(response, "user", None)
        if not user or not getattr(user, "id", None):
            raise AuthenticationError("User not authenticated")
        return str(user.id)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
