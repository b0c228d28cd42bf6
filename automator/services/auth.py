"""
Authentication Service using Supabase Auth

Resolves bearer tokens sent by the web client to Supabase users.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel

from automator.utils.errors import AuthError

logger = logging.getLogger(__name__)


class AuthUser(BaseModel):
    """Authenticated Supabase user."""

    id: str
    email: str


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthService:
    """Authentication service using Supabase."""

    def __init__(self, supabase_client: Any) -> None:
        self.supabase = supabase_client

    async def verify_token(self, token: str) -> AuthUser:
        """
        Verify a session token and return the user.

        Raises:
            AuthError: If the token is invalid or the user has no email
        """
        try:
            result = self.supabase.auth.get_user(token)
        except Exception as e:
            logger.error(f"Session verify error: {e}")
            raise AuthError(f"Authentication error: {e}")

        user = getattr(result, "user", None)
        if user is None or not getattr(user, "email", None):
            raise AuthError("User not authenticated or email not available")

        return AuthUser(id=str(user.id), email=user.email)


def create_auth_service() -> AuthService:
    """Create AuthService with Supabase client."""
    from supabase import create_client

    from automator.config import get_settings

    settings = get_settings()
    supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return AuthService(supabase_client)
