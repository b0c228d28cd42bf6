"""FastAPI dependencies for the Automator API."""

from typing import Optional

from fastapi import Depends, Header

from automator.config import Settings, get_settings
from automator.services.auth import AuthService, AuthUser, create_auth_service, extract_bearer_token
from automator.services.claude import ClaudeBackend, create_claude_backend
from automator.services.database import DatabaseService, create_database_service
from automator.services.generations import GenerationsService
from automator.services.job_store import JobStore, get_job_store
from automator.services.jobs import JobService
from automator.services.stripe_service import StripeService, create_stripe_service
from automator.utils.errors import AuthError, ConfigurationError


def get_settings_dep() -> Settings:
    """Dependency for application settings."""
    return get_settings()


def get_job_store_dep() -> JobStore:
    """Dependency for the process-wide job store."""
    return get_job_store()


def get_claude_backend_dep(
    settings: Settings = Depends(get_settings_dep),
) -> Optional[ClaudeBackend]:
    """Claude backend, or None when no API key is configured."""
    if not settings.claude_api_key:
        return None
    return create_claude_backend(settings)


def get_database_service_dep(
    settings: Settings = Depends(get_settings_dep),
) -> Optional[DatabaseService]:
    """Database service, or None when Supabase is not configured."""
    if not settings.supabase_configured:
        return None
    return create_database_service()


def require_database_service(
    db: Optional[DatabaseService] = Depends(get_database_service_dep),
) -> DatabaseService:
    if db is None:
        raise ConfigurationError("Supabase not configured. Add SUPABASE_URL and SUPABASE_KEY to .env")
    return db


def get_auth_service_dep(
    settings: Settings = Depends(get_settings_dep),
) -> Optional[AuthService]:
    if not settings.supabase_configured:
        return None
    return create_auth_service()


async def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    auth: Optional[AuthService] = Depends(get_auth_service_dep),
) -> Optional[AuthUser]:
    """
    Caller identity from the bearer token.

    Requests without a token, or made while Supabase is not configured, are
    anonymous. A token that fails verification is rejected.
    """
    token = extract_bearer_token(authorization)
    if token is None or auth is None:
        return None
    return await auth.verify_token(token)


async def require_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise AuthError("No authorization header provided")
    return user


def get_generations_service_dep(
    db: Optional[DatabaseService] = Depends(get_database_service_dep),
    settings: Settings = Depends(get_settings_dep),
) -> Optional[GenerationsService]:
    if db is None:
        return None
    return GenerationsService(db, admin_email=settings.admin_email)


def require_generations_service(
    generations: Optional[GenerationsService] = Depends(get_generations_service_dep),
) -> GenerationsService:
    if generations is None:
        raise ConfigurationError("Supabase not configured. Add SUPABASE_URL and SUPABASE_KEY to .env")
    return generations


def get_job_service_dep(
    store: JobStore = Depends(get_job_store_dep),
    settings: Settings = Depends(get_settings_dep),
    backend: Optional[ClaudeBackend] = Depends(get_claude_backend_dep),
    db: Optional[DatabaseService] = Depends(get_database_service_dep),
    generations: Optional[GenerationsService] = Depends(get_generations_service_dep),
) -> JobService:
    """Dependency for job submission and status handling."""
    return JobService(store, settings, backend=backend, db=db, generations=generations)


def get_stripe_service_dep() -> StripeService:
    """Dependency for the Stripe service (503 when not configured)."""
    return create_stripe_service()
