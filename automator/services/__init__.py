"""Service layer for Automator."""

from automator.services.auth import AuthService, AuthUser, create_auth_service
from automator.services.claude import ClaudeBackend, create_claude_backend
from automator.services.database import DatabaseService, create_database_service
from automator.services.generations import GenerationsService
from automator.services.job_processor import JobProcessor
from automator.services.job_store import JobStore, get_job_store
from automator.services.jobs import JobService
from automator.services.stripe_service import PLANS, StripeService, create_stripe_service

__all__ = [
    "AuthService",
    "AuthUser",
    "create_auth_service",
    "ClaudeBackend",
    "create_claude_backend",
    "DatabaseService",
    "create_database_service",
    "GenerationsService",
    "JobProcessor",
    "JobStore",
    "get_job_store",
    "JobService",
    "PLANS",
    "StripeService",
    "create_stripe_service",
]
