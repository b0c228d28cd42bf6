"""Read-only diagnostics probes used by the client's "run diagnostics" action."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends

from automator import __version__
from automator.api.deps import get_claude_backend_dep, get_job_store_dep, get_settings_dep
from automator.config import Settings
from automator.models.job import utc_now
from automator.services.claude import ClaudeBackend
from automator.services.job_store import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["diagnostics"])


@router.get("/diagnostics/ping")
async def ping() -> dict[str, Any]:
    """Connectivity test."""
    return {"success": True, "message": "pong", "timestamp": utc_now().isoformat()}


@router.get("/diagnostics/claude")
async def check_claude(
    settings: Settings = Depends(get_settings_dep),
    backend: Optional[ClaudeBackend] = Depends(get_claude_backend_dep),
) -> dict[str, Any]:
    """Verify the Claude API key with a minimal request."""
    if backend is None:
        return {
            "success": False,
            "configured": False,
            "error": "CLAUDE_API_KEY is not set",
        }

    result = await backend.check_credentials()
    if not result["ok"]:
        logger.warning(f"Claude credential check failed: {result.get('error')}")
    return {
        "success": result["ok"],
        "configured": True,
        "model": settings.claude_model,
        **{k: v for k, v in result.items() if k != "ok"},
    }


@router.get("/diagnostics/env")
async def check_env(settings: Settings = Depends(get_settings_dep)) -> dict[str, Any]:
    """Which settings are present. Secret values are never returned."""
    return {
        "success": True,
        "variables": {
            "CLAUDE_API_KEY": bool(settings.claude_api_key),
            "SUPABASE_URL": bool(settings.supabase_url),
            "SUPABASE_KEY": bool(settings.supabase_key),
            "STRIPE_SECRET_KEY": bool(settings.stripe_secret_key),
            "STRIPE_WEBHOOK_SECRET": bool(settings.stripe_webhook_secret),
        },
        "claude_model": settings.claude_model,
        "self_heal_mode": settings.self_heal_mode,
        "stuck_job_threshold_seconds": settings.stuck_job_threshold_seconds,
        "job_heartbeat_seconds": settings.job_heartbeat_seconds,
    }


@router.get("/health")
async def health(store: JobStore = Depends(get_job_store_dep)) -> dict[str, Any]:
    return {"status": "healthy", "version": __version__, "active_jobs": len(store)}
