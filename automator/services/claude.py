"""
Claude Generation Backend

Thin async wrapper over the Anthropic Messages API used by the job processor
and the diagnostics probes.
"""

import logging
from typing import Any, Optional

import anthropic

from automator.config import Settings, get_settings
from automator.utils.errors import (
    ClaudeAPIError,
    ConfigurationError,
    EmptyResponseError,
)

logger = logging.getLogger(__name__)

# Status code used for transport failures (no HTTP response received)
TRANSPORT_ERROR_STATUS = 0


def is_retryable(exc: Exception) -> bool:
    """Transport failures, throttling, server errors and empty answers are worth retrying."""
    if isinstance(exc, EmptyResponseError):
        return True
    if isinstance(exc, ClaudeAPIError):
        return exc.status_code in (TRANSPORT_ERROR_STATUS, 408, 429) or exc.status_code >= 500
    return False


class ClaudeBackend:
    """Generation backend calling Claude through ``AsyncAnthropic``."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 16000,
        temperature: float = 0.7,
        timeout: float = 120.0,
        client: Optional[Any] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "Claude API key required. Set CLAUDE_API_KEY (or ANTHROPIC_API_KEY) in .env"
            )
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # Retries are handled by the job processor
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout, max_retries=0
        )

    async def generate(self, system: str, prompt: str) -> str:
        """
        Send one generation request and return the response text.

        Raises:
            ClaudeAPIError: On API or transport failure
            EmptyResponseError: If the response holds no text
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise ClaudeAPIError(e.status_code, e.message) from e
        except anthropic.APIConnectionError as e:
            raise ClaudeAPIError(TRANSPORT_ERROR_STATUS, str(e)) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise EmptyResponseError(
                f"Claude returned no text content (stop_reason={response.stop_reason})"
            )

        logger.info(
            f"Claude response received: {len(text)} chars, stop_reason={response.stop_reason}"
        )
        return text

    async def check_credentials(self) -> dict[str, Any]:
        """Minimal request proving the key and model are accepted."""
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "ping"}],
            )
        except anthropic.APIStatusError as e:
            return {"ok": False, "status_code": e.status_code, "error": e.message}
        except anthropic.APIConnectionError as e:
            return {"ok": False, "status_code": TRANSPORT_ERROR_STATUS, "error": str(e)}
        return {"ok": True, "model": response.model}


def create_claude_backend(settings: Optional[Settings] = None) -> ClaudeBackend:
    """Create a ClaudeBackend from settings."""
    settings = settings or get_settings()
    return ClaudeBackend(
        api_key=settings.claude_api_key,
        model=settings.claude_model,
        max_tokens=settings.claude_max_tokens,
        temperature=settings.claude_temperature,
        timeout=settings.claude_timeout_seconds,
    )
