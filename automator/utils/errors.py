"""Custom exception classes for Automator."""

from typing import Any, Optional


class AutomatorError(Exception):
    """Base exception for all application errors."""

    pass


class ConfigurationError(AutomatorError):
    """A required setting (API key, service URL) is missing."""

    pass


class GenerationError(AutomatorError):
    """Errors from the course generation pipeline."""

    pass


class ClaudeAPIError(GenerationError):
    """Claude API returned an error or could not be reached."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Claude API error {status_code}: {message}")


class EmptyResponseError(GenerationError):
    """Claude API answered without usable text content."""

    pass


class TokenBudgetError(GenerationError):
    """Estimated request size exceeds the configured token ceiling."""

    def __init__(self, estimated_tokens: int, max_tokens: int) -> None:
        self.estimated_tokens = estimated_tokens
        self.max_tokens = max_tokens
        super().__init__(
            f"Request too large: estimated {estimated_tokens} tokens, "
            f"limit is {max_tokens}"
        )


class JobStoreError(AutomatorError):
    """Invalid job store operation."""

    pass


class DatabaseError(AutomatorError):
    """Errors from Supabase persistence."""

    pass


class QuotaExceededError(AutomatorError):
    """The subscriber has no generations left for the current period."""

    pass


class BillingError(AutomatorError):
    """Errors from the billing service."""

    pass


class StripeAPIError(BillingError):
    """Stripe API returned an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Stripe error {status_code}: {message}")


class AuthError(AutomatorError):
    """Missing or invalid bearer token."""

    pass


def describe_exception(exc: BaseException) -> dict[str, Any]:
    """Serializable details of an exception for job error reports."""
    details: dict[str, Any] = {
        "name": type(exc).__name__,
        "message": str(exc),
    }
    status_code: Optional[int] = getattr(exc, "status_code", None)
    if status_code is not None:
        details["status_code"] = status_code
    return details


class PollerError(AutomatorError):
    """Errors from the client-side job poller."""

    pass


class SubmissionError(PollerError):
    """The server refused to start a job."""

    pass


class PollTimeoutError(PollerError):
    """The job did not reach a terminal state in time."""

    pass


class PollGiveUpError(PollerError):
    """Too many consecutive status checks failed."""

    pass


class JobFailedError(PollerError):
    """The job ended in error (or is unknown to the server)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.details = details or {}
        super().__init__(message)
