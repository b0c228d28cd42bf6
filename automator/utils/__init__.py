"""Utility modules for Automator."""

from automator.utils.errors import (
    AuthError,
    AutomatorError,
    BillingError,
    ClaudeAPIError,
    ConfigurationError,
    DatabaseError,
    EmptyResponseError,
    GenerationError,
    JobFailedError,
    JobStoreError,
    PollerError,
    PollGiveUpError,
    PollTimeoutError,
    QuotaExceededError,
    StripeAPIError,
    SubmissionError,
    TokenBudgetError,
    describe_exception,
)
from automator.utils.retry import retry_async, with_retry

__all__ = [
    "AutomatorError",
    "ConfigurationError",
    "GenerationError",
    "ClaudeAPIError",
    "EmptyResponseError",
    "TokenBudgetError",
    "JobStoreError",
    "DatabaseError",
    "QuotaExceededError",
    "BillingError",
    "StripeAPIError",
    "AuthError",
    "PollerError",
    "SubmissionError",
    "PollTimeoutError",
    "PollGiveUpError",
    "JobFailedError",
    "describe_exception",
    "retry_async",
    "with_retry",
]
