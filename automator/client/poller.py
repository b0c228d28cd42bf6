"""
Course Generation Client

Submits a course form to the API and polls the job until it completes,
fails, times out or the status endpoint stops answering.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from automator.models.course import CourseFormData
from automator.utils.errors import (
    JobFailedError,
    PollGiveUpError,
    PollTimeoutError,
    SubmissionError,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3.0
POLL_TIMEOUT_SECONDS = 90.0
SAFETY_TIMEOUT_SECONDS = 120.0
MAX_CONSECUTIVE_ERRORS = 3

TERMINAL_STATUSES = ("completed", "error", "not_found")

MESSAGES: dict[str, dict[str, str]] = {
    "poll_timeout": {
        "ro": "Generarea durează mai mult decât era de așteptat. Vă rugăm să încercați din nou.",
        "en": "Generation is taking longer than expected. Please try again.",
    },
    "safety_timeout": {
        "ro": "Generarea a fost oprită după prea mult timp. Verificați contul mai târziu.",
        "en": "Generation was stopped after too long. Please check your account later.",
    },
    "give_up": {
        "ro": "Nu am putut verifica statusul generării. Verificați contul mai târziu.",
        "en": "Could not check generation status. Please check your account later.",
    },
    "job_failed": {
        "ro": "A apărut o eroare la generarea materialelor",
        "en": "An error occurred while generating materials",
    },
    "not_found": {
        "ro": "Job-ul nu a fost găsit sau a expirat. Încercați din nou.",
        "en": "The job was not found or has expired. Please try again.",
    },
    "submit_failed": {
        "ro": "Nu am putut porni generarea",
        "en": "Could not start generation",
    },
}

ProgressCallback = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]


def message(key: str, locale: str) -> str:
    return MESSAGES[key].get(locale, MESSAGES[key]["en"])


class CoursePoller:
    """Async client for the generate-course endpoint."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        poll_timeout: float = POLL_TIMEOUT_SECONDS,
        safety_timeout: float = SAFETY_TIMEOUT_SECONDS,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the poller.

        Args:
            base_url: API root, e.g. "http://localhost:8000"
            token: Supabase access token sent as a bearer token
            client: Preconfigured httpx client (base_url is ignored if given)
            poll_interval: Seconds between status checks
            poll_timeout: Seconds after which polling one job is abandoned
            safety_timeout: Hard ceiling on a whole generate() call
            max_consecutive_errors: Failed status checks in a row before giving up
            clock: Monotonic clock used for the poll timeout
            sleep: Awaitable sleep used between checks
        """
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=30.0)
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.safety_timeout = safety_timeout
        self.max_consecutive_errors = max_consecutive_errors
        self.clock = clock
        self.sleep = sleep
        self.loading = False

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "CoursePoller":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def submit(self, form_data: CourseFormData, client_info: Optional[dict] = None) -> str:
        """
        Start a job.

        Returns:
            The job id

        Raises:
            SubmissionError: If the request fails or the server refuses it
        """
        body: dict[str, Any] = {
            "action": "start",
            "formData": form_data.model_dump(by_alias=True, exclude_none=True),
        }
        if client_info:
            body["clientInfo"] = client_info

        try:
            response = await self.client.post("/generate-course", json=body)
        except httpx.HTTPError as e:
            raise SubmissionError(f"{message('submit_failed', form_data.locale)}: {e}") from e

        payload = _json_or_empty(response)
        if response.is_error or not payload.get("success") or not payload.get("jobId"):
            error = payload.get("error") or f"HTTP {response.status_code}"
            raise SubmissionError(f"{message('submit_failed', form_data.locale)}: {error}")

        if payload.get("status") == "error":
            logger.warning(f"Job {payload['jobId']} failed at submission: {payload.get('error')}")
        return payload["jobId"]

    async def check_status(self, job_id: str) -> dict[str, Any]:
        """
        One status query.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response
            ValueError: If the body is not a JSON object
        """
        response = await self.client.post(
            "/generate-course", json={"action": "status", "jobId": job_id}
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Status response is not a JSON object: {payload!r}")
        return payload

    async def poll(
        self,
        job_id: str,
        on_progress: Optional[ProgressCallback] = None,
        locale: str = "en",
    ) -> dict[str, Any]:
        """
        Poll a job until it reaches a terminal status.

        Returns:
            The terminal status response

        Raises:
            PollTimeoutError: If the poll timeout elapses first
            PollGiveUpError: After too many consecutive failed checks
        """
        started = self.clock()
        consecutive_errors = 0

        while True:
            if self.clock() - started > self.poll_timeout:
                raise PollTimeoutError(message("poll_timeout", locale))

            try:
                status = await self.check_status(job_id)
            except (httpx.HTTPError, ValueError) as e:
                consecutive_errors += 1
                logger.warning(
                    f"Status check {consecutive_errors}/{self.max_consecutive_errors} "
                    f"for {job_id} failed: {e}"
                )
                if consecutive_errors >= self.max_consecutive_errors:
                    raise PollGiveUpError(message("give_up", locale)) from e
            else:
                consecutive_errors = 0
                if on_progress is not None:
                    result = on_progress(status)
                    if asyncio.iscoroutine(result):
                        await result
                if status.get("status") in TERMINAL_STATUSES:
                    return status

            await self.sleep(self.poll_interval)

    async def generate(
        self,
        form_data: CourseFormData,
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """
        Submit a form and wait for its materials.

        Returns:
            The completed status response (``data.sections`` holds the materials)

        Raises:
            SubmissionError, PollTimeoutError, PollGiveUpError, JobFailedError
        """
        locale = form_data.locale
        self.loading = True
        try:
            return await asyncio.wait_for(
                self._submit_and_poll(form_data, on_progress, locale),
                timeout=self.safety_timeout,
            )
        except asyncio.TimeoutError:
            raise PollTimeoutError(message("safety_timeout", locale))
        finally:
            self.loading = False

    async def _submit_and_poll(
        self,
        form_data: CourseFormData,
        on_progress: Optional[ProgressCallback],
        locale: str,
    ) -> dict[str, Any]:
        job_id = await self.submit(form_data)
        logger.info(f"Job {job_id} submitted, polling every {self.poll_interval}s")
        status = await self.poll(job_id, on_progress=on_progress, locale=locale)

        if status.get("status") == "completed":
            return status
        if status.get("status") == "not_found":
            raise JobFailedError(message("not_found", locale), {"jobId": job_id})

        error = status.get("error") or ""
        raise JobFailedError(
            f"{message('job_failed', locale)}: {error}".rstrip(": "),
            status.get("errorDetails"),
        )

    async def run_diagnostics(self) -> dict[str, Any]:
        """Re-probe connectivity and the server's Claude credential."""
        results: dict[str, Any] = {}
        for name, path in (("connectivity", "/diagnostics/ping"), ("claude", "/diagnostics/claude")):
            try:
                response = await self.client.get(path)
                response.raise_for_status()
                results[name] = response.json()
            except (httpx.HTTPError, ValueError) as e:
                results[name] = {"success": False, "error": str(e)}
        return results


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
