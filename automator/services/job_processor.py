"""Background processing of course generation jobs."""

import asyncio
import contextlib
import logging
from typing import Optional

from automator.config import Settings
from automator.models.course import CourseContent, Section
from automator.models.job import MILESTONE_PROGRESS, JobRecord, milestone_message
from automator.services.claude import ClaudeBackend, is_retryable
from automator.services.content_parser import parse_content
from automator.services.database import DatabaseService
from automator.services.job_store import JobStore
from automator.services.prompt_builder import SYSTEM_PROMPT, build_prompt, estimate_request_tokens
from automator.utils.errors import GenerationError, TokenBudgetError, describe_exception
from automator.utils.retry import retry_async

logger = logging.getLogger(__name__)


class JobAbandoned(Exception):
    """The job was finalized by another writer while processing."""


class JobProcessor:
    """
    Drives one job from ``job_created`` to a terminal state.

    Progress milestones are written through ``JobStore.update`` and the final
    transition through ``JobStore.finalize``, so a job that was already
    force-finalized by a status query keeps its terminal state.
    """

    def __init__(
        self,
        store: JobStore,
        backend: ClaudeBackend,
        settings: Settings,
        db: Optional[DatabaseService] = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.settings = settings
        self.db = db

    async def process(self, job_id: str) -> Optional[JobRecord]:
        """
        Run generation for a job.

        Errors are recorded on the job, never raised.

        Returns:
            The job record as it stands once processing ends
        """
        record = self.store.get(job_id)
        if record is None:
            logger.error(f"Job {job_id} not found, nothing to process")
            return None

        logger.info(f"Processing job {job_id} for subject: {record.form_data.subject}")

        try:
            sections = await self._generate(record)
        except JobAbandoned:
            logger.info(f"Job {job_id} finalized elsewhere, processing stopped")
            return self.store.get(job_id)
        except GenerationError as e:
            logger.error(f"Job {job_id} failed: {e}")
            return await self._fail(record, e)
        except Exception as e:
            logger.exception(f"Unexpected error processing job {job_id}: {e}")
            return await self._fail(record, e)

        finalized = self.store.finalize(
            job_id,
            "completed",
            data=CourseContent(sections=sections),
            status_message=milestone_message("completed", record.form_data.locale),
        )
        if finalized is None:
            logger.warning(f"Job {job_id} was already finalized, generated result discarded")
            return self.store.get(job_id)

        logger.info(f"Job {job_id} completed with {len(sections)} sections")
        await self._save_history(job_id, "completed", sections)
        return finalized

    async def _generate(self, record: JobRecord) -> list[Section]:
        job_id = record.job_id
        form_data = record.form_data

        self._advance(record, "processing_started")

        prompt = build_prompt(form_data)
        estimated = estimate_request_tokens(SYSTEM_PROMPT, prompt, self.settings.claude_max_tokens)
        if estimated > self.settings.max_request_tokens:
            raise TokenBudgetError(estimated, self.settings.max_request_tokens)
        logger.info(f"Job {job_id} prompt: {len(prompt)} chars, ~{estimated} tokens")

        self._advance(record, "api_call_started")

        async def on_retry(attempt: int, error: Exception, delay: float) -> None:
            self._advance(
                record,
                "api_call_started",
                status_message=(
                    f"{milestone_message('api_call_started', form_data.locale)} "
                    f"({attempt + 1}/{self.settings.generation_retries + 1})"
                ),
            )

        heartbeat = asyncio.create_task(self._heartbeat(job_id))
        try:
            text = await retry_async(
                self.backend.generate,
                SYSTEM_PROMPT,
                prompt,
                max_attempts=self.settings.generation_retries + 1,
                base_delay=self.settings.generation_retry_delay_seconds,
                backoff="fixed",
                exceptions=(GenerationError,),
                retry_if=is_retryable,
                on_retry=on_retry,
            )
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

        self._advance(record, "api_call_complete")
        self._advance(record, "processing_content")
        sections = parse_content(text, form_data)

        self._advance(record, "generating_materials", draft=CourseContent(sections=sections))
        self._advance(record, "saving_materials")
        return sections

    async def _heartbeat(self, job_id: str) -> None:
        """Refresh ``updated_at`` while the Claude call is in flight, until cancelled."""
        while True:
            await asyncio.sleep(self.settings.job_heartbeat_seconds)
            if self.store.update(job_id) is None:
                return

    def _advance(self, record: JobRecord, milestone: str, **changes: object) -> JobRecord:
        changes.setdefault("status_message", milestone_message(milestone, record.form_data.locale))
        updated = self.store.update(
            record.job_id,
            milestone=milestone,
            progress_percent=MILESTONE_PROGRESS[milestone],
            **changes,
        )
        if updated is None:
            raise JobAbandoned(record.job_id)
        return updated

    async def _fail(self, record: JobRecord, exc: Exception) -> Optional[JobRecord]:
        finalized = self.store.finalize(
            record.job_id,
            "error",
            error=str(exc) or type(exc).__name__,
            error_details=describe_exception(exc),
            status_message=milestone_message("error", record.form_data.locale),
        )
        if finalized is None:
            return self.store.get(record.job_id)
        await self._save_history(record.job_id, "error")
        return finalized

    async def _save_history(
        self, job_id: str, status: str, sections: Optional[list[Section]] = None
    ) -> None:
        record = self.store.get(job_id)
        if self.db is None or record is None or record.user_id is None:
            return
        try:
            await self.db.update_course(job_id, status, sections)
        except Exception as e:
            logger.error(f"Failed to save course history for job {job_id}: {e}")
