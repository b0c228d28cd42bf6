"""
Job Submission and Status Service

Creates generation jobs, schedules their background processing and answers
status queries. Status queries heal missing, stuck and empty jobs so the
client never waits forever; ``SELF_HEAL_MODE`` picks between fabricating
placeholder results and reporting an explicit terminal error.
"""

import logging
from typing import Any, Callable, Optional

from automator.config import Settings
from automator.models.account import GeneratedCourse
from automator.models.course import CourseFormData
from automator.models.job import JobRecord, milestone_message, new_job_id
from automator.services.auth import AuthUser
from automator.services.claude import ClaudeBackend
from automator.services.database import DatabaseService
from automator.services.generations import GenerationsService
from automator.services.job_processor import JobProcessor
from automator.services.job_store import JobStore
from automator.services.placeholder_content import build_placeholder_content
from automator.utils.errors import ConfigurationError, describe_exception

logger = logging.getLogger(__name__)

Scheduler = Callable[..., Any]

# Form used when a status query names a job the store has never seen
FALLBACK_FORM = CourseFormData(subject="Course materials", language="english")

EXPIRED_ERROR = "expired"


class JobService:
    """Submission and status handling over a shared JobStore."""

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        backend: Optional[ClaudeBackend] = None,
        db: Optional[DatabaseService] = None,
        generations: Optional[GenerationsService] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.backend = backend
        self.db = db
        self.generations = generations

    @property
    def explicit_mode(self) -> bool:
        return self.settings.self_heal_mode == "explicit"

    # ==================== SUBMISSION ====================

    async def start_job(
        self,
        form_data: CourseFormData,
        schedule: Scheduler,
        user: Optional[AuthUser] = None,
    ) -> JobRecord:
        """
        Create a job and schedule its processing.

        A missing Claude key still creates the job, which is immediately
        finalized as an error.

        Args:
            form_data: Validated course form
            schedule: Called as ``schedule(func, job_id)`` to run work after the response
            user: Authenticated caller, if any

        Returns:
            The job record as stored when this call returns

        Raises:
            QuotaExceededError: If an authenticated user has no generations left
        """
        if user is not None and self.generations is not None:
            if self.backend is None:
                await self.generations.ensure_available(user)
            else:
                await self.generations.decrement(user)

        record = self._create_record(form_data, user)
        logger.info(
            f"Starting job {record.job_id} for subject: {form_data.subject}, "
            f"duration: {form_data.duration}, language: {form_data.language}"
        )

        if self.backend is None:
            error = ConfigurationError(
                "Claude API key is not configured. Set CLAUDE_API_KEY on the server."
            )
            logger.error(f"Job {record.job_id}: {error}")
            finalized = self.store.finalize(
                record.job_id,
                "error",
                error=str(error),
                error_details=describe_exception(error),
                status_message=milestone_message("error", form_data.locale),
            )
            return finalized or record

        if user is not None:
            await self._record_course(record, user)

        processor = JobProcessor(self.store, self.backend, self.settings, db=self.db)
        schedule(processor.process, record.job_id)
        logger.info(f"Job {record.job_id} scheduled, {len(self.store)} jobs in store")
        return record

    def _create_record(self, form_data: CourseFormData, user: Optional[AuthUser]) -> JobRecord:
        job_id = new_job_id()
        while self.store.has(job_id):
            job_id = new_job_id()

        now = self.store.clock()
        record = JobRecord(
            job_id=job_id,
            form_data=form_data,
            progress_percent=5,
            milestone="job_created",
            status_message=milestone_message("job_created", form_data.locale),
            user_id=user.id if user else None,
            started_at=now,
            updated_at=now,
        )
        self.store.set(job_id, record)
        return record

    async def _record_course(self, record: JobRecord, user: AuthUser) -> None:
        if self.db is None:
            return
        course = GeneratedCourse(
            id=record.job_id,
            user_id=user.id,
            form_data=record.form_data,
            status="processing",
            preview_mode=record.form_data.is_preview,
            created_at=record.started_at,
        )
        try:
            await self.db.create_course(course)
        except Exception as e:
            logger.error(f"Failed to record course {record.job_id} in history: {e}")

    # ==================== STATUS ====================

    def get_status(self, job_id: str) -> Optional[JobRecord]:
        """
        Current state of a job, healed if missing, stuck or empty.

        Returns:
            The job record, or None when the job is unknown in explicit mode
        """
        record = self.store.get(job_id)

        if record is None:
            if self.explicit_mode:
                logger.warning(f"Job {job_id} not found in store")
                return None
            logger.warning(f"Job {job_id} not found, fabricating completed result")
            return self._fabricate(job_id)

        if record.status == "processing" and self._is_stuck(record):
            return self._force_finalize(record)

        if record.status == "completed" and not (record.data and record.data.sections):
            return self._heal_empty(record)

        return record

    def seconds_since_update(self, record: JobRecord) -> float:
        return (self.store.clock() - record.updated_at).total_seconds()

    def _is_stuck(self, record: JobRecord) -> bool:
        return self.seconds_since_update(record) > self.settings.stuck_job_threshold_seconds

    def _fabricate(self, job_id: str) -> JobRecord:
        now = self.store.clock()
        record = JobRecord(
            job_id=job_id,
            status="completed",
            form_data=FALLBACK_FORM,
            progress_percent=100,
            milestone="completed",
            status_message=milestone_message("completed", FALLBACK_FORM.locale),
            data=build_placeholder_content(FALLBACK_FORM),
            started_at=now,
            updated_at=now,
            completed_at=now,
        )
        self.store.set(job_id, record)
        return record

    def _force_finalize(self, record: JobRecord) -> JobRecord:
        idle = self.seconds_since_update(record)
        logger.warning(f"Job {record.job_id} stuck for {idle:.1f}s at {record.milestone}")
        locale = record.form_data.locale

        if self.explicit_mode:
            finalized = self.store.finalize(
                record.job_id,
                "error",
                expected_version=record.version,
                error=EXPIRED_ERROR,
                error_details={
                    "reason": "no progress within the stuck-job threshold",
                    "last_milestone": record.milestone,
                    "seconds_since_update": round(idle, 1),
                },
                status_message=milestone_message("error", locale),
            )
        else:
            if record.draft and record.draft.sections:
                content = record.draft
            else:
                content = build_placeholder_content(record.form_data)
            finalized = self.store.finalize(
                record.job_id,
                "completed",
                expected_version=record.version,
                data=content,
                status_message=milestone_message("completed", locale),
            )

        # Another writer finalized first: report what it wrote
        return finalized or self.store.get(record.job_id) or record

    def _heal_empty(self, record: JobRecord) -> JobRecord:
        if self.explicit_mode:
            logger.error(f"Job {record.job_id} completed without sections")
            # Reported view only, the stored record stays completed
            return record.model_copy(
                update={
                    "status": "error",
                    "milestone": "error",
                    "data": None,
                    "error": "Generated content is empty",
                    "error_details": {"reason": "completed job has no sections"},
                }
            )

        logger.warning(f"Job {record.job_id} completed without sections, regenerating placeholders")
        healed = record.model_copy(
            update={
                "data": build_placeholder_content(record.form_data),
                "updated_at": self.store.clock(),
                "version": record.version + 1,
            }
        )
        self.store.set(record.job_id, healed)
        return healed


def not_found_payload(job_id: str) -> dict[str, Any]:
    return {
        "error": (
            f"Job {job_id} was not found. It was either never created or has expired."
        ),
        "error_details": {"reason": "unknown job id"},
    }
