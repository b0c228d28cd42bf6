"""In-memory job store with retention sweep and compare-and-set finalization."""

import asyncio
import logging
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Optional

from automator.config import get_settings
from automator.models.job import JobRecord, utc_now
from automator.utils.errors import JobStoreError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class JobStore:
    """
    Process-wide mapping of job id to job record.

    All methods are synchronous, so each one runs to completion without
    yielding to the event loop. That makes ``finalize`` an atomic
    set-if-still-processing for every coroutine in the process.
    """

    def __init__(
        self,
        retention: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the JobStore.

        Args:
            retention: Age (measured from started_at) after which sweep removes a job
            clock: Callable returning the current UTC time
        """
        self.retention = retention
        self.clock = clock
        self._jobs: dict[str, JobRecord] = {}

    def set(self, job_id: str, record: JobRecord) -> None:
        """Insert or replace the full record for a job id."""
        if record.job_id != job_id:
            raise JobStoreError(f"Record id {record.job_id} does not match key {job_id}")
        self._jobs[job_id] = record

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def has(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def clear(self) -> None:
        self._jobs.clear()

    def sweep(self) -> int:
        """
        Remove every job started before the retention window.

        Returns:
            Number of jobs removed
        """
        cutoff = self.clock() - self.retention
        expired = [job_id for job_id, job in self._jobs.items() if job.started_at < cutoff]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.info(f"Swept {len(expired)} expired jobs, {len(self._jobs)} remaining")
        return len(expired)

    def update(self, job_id: str, **changes: Any) -> Optional[JobRecord]:
        """
        Apply non-terminal changes to a processing job.

        Progress never moves backwards. Terminal jobs are left untouched.

        Returns:
            The new record, or None if the job is missing or already terminal

        Raises:
            JobStoreError: If the changes try to set a terminal status
        """
        if changes.get("status", "processing") != "processing":
            raise JobStoreError("Terminal transitions must go through finalize()")

        current = self._jobs.get(job_id)
        if current is None:
            logger.warning(f"Update for unknown job {job_id} ignored")
            return None
        if current.is_terminal:
            logger.info(f"Job {job_id} already {current.status}, update ignored")
            return None

        if "progress_percent" in changes:
            changes["progress_percent"] = max(current.progress_percent, changes["progress_percent"])

        updated = self._replace(current, changes)
        self._jobs[job_id] = updated
        return updated

    def finalize(
        self,
        job_id: str,
        status: str,
        expected_version: Optional[int] = None,
        **changes: Any,
    ) -> Optional[JobRecord]:
        """
        Move a processing job to a terminal state.

        This is the only way a job leaves ``processing``. It succeeds only if
        the job is still processing and, when ``expected_version`` is given,
        has not been written since that version was read.

        Args:
            job_id: Job to finalize
            status: "completed" or "error"
            expected_version: Version the caller last observed
            **changes: Extra fields (data, error, error_details, status_message)

        Returns:
            The finalized record, or None if another writer got there first
        """
        if status not in ("completed", "error"):
            raise JobStoreError(f"Invalid terminal status: {status}")

        current = self._jobs.get(job_id)
        if current is None:
            logger.warning(f"Finalize for unknown job {job_id} ignored")
            return None
        if current.is_terminal:
            logger.info(f"Job {job_id} already finalized as {current.status}")
            return None
        if expected_version is not None and current.version != expected_version:
            logger.info(
                f"Job {job_id} changed since version {expected_version} "
                f"(now {current.version}), finalize skipped"
            )
            return None

        now = self.clock()
        changes.setdefault("milestone", status)
        if status == "completed":
            changes.setdefault("progress_percent", 100)
        changes.update(status=status, completed_at=now, draft=None)

        finalized = self._replace(current, changes)
        self._jobs[job_id] = finalized
        logger.info(f"Job {job_id} finalized as {status}")
        return finalized

    def _replace(self, current: JobRecord, changes: dict[str, Any]) -> JobRecord:
        fields = dict(current)
        fields.update(changes)
        fields["updated_at"] = self.clock()
        fields["version"] = current.version + 1
        # Round-trip through the constructor so the record invariants are re-checked
        return JobRecord(**fields)


async def run_sweeper(store: JobStore, interval_seconds: float) -> None:
    """Call ``store.sweep()`` every ``interval_seconds`` until cancelled."""
    logger.info(f"Job sweeper started (every {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.sweep()
        except Exception as e:
            logger.error(f"Job sweep failed: {e}")


@lru_cache
def get_job_store() -> JobStore:
    """Get the process-wide job store."""
    settings = get_settings()
    return JobStore(retention=timedelta(hours=settings.job_retention_hours))
