"""Generation job Pydantic model."""

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from automator.models.course import CourseContent, CourseFormData

JobState = Literal["processing", "completed", "error"]

Milestone = Literal[
    "job_created",
    "processing_started",
    "api_call_started",
    "api_call_complete",
    "processing_content",
    "generating_materials",
    "saving_materials",
    "completed",
    "error",
]

# Progress reported at each milestone. Error keeps whatever progress was reached.
MILESTONE_PROGRESS: dict[str, int] = {
    "job_created": 5,
    "processing_started": 10,
    "api_call_started": 20,
    "api_call_complete": 50,
    "processing_content": 70,
    "generating_materials": 80,
    "saving_materials": 90,
    "completed": 100,
}

MILESTONE_MESSAGES: dict[str, dict[str, str]] = {
    "job_created": {
        "ro": "Job creat, se așteaptă procesarea",
        "en": "Job created, waiting for processing",
    },
    "processing_started": {
        "ro": "Procesarea a început",
        "en": "Processing started",
    },
    "api_call_started": {
        "ro": "Se generează conținutul cu Claude",
        "en": "Generating content with Claude",
    },
    "api_call_complete": {
        "ro": "Răspuns primit de la Claude",
        "en": "Response received from Claude",
    },
    "processing_content": {
        "ro": "Se procesează conținutul generat",
        "en": "Processing generated content",
    },
    "generating_materials": {
        "ro": "Se generează materialele de curs",
        "en": "Generating course materials",
    },
    "saving_materials": {
        "ro": "Se salvează materialele",
        "en": "Saving materials",
    },
    "completed": {
        "ro": "Materialele au fost generate cu succes",
        "en": "Materials generated successfully",
    },
    "error": {
        "ro": "A apărut o eroare la generarea materialelor",
        "en": "An error occurred while generating materials",
    },
}

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Allocate a job id: ``job-<epoch millis>-<7 base36 chars>``."""
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=7))
    return f"job-{int(time.time() * 1000)}-{suffix}"


def milestone_message(milestone: str, locale: str = "en") -> str:
    messages = MILESTONE_MESSAGES.get(milestone, MILESTONE_MESSAGES["processing_started"])
    return messages.get(locale, messages["en"])


class JobRecord(BaseModel):
    """State of one course generation job."""

    job_id: str = Field(min_length=1)
    status: JobState = "processing"
    form_data: CourseFormData
    progress_percent: int = Field(default=5, ge=0, le=100)
    milestone: Milestone = "job_created"
    status_message: str = ""
    data: Optional[CourseContent] = None
    draft: Optional[CourseContent] = None
    error: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None
    user_id: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    version: int = 0

    @model_validator(mode="after")
    def check_terminal_fields(self) -> "JobRecord":
        """Data is present iff completed; error fields only when errored."""
        if (self.data is not None) != (self.status == "completed"):
            raise ValueError("data must be present if and only if status is completed")
        if self.status != "error" and (self.error is not None or self.error_details is not None):
            raise ValueError("error fields are only allowed when status is error")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status != "processing"
