"""Pydantic data models for Automator."""

from automator.models.course import (
    SECTION_TYPES,
    CourseContent,
    CourseFormData,
    Section,
    SectionType,
)
from automator.models.job import (
    MILESTONE_PROGRESS,
    JobRecord,
    JobState,
    Milestone,
    new_job_id,
)

__all__ = [
    "CourseFormData",
    "CourseContent",
    "Section",
    "SectionType",
    "SECTION_TYPES",
    "JobRecord",
    "JobState",
    "Milestone",
    "MILESTONE_PROGRESS",
    "new_job_id",
]
