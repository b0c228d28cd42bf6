"""Subscriber and generated-course Pydantic models."""

from datetime import datetime, timedelta
from typing import Literal, Optional

from pydantic import BaseModel, Field

from automator.models.course import CourseFormData, Section
from automator.models.job import utc_now

SubscriptionTier = Literal["Free", "Basic", "Pro", "Enterprise"]

# Generated courses are kept in history for 30 days
COURSE_RETENTION = timedelta(days=30)


class Subscriber(BaseModel):
    """Row of the ``subscribers`` table."""

    user_id: Optional[str] = None
    email: str
    subscription_tier: SubscriptionTier = "Free"
    subscribed: bool = False
    subscription_end: Optional[datetime] = None
    generations_left: Optional[int] = Field(default=None, ge=0)
    last_generation_date: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None


class GeneratedCourse(BaseModel):
    """Row of the ``generated_courses`` table."""

    id: str = Field(min_length=1)
    user_id: str
    form_data: CourseFormData
    sections: list[Section] = Field(default_factory=list)
    status: Literal["processing", "completed", "error"] = "processing"
    preview_mode: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: Optional[datetime] = None

    def model_post_init(self, __context: object) -> None:
        if self.expires_at is None:
            self.expires_at = self.created_at + COURSE_RETENTION
