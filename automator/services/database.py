"""Database service for Supabase operations."""

import logging
from datetime import datetime
from typing import Any, List, Optional

from automator.models.account import GeneratedCourse, Subscriber
from automator.models.course import Section
from automator.models.job import utc_now
from automator.utils.errors import DatabaseError

logger = logging.getLogger(__name__)

SUBSCRIBERS_TABLE = "subscribers"
COURSES_TABLE = "generated_courses"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert datetimes to ISO strings for the Supabase client."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in fields.items()
    }


class DatabaseService:
    """Service for Supabase database operations."""

    def __init__(self, supabase_client: Any) -> None:
        """
        Initialize the DatabaseService.

        Args:
            supabase_client: Supabase client instance
        """
        self.supabase = supabase_client

    # ==================== SUBSCRIBERS ====================

    async def get_subscriber(self, user_id: str) -> Optional[Subscriber]:
        """
        Retrieve a subscriber by user ID.

        Args:
            user_id: Supabase auth user ID

        Returns:
            Subscriber if found, None otherwise

        Raises:
            DatabaseError: If the query fails
        """
        return await self._get_subscriber_by("user_id", user_id)

    async def get_subscriber_by_email(self, email: str) -> Optional[Subscriber]:
        return await self._get_subscriber_by("email", email)

    async def get_subscriber_by_customer(self, customer_id: str) -> Optional[Subscriber]:
        return await self._get_subscriber_by("stripe_customer_id", customer_id)

    async def _get_subscriber_by(self, field: str, value: str) -> Optional[Subscriber]:
        try:
            result = (
                self.supabase.table(SUBSCRIBERS_TABLE).select("*").eq(field, value).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get subscriber by {field}: {e}")

        if not result.data:
            return None
        return self._row_to_subscriber(result.data[0])

    async def upsert_subscriber(self, subscriber: Subscriber) -> Subscriber:
        """
        Insert or update a subscriber keyed by email.

        Raises:
            DatabaseError: If the upsert fails
        """
        row = _serialize(subscriber.model_dump())
        row["updated_at"] = utc_now().isoformat()
        try:
            self.supabase.table(SUBSCRIBERS_TABLE).upsert(row, on_conflict="email").execute()
        except Exception as e:
            raise DatabaseError(f"Failed to upsert subscriber {subscriber.email}: {e}")

        logger.info(f"Upserted subscriber {subscriber.email}")
        return subscriber

    async def update_subscriber(self, user_id: str, **fields: Any) -> bool:
        """
        Update subscriber columns by user ID.

        Returns:
            True if a row was updated

        Raises:
            DatabaseError: If the update fails
        """
        return await self._update_subscriber_by("user_id", user_id, fields)

    async def update_subscriber_by_email(self, email: str, **fields: Any) -> bool:
        return await self._update_subscriber_by("email", email, fields)

    async def _update_subscriber_by(self, field: str, value: str, fields: dict[str, Any]) -> bool:
        update_data = _serialize(fields)
        update_data["updated_at"] = utc_now().isoformat()
        try:
            result = (
                self.supabase.table(SUBSCRIBERS_TABLE)
                .update(update_data)
                .eq(field, value)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to update subscriber {value}: {e}")
        return bool(result.data)

    def _row_to_subscriber(self, row: dict[str, Any]) -> Subscriber:
        return Subscriber(
            user_id=row.get("user_id"),
            email=row["email"],
            subscription_tier=row.get("subscription_tier") or "Free",
            subscribed=bool(row.get("subscribed")),
            subscription_end=_parse_datetime(row.get("subscription_end")),
            generations_left=row.get("generations_left"),
            last_generation_date=_parse_datetime(row.get("last_generation_date")),
            stripe_customer_id=row.get("stripe_customer_id"),
        )

    # ==================== GENERATED COURSES ====================

    async def create_course(self, course: GeneratedCourse) -> str:
        """
        Record a generated course in the user's history.

        Args:
            course: Course to persist (its id is the job id)

        Returns:
            The id of the created course

        Raises:
            DatabaseError: If creation fails
        """
        row = _serialize(course.model_dump(mode="json"))
        try:
            result = self.supabase.table(COURSES_TABLE).insert(row).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to create course: {e}")

        if not result.data:
            raise DatabaseError("Failed to insert course into database")

        logger.info(f"Created course {course.id} for user {course.user_id}")
        return course.id

    async def update_course(
        self,
        course_id: str,
        status: str,
        sections: Optional[List[Section]] = None,
    ) -> bool:
        """
        Update a course's status and, when given, its sections.

        Raises:
            DatabaseError: If the update fails
        """
        update_data: dict[str, Any] = {"status": status}
        if sections is not None:
            update_data["sections"] = [s.model_dump() for s in sections]
        try:
            result = (
                self.supabase.table(COURSES_TABLE)
                .update(update_data)
                .eq("id", course_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to update course {course_id}: {e}")
        return bool(result.data)

    async def get_course(self, course_id: str) -> Optional[GeneratedCourse]:
        try:
            result = self.supabase.table(COURSES_TABLE).select("*").eq("id", course_id).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to get course {course_id}: {e}")

        if not result.data:
            return None
        return GeneratedCourse.model_validate(result.data[0])

    async def list_courses(self, user_id: str, now: Optional[datetime] = None) -> List[GeneratedCourse]:
        """
        List a user's unexpired courses, newest first.

        Raises:
            DatabaseError: If the query fails
        """
        now = now or utc_now()
        try:
            result = (
                self.supabase.table(COURSES_TABLE).select("*").eq("user_id", user_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to list courses for {user_id}: {e}")

        courses = [GeneratedCourse.model_validate(row) for row in result.data or []]
        courses = [c for c in courses if c.expires_at is None or c.expires_at > now]
        return sorted(courses, key=lambda c: c.created_at, reverse=True)


def create_database_service() -> DatabaseService:
    """Create DatabaseService with Supabase client."""
    from supabase import create_client

    from automator.config import get_settings

    settings = get_settings()
    supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return DatabaseService(supabase_client)
