"""Pytest fixtures for Automator tests."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

import pytest

from automator.config import Settings
from automator.models.course import CourseFormData
from automator.services.job_store import JobStore

EXAMPLE_FORM = {
    "subject": "Leadership basics",
    "level": "Intermediate",
    "audience": "Managers",
    "duration": "1 day",
    "tone": "Professional",
    "language": "english",
    "context": "Corporate",
}

HEADINGS_RESPONSE = """# Leadership basics

## Lesson Plan
Objectives and the structure of the day.

## Slides
Slide 1: What leadership is.

## Trainer Notes
Keep the group discussion short.

## Exercises
Exercise 1: Role play a feedback conversation.
"""

# Reply in the JSON shape the course prompt asks Claude for
JSON_SECTIONS = [
    {
        "type": "lesson-plan",
        "title": "Plan and objectives",
        "content": "Objectives and structure of the day.",
        "categories": [
            {"name": "Learning objectives", "content": "1. Define leadership."},
            {"name": "Course structure", "content": "09:00 Opening"},
        ],
    },
    {
        "type": "slides",
        "title": "Presentation",
        "content": "",
        "categories": [
            {"name": "Slide 1", "content": "What leadership is"},
            {"name": "Presentation notes", "content": "Open with a question."},
        ],
    },
    {
        "type": "trainer-notes",
        "title": "Trainer guide",
        "content": "Facilitation tips.",
        "categories": [{"name": "Timing", "content": "Keep the group discussion short."}],
    },
    {
        "type": "exercises",
        "title": "Support materials",
        "content": "",
        "categories": [
            {"name": "Handout", "content": "Feedback model summary."},
            {"name": "Exercise 1", "content": "Role play a feedback conversation."},
        ],
    },
]

JSON_RESPONSE = (
    "Here are the materials.\n```json\n"
    + json.dumps(
        {
            "sections": JSON_SECTIONS,
            "metadata": {"subject": "Leadership basics", "level": "Intermediate"},
        },
        ensure_ascii=False,
    )
    + "\n```\n"
)


class FakeClock:
    """Settable UTC clock passed wherever a ``clock`` callable is accepted."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeBackend:
    """
    Stand-in for ClaudeBackend.

    Each call to ``generate`` consumes the next scripted outcome: a string is
    returned, an exception is raised. The last outcome repeats.
    """

    def __init__(self, *outcomes: Union[str, Exception]) -> None:
        self.outcomes = list(outcomes) or [HEADINGS_RESPONSE]
        self.calls: List[Dict[str, str]] = []

    async def generate(self, system: str, prompt: str) -> str:
        self.calls.append({"system": system, "prompt": prompt})
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def check_credentials(self) -> Dict[str, Any]:
        return {"ok": True, "model": "fake-model"}


# ==================== Mock Supabase ====================


class MockSupabaseResponse:
    """Mock Supabase response object."""

    def __init__(self, data: List[Dict[str, Any]]) -> None:
        self.data = data


class MockSupabaseTable:
    """Mock Supabase table with in-memory storage."""

    pk_map = {"subscribers": "email", "generated_courses": "id"}

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._table_name = ""
        self._reset()

    def _reset(self) -> None:
        self._filters: Dict[str, Any] = {}
        self._operation: Optional[str] = None
        self._payload: Optional[Dict[str, Any]] = None

    @property
    def _pk(self) -> str:
        return self.pk_map.get(self._table_name, "id")

    def select(self, columns: str = "*") -> "MockSupabaseTable":
        self._operation = "select"
        return self

    def insert(self, data: Dict[str, Any]) -> "MockSupabaseTable":
        self._operation = "insert"
        self._payload = data
        return self

    def upsert(self, data: Dict[str, Any], on_conflict: str = "") -> "MockSupabaseTable":
        self._operation = "upsert"
        self._payload = data
        return self

    def update(self, data: Dict[str, Any]) -> "MockSupabaseTable":
        self._operation = "update"
        self._payload = data
        return self

    def eq(self, column: str, value: Any) -> "MockSupabaseTable":
        self._filters[column] = value
        return self

    def _matches_filters(self, record: Dict[str, Any]) -> bool:
        return all(record.get(column) == value for column, value in self._filters.items())

    def execute(self) -> MockSupabaseResponse:
        try:
            if self._operation in ("insert", "upsert"):
                key = self._payload[self._pk]
                if self._operation == "insert" and key in self._data:
                    raise ValueError(f"duplicate key {key}")
                record = {**self._data.get(key, {}), **self._payload}
                self._data[key] = record
                return MockSupabaseResponse([record])

            matching = [r for r in self._data.values() if self._matches_filters(r)]
            if self._operation == "update":
                for record in matching:
                    record.update(self._payload)
            return MockSupabaseResponse([dict(r) for r in matching])
        finally:
            self._reset()


class MockAuthUser:
    def __init__(self, id: str, email: Optional[str]) -> None:
        self.id = id
        self.email = email


class MockAuthResult:
    def __init__(self, user: Optional[MockAuthUser]) -> None:
        self.user = user


class MockSupabaseAuth:
    """Resolves tokens registered in ``users``."""

    def __init__(self) -> None:
        self.users: Dict[str, MockAuthUser] = {}

    def get_user(self, token: str) -> MockAuthResult:
        if token not in self.users:
            raise ValueError("invalid JWT")
        return MockAuthResult(self.users[token])


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self) -> None:
        self._tables: Dict[str, MockSupabaseTable] = {}
        self.auth = MockSupabaseAuth()

    def table(self, name: str) -> MockSupabaseTable:
        """Get or create a mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        table = self._tables[name]
        table._table_name = name
        return table

    def get_all_records(self, table_name: str) -> List[Dict[str, Any]]:
        """Get all records from a table (for testing)."""
        if table_name in self._tables:
            return list(self._tables[table_name]._data.values())
        return []


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and .env, with instant retries."""
    values: Dict[str, Any] = {
        "CLAUDE_API_KEY": overrides.pop("claude_api_key", "test-key"),
        "generation_retry_delay_seconds": 0.0,
        "supabase_url": "",
        "supabase_key": "",
        "stripe_secret_key": "",
        "stripe_webhook_secret": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ==================== Fixtures ====================


@pytest.fixture
def sample_form_data() -> dict:
    """Form from the example scenario."""
    return dict(EXAMPLE_FORM)


@pytest.fixture
def course_form() -> CourseFormData:
    return CourseFormData(**EXAMPLE_FORM)


@pytest.fixture
def romanian_form() -> CourseFormData:
    return CourseFormData(
        subject="Comunicare eficientă",
        level="Începător",
        audience="Angajați",
        duration="2 zile",
        tone="Socratic",
        language="română",
        context="Corporativ",
        generation_type="Complet",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> JobStore:
    return JobStore(clock=clock)


@pytest.fixture
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    return MockSupabaseClient()
