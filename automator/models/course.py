"""Course-related Pydantic models."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SectionType = Literal["lesson-plan", "slides", "trainer-notes", "exercises"]

SECTION_TYPES: tuple[SectionType, ...] = (
    "lesson-plan",
    "slides",
    "trainer-notes",
    "exercises",
)

ROMANIAN_LANGUAGE_NAMES = {"română", "romana", "romanian", "ro"}


class CourseFormData(BaseModel):
    """Generation parameters submitted from the course form."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subject: str = Field(min_length=1)
    level: str = ""
    audience: str = ""
    duration: str = ""
    tone: str = ""
    language: str = "english"
    context: str = ""
    generation_type: Optional[Literal["Preview", "Complet"]] = Field(
        default=None, alias="generationType"
    )

    @field_validator("subject")
    @classmethod
    def not_whitespace(cls, v: str) -> str:
        """Validate that subject is not only whitespace."""
        if not v.strip():
            raise ValueError("field cannot be only whitespace")
        return v.strip()

    @property
    def is_romanian(self) -> bool:
        return self.language.strip().lower() in ROMANIAN_LANGUAGE_NAMES

    @property
    def is_preview(self) -> bool:
        return self.generation_type != "Complet"

    @property
    def locale(self) -> Literal["ro", "en"]:
        return "ro" if self.is_romanian else "en"


class Section(BaseModel):
    """One generated material unit."""

    type: SectionType
    title: str
    content: str


class CourseContent(BaseModel):
    """Generated content payload attached to a completed job."""

    sections: list[Section] = Field(default_factory=list)
