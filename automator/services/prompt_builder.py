"""Prompt rendering for course generation requests."""

import math
from datetime import datetime, timedelta
from typing import Optional

from automator.models.course import CourseFormData
from automator.models.job import utc_now

# Generated material stays available for 72 hours in the returned metadata
MATERIAL_EXPIRY = timedelta(hours=72)

SYSTEM_PROMPT = (
    "You are an experienced instructional designer who writes complete, "
    "ready-to-deliver training materials for physical and academic courses. "
    "Always answer with a single JSON object and nothing else."
)

COURSE_PROMPT = """Generate course materials with the following configuration.

- Language: {language}
- Subject: {subject}
- Level: {level}
- Target audience: {audience}
- Duration: {duration}
- Tone: {tone}
- Context: {context}
- Generation type: {generation_type}

Write every text in the configured language. Produce exactly four sections,
one per type, in this order:

1. "lesson-plan": learning objectives (5-10 specific, measurable items) and the course structure.
2. "slides": the presentation, slide by slide, with presentation notes for each slide.
3. "trainer-notes": the trainer guide with timing, facilitation tips and expected answers.
4. "exercises": participant handouts and practical exercises.

Respond ONLY with a JSON object of this shape:

{{
  "sections": [
    {{
      "type": "<lesson-plan | slides | trainer-notes | exercises>",
      "title": "<section title>",
      "content": "<short description of the section>",
      "categories": [
        {{"name": "<category name>", "content": "<detailed text>"}}
      ]
    }}
  ],
  "metadata": {{
    "subject": "{subject}",
    "level": "{level}",
    "audience": "{audience}",
    "duration": "{duration}",
    "createdAt": "{created_at}",
    "expiresAt": "{expires_at}"
  }}
}}
"""


def build_prompt(form_data: CourseFormData, now: Optional[datetime] = None) -> str:
    """Render the user prompt for a course form."""
    now = now or utc_now()
    return COURSE_PROMPT.format(
        language=form_data.language,
        subject=form_data.subject,
        level=form_data.level,
        audience=form_data.audience,
        duration=form_data.duration,
        tone=form_data.tone,
        context=form_data.context,
        generation_type=form_data.generation_type or "Preview",
        created_at=now.isoformat(),
        expires_at=(now + MATERIAL_EXPIRY).isoformat(),
    )


def estimate_request_tokens(system: str, prompt: str, max_output_tokens: int) -> int:
    """
    Rough token estimate for a request.

    Counts four characters per input token, plus the full output allowance.
    """
    return math.ceil(len(system + prompt) / 4) + max_output_tokens
