"""Tests for the Claude backend, prompt rendering and placeholder content.

Feature: automator
Property 17: Token-budget guard estimate
"""

import asyncio
import math
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, List

import anthropic
import httpx
import pytest
from hypothesis import given, settings, strategies as st

from automator.models.course import SECTION_TYPES, CourseFormData
from automator.services.claude import ClaudeBackend, is_retryable
from automator.services.placeholder_content import build_placeholder_sections
from automator.services.prompt_builder import (
    SYSTEM_PROMPT,
    build_prompt,
    estimate_request_tokens,
)
from automator.utils.errors import (
    ClaudeAPIError,
    ConfigurationError,
    EmptyResponseError,
    TokenBudgetError,
)
from tests.conftest import EXAMPLE_FORM

FORM = CourseFormData(**EXAMPLE_FORM)
REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def text_block(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


class FakeMessages:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls: List[dict] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def make_backend(outcome: Any) -> ClaudeBackend:
    client = SimpleNamespace(messages=FakeMessages(outcome))
    return ClaudeBackend("sk-ant-test", "claude-test", max_tokens=1000, client=client)


def status_error(status_code: int) -> anthropic.APIStatusError:
    response = httpx.Response(status_code, request=REQUEST)
    return anthropic.APIStatusError("upstream said no", response=response, body=None)


class TestClaudeBackend:
    def test_joins_text_blocks(self) -> None:
        response = SimpleNamespace(
            content=[text_block("## Lesson Plan\n"), SimpleNamespace(type="tool_use"), text_block("Intro")],
            stop_reason="end_turn",
            model="claude-test",
        )
        backend = make_backend(response)

        text = asyncio.run(backend.generate(SYSTEM_PROMPT, "prompt"))

        assert text == "## Lesson Plan\nIntro"
        call = backend.client.messages.calls[0]
        assert call["model"] == "claude-test"
        assert call["max_tokens"] == 1000
        assert call["system"] == SYSTEM_PROMPT
        assert call["messages"] == [{"role": "user", "content": "prompt"}]

    def test_blank_response_raises_empty(self) -> None:
        response = SimpleNamespace(content=[text_block("  ")], stop_reason="max_tokens", model="m")
        with pytest.raises(EmptyResponseError, match="max_tokens"):
            asyncio.run(make_backend(response).generate("s", "p"))

    @pytest.mark.parametrize("status_code", [400, 401, 429, 500, 529])
    def test_status_errors_keep_status_code(self, status_code: int) -> None:
        with pytest.raises(ClaudeAPIError) as exc_info:
            asyncio.run(make_backend(status_error(status_code)).generate("s", "p"))
        assert exc_info.value.status_code == status_code

    def test_connection_error_is_transport_failure(self) -> None:
        error = anthropic.APIConnectionError(request=REQUEST)
        with pytest.raises(ClaudeAPIError) as exc_info:
            asyncio.run(make_backend(error).generate("s", "p"))
        assert exc_info.value.status_code == 0
        assert is_retryable(exc_info.value)

    def test_check_credentials(self) -> None:
        ok = asyncio.run(make_backend(SimpleNamespace(model="claude-test")).check_credentials())
        bad = asyncio.run(make_backend(status_error(401)).check_credentials())

        assert ok == {"ok": True, "model": "claude-test"}
        assert bad["ok"] is False
        assert bad["status_code"] == 401

    def test_key_required(self) -> None:
        with pytest.raises(ConfigurationError):
            ClaudeBackend("", "claude-test")


class TestRetryClassification:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (ClaudeAPIError(0, "reset"), True),
            (ClaudeAPIError(408, "timeout"), True),
            (ClaudeAPIError(429, "rate limited"), True),
            (ClaudeAPIError(500, "server"), True),
            (ClaudeAPIError(529, "overloaded"), True),
            (ClaudeAPIError(400, "bad request"), False),
            (ClaudeAPIError(401, "bad key"), False),
            (EmptyResponseError("empty"), True),
            (TokenBudgetError(300_000, 200_000), False),
            (ValueError("other"), False),
        ],
    )
    def test_is_retryable(self, error: Exception, expected: bool) -> None:
        assert is_retryable(error) is expected


class TestProperty17TokenEstimate:
    """Property 17: Token estimate.

    *For any* prompt, the estimate SHALL be ceil(chars / 4) plus the output
    allowance.
    """

    @settings(max_examples=100)
    @given(
        system=st.text(max_size=200),
        prompt=st.text(max_size=2000),
        max_output=st.integers(min_value=1, max_value=64_000),
    )
    def test_estimate(self, system: str, prompt: str, max_output: int) -> None:
        estimate = estimate_request_tokens(system, prompt, max_output)
        assert estimate == math.ceil(len(system + prompt) / 4) + max_output
        assert estimate >= max_output


class TestPrompt:
    def test_prompt_carries_form_fields(self) -> None:
        now = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

        prompt = build_prompt(FORM, now=now)

        for value in EXAMPLE_FORM.values():
            assert value in prompt
        assert "Generation type: Preview" in prompt
        assert '"expiresAt": "2025-03-13T09:00:00+00:00"' in prompt
        assert '"sections": [' in prompt

    def test_default_request_fits_budget(self) -> None:
        estimate = estimate_request_tokens(SYSTEM_PROMPT, build_prompt(FORM), 16000)
        assert estimate < 200_000


class TestPlaceholders:
    @settings(max_examples=100)
    @given(
        subject=st.text(min_size=1, max_size=50).filter(lambda s: s.strip()),
        language=st.sampled_from(["english", "română"]),
        generation_type=st.sampled_from([None, "Preview", "Complet"]),
    )
    def test_four_typed_sections(self, subject: str, language: str, generation_type: Any) -> None:
        form = CourseFormData(subject=subject, language=language, generation_type=generation_type)

        sections = build_placeholder_sections(form)

        assert [s.type for s in sections] == list(SECTION_TYPES)
        assert all(s.content.strip() for s in sections)
        assert sections == build_placeholder_sections(form)
        assert form.subject in sections[0].content

    def test_preview_note_and_language(self) -> None:
        form = CourseFormData(subject="Comunicare", language="română")
        sections = build_placeholder_sections(form)

        assert sections[0].title == "Plan de lecție"
        assert all(s.content.startswith("Aceasta este o versiune preview") for s in sections)

        complete = build_placeholder_sections(form.model_copy(update={"generation_type": "Complet"}))
        assert not complete[0].content.startswith("Aceasta este")
