from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from formpilot.config import Settings
from formpilot.llm.writer import CoverLetterWriter, heuristic_cover_letter, profile_summary
from formpilot.types import JobDetails

JOB = JobDetails(url="https://example.com/jobs/1", title="Backend Engineer", company="Acme Corp")


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeCreateAPI:
    def __init__(self, fn):
        self._fn = fn
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, *, responses_fn, chat_fn=None):
        self.responses = FakeCreateAPI(responses_fn)
        self.chat = SimpleNamespace(completions=FakeCreateAPI(chat_fn or _unexpected))


def _unexpected(**kwargs):
    raise AssertionError("chat.completions should not be called")


def _chat_payload(content: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _writer(client: FakeClient) -> CoverLetterWriter:
    return CoverLetterWriter(Settings(openai_api_key=""), client=client)


def test_profile_text_wins_over_drafting(profile) -> None:
    client = FakeClient(responses_fn=lambda **kwargs: SimpleNamespace(output_text="generated"))
    custom = profile.model_copy(update={"cover_letter_text": "  My own letter.  "})

    assert asyncio.run(_writer(client).cover_letter(custom, JOB)) == "My own letter."
    assert client.responses.calls == []


def test_drafted_text_uses_job_context(profile) -> None:
    client = FakeClient(responses_fn=lambda **kwargs: SimpleNamespace(output_text="Dear Acme team, ..."))

    letter = asyncio.run(_writer(client).cover_letter(profile, JOB))

    assert letter == "Dear Acme team, ..."
    prompt = client.responses.calls[0]["input"]
    assert "Backend Engineer" in prompt
    assert "Acme Corp" in prompt
    assert client.responses.calls[0]["instructions"]


def test_draft_falls_back_to_chat_when_responses_missing() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    client = FakeClient(responses_fn=responses_fn, chat_fn=lambda **kwargs: _chat_payload("CHAT_OK"))

    assert _writer(client).draft("ping") == "CHAT_OK"
    messages = client.chat.completions.calls[0]["messages"]
    assert [message["role"] for message in messages] == ["system", "user"]


def test_draft_does_not_mask_other_errors() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    client = FakeClient(responses_fn=responses_fn)

    with pytest.raises(DummyAPIError, match="rate limited"):
        _writer(client).draft("ping")


def test_drafting_failure_falls_back_to_template(profile) -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    def chat_fn(**kwargs):
        raise RuntimeError("chat path failed")

    letter = asyncio.run(_writer(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)).cover_letter(profile, JOB))

    assert letter == heuristic_cover_letter(profile, JOB)
    assert letter.startswith("Dear Hiring Team at Acme Corp,")
    assert letter.endswith("Ada Lovelace")


def test_api_key_controls_client() -> None:
    assert CoverLetterWriter(Settings(openai_api_key="")).client is None
    assert CoverLetterWriter(Settings(openai_api_key="sk-test", openai_timeout_sec=7)).client is not None


def test_profile_summary_lists_recent_role(profile) -> None:
    summary = profile_summary(profile)

    assert "Name: Ada Lovelace" in summary
    assert "Recent role: Staff Engineer at Analytical Engines" in summary
