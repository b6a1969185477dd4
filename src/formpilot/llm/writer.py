from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from openai import OpenAI

from formpilot.config import Settings
from formpilot.llm.prompts import COVER_LETTER_INSTRUCTIONS, COVER_LETTER_PROMPT
from formpilot.types import ApplicantProfile, JobDetails

logger = logging.getLogger(__name__)


class TextWriter(Protocol):
    async def cover_letter(self, profile: ApplicantProfile, job: JobDetails) -> str: ...


class CoverLetterWriter:
    """Motivation text for the form: the applicant's own letter, a drafted one, or a template.

    Drafting goes through the OpenAI responses API. Servers that only speak
    chat.completions answer 404 there, and the draft is retried on that path.
    """

    def __init__(self, settings: Settings, client: Any | None = None):
        self.settings = settings
        if client is None and settings.openai_api_key:
            client = OpenAI(
                base_url=settings.openai_base_url,
                api_key=settings.openai_api_key,
                timeout=float(settings.openai_timeout_sec),
            )
        self.client = client

    async def cover_letter(self, profile: ApplicantProfile, job: JobDetails) -> str:
        if profile.cover_letter_text.strip():
            return profile.cover_letter_text.strip()

        if self.client is not None:
            prompt = COVER_LETTER_PROMPT.format(
                profile_summary=profile_summary(profile),
                job_title=job.title or "the open role",
                job_company=job.company or "the company",
                job_description=job.description[:800],
            )
            try:
                drafted = await asyncio.to_thread(self.draft, prompt)
                if drafted.strip():
                    return drafted.strip()
            except Exception as exc:
                logger.warning(
                    "Cover letter drafting failed model=%s error=%s", self.settings.openai_model_writer, exc
                )

        return heuristic_cover_letter(profile, job)

    def draft(self, prompt: str) -> str:
        model = self.settings.openai_model_writer
        try:
            response = self.client.responses.create(
                model=model,
                instructions=COVER_LETTER_INSTRUCTIONS,
                input=prompt,
            )
            return getattr(response, "output_text", "") or ""
        except Exception as exc:
            if not _responses_unsupported(exc):
                raise
            logger.warning("Responses API unavailable model=%s; drafting via chat.completions (%s)", model, exc)

        response = self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": COVER_LETTER_INSTRUCTIONS},
                {"role": "user", "content": prompt},
            ],
        )
        return _chat_text(response)


def profile_summary(profile: ApplicantProfile) -> str:
    lines = [f"Name: {profile.display_name}"]
    if profile.experience:
        role = profile.experience[0]
        lines.append(f"Recent role: {role.title} at {role.company}".strip())
    if profile.years_of_experience:
        lines.append(f"Years of experience: {profile.years_of_experience}")
    if profile.education:
        school = profile.education[0]
        lines.append(f"Education: {school.degree} {school.major} - {school.school}".strip())
    return "\n".join(lines)


def heuristic_cover_letter(profile: ApplicantProfile, job: JobDetails) -> str:
    role = job.title or "this role"
    company = job.company or "your team"
    background = ""
    if profile.experience:
        latest = profile.experience[0]
        background = f" In my recent work as {latest.title} at {latest.company}, I delivered results across cross-functional teams."

    return "\n".join(
        [
            f"Dear Hiring Team at {company},",
            "",
            f"I am excited to apply for {role}.{background}",
            "My background aligns with your requirements, and I can contribute immediately.",
            "",
            "Sincerely,",
            profile.display_name,
        ]
    )


def _chat_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", "") if message is not None else ""
    return content if isinstance(content, str) else str(content or "")


def _responses_unsupported(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) == 404:
        return True
    message = str(exc).strip().lower()
    return bool(message) and ("not found" in message or "404" in message)
