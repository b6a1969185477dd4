from __future__ import annotations

COVER_LETTER_INSTRUCTIONS = (
    "You write short cover letters that are pasted into job application forms. "
    "Stick to the facts you are given."
)

COVER_LETTER_PROMPT = """
Write a concise cover letter (under 250 words) for the applicant below.
Use plain text paragraphs only; no markdown, no placeholders in brackets.
Do not invent employers, degrees or credentials that are not listed.

Applicant:
{profile_summary}

Job:
Title: {job_title}
Company: {job_company}
Description excerpt:
{job_description}
""".strip()
