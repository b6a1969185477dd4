from __future__ import annotations

import re
from datetime import date, timedelta
from typing import TYPE_CHECKING

from formpilot.browser.selectors import PROFILE_KEY_EXCLUSIONS
from formpilot.types import ApplicantProfile, FieldCategory

if TYPE_CHECKING:
    from formpilot.browser.classifier import DetectedField

GRADUATION_PLACEHOLDER = "2020-05-15"
START_DATE_OFFSET_DAYS = 14

# Sensitive yes/no questions resolve here before the profile is consulted.
SAFE_DEFAULTS: dict[FieldCategory, tuple[tuple[tuple[str, ...], str], ...]] = {
    "radio": (
        (("criminal", "convicted", "felony", "misdemeanor"), "No"),
        (("sponsorship", "sponsor", "visa"), "No"),
    ),
    "checkbox": (
        (("marketing", "newsletter", "promotional"), "false"),
    ),
}

CATEGORY_FALLBACKS: dict[FieldCategory, tuple[tuple[tuple[str, ...], str], ...]] = {
    "radio": (
        (("criminal", "convicted", "background check", "felony"), "No"),
        (("sponsorship", "sponsor", "visa"), "No"),
        (("authorized", "authorised", "authorization", "eligible", "legally", "legal right"), "Yes"),
        (("previously employed", "employed by", "worked for", "worked at", "relationship", "relative"), "No"),
        (("willing", "available", "interested", "able to", "relocate"), "Yes"),
    ),
    "checkbox": (
        (("marketing", "newsletter", "promotional", "subscribe"), "false"),
        (("agree", "consent", "accept", "terms", "acknowledge", "certify", "privacy"), "true"),
    ),
    "select": (
        (("veteran",), "Not a veteran"),
        (("disability",), "No"),
        (("gender", "race", "ethnicity", "hispanic", "diversity"), "Prefer not to say"),
        (("country",), "United States"),
        (("degree", "education"), "Bachelor's Degree"),
        (("experience",), "3-5 years"),
    ),
}

CATEGORY_DEFAULTS: dict[FieldCategory, str] = {
    "radio": "No",
    "checkbox": "true",
}

MOTIVATION_KEYWORDS = ("why", "interest", "motivation", "cover letter", "tell us about yourself")

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_WORD = re.compile(r"[^a-z0-9?*]+")


def normalize_context(text: str) -> str:
    """Lowercase, split camelCase and collapse punctuation to single spaces."""
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text or "")
    return _NON_WORD.sub(" ", text.lower()).strip()


def build_profile_mapping(profile: ApplicantProfile, ai_text: str = "") -> dict[str, str]:
    """Flatten a profile into the ordered key/value view the resolver matches against.

    Key order is match priority. Keys with empty values are left out so a field can
    fall through to its category default instead of being written blank.
    """

    education = profile.education[0] if profile.education else None
    current = next((item for item in profile.experience if item.current), None)
    if current is None and profile.experience:
        current = profile.experience[0]

    mapping: dict[str, str] = {
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "full_name": profile.display_name,
        "email": profile.email,
        "phone": profile.phone,
        "address": profile.address,
        "city": profile.city,
        "state": profile.state,
        "zip": profile.zip_code,
        "postal_code": profile.zip_code,
        "country": profile.country,
        "current_title": current.title if current else "",
        "current_company": current.company if current else "",
        "years_of_experience": profile.years_of_experience,
        "salary": profile.desired_salary,
        "degree": education.degree if education else "",
        "university": education.school if education else "",
        "school": education.school if education else "",
        "major": education.major if education else "",
        "graduation_year": education.graduation_year if education else "",
        "gpa": education.gpa if education else "",
        "work_authorization": profile.work_authorization.replace("_", " "),
        "sponsorship": "Yes" if profile.requires_sponsorship else "No",
        "visa_status": profile.visa_status,
        "start_date": profile.start_date,
        "linkedin": profile.linkedin_url,
        "github": profile.github_url,
        "website": profile.website_url,
        "portfolio": profile.portfolio_url,
        "gender": profile.gender,
        "ethnicity": profile.ethnicity,
        "veteran": profile.veteran_status,
        "disability": profile.disability_status,
    }
    for question, answer in profile.custom_responses.items():
        key = normalize_context(question).replace(" ", "_")
        if key and key not in mapping:
            mapping[key] = answer

    cover_letter = profile.cover_letter_text or ai_text
    mapping["cover_letter"] = cover_letter
    return {key: value.strip() for key, value in mapping.items() if value and value.strip()}


class ValueResolver:
    """Decides the value to write into a detected field.

    The result depends only on the field, the profile mapping and the `today` date
    fixed at construction, so repeated calls are stable across retries.
    """

    def __init__(self, today: date | None = None):
        self.today = today or date.today()

    def resolve_value(self, field: DetectedField, mapping: dict[str, str]) -> str:
        raw = f"{field.label} {field.identifier}".lower()
        context = normalize_context(f"{field.label} {field.identifier}")

        safe = _first_keyword_match(SAFE_DEFAULTS.get(field.category, ()), context)
        if safe is not None:
            return safe

        for key, value in mapping.items():
            if _matches_key(key, (raw, context)):
                return value

        return self._fallback(field.category, context, mapping)

    def default_value(self, category: FieldCategory, text: str) -> str:
        """Category default seeded only by label/identifier text."""
        context = normalize_context(text)
        safe = _first_keyword_match(SAFE_DEFAULTS.get(category, ()), context)
        if safe is not None:
            return safe
        return self._fallback(category, context, {})

    def _fallback(self, category: FieldCategory, context: str, mapping: dict[str, str]) -> str:
        if category == "date":
            if "start" in context or "available" in context:
                return (self.today + timedelta(days=START_DATE_OFFSET_DAYS)).isoformat()
            if "graduation" in context:
                return GRADUATION_PLACEHOLDER
            return ""

        if category == "text":
            if any(keyword in context for keyword in MOTIVATION_KEYWORDS):
                return mapping.get("cover_letter", "")
            return ""

        matched = _first_keyword_match(CATEGORY_FALLBACKS.get(category, ()), context)
        if matched is not None:
            return matched
        return CATEGORY_DEFAULTS.get(category, "")


def _first_keyword_match(
    rules: tuple[tuple[tuple[str, ...], str], ...],
    context: str,
) -> str | None:
    for keywords, value in rules:
        if any(keyword in context for keyword in keywords):
            return value
    return None


def _matches_key(key: str, contexts: tuple[str, ...]) -> bool:
    """Substring match of the key (`_` as space, then raw) against the field text.

    The raw lowercase text keeps concatenated words such as "linkedin" or
    "zipcode" intact; the normalized text covers camelCase identifiers.
    """

    spaced = key.replace("_", " ")
    for context in contexts:
        for word in PROFILE_KEY_EXCLUSIONS.get(key, ()):
            context = context.replace(word, " ")
        if spaced in context or key in context:
            return True
    return False
