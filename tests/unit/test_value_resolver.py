from __future__ import annotations

from datetime import date

from formpilot.browser.classifier import DetectedField
from formpilot.browser.resolver import (
    GRADUATION_PLACEHOLDER,
    ValueResolver,
    build_profile_mapping,
    normalize_context,
)
from formpilot.types import ApplicantProfile


def _field(category: str, label: str, identifier: str = "", required: bool = False) -> DetectedField:
    return DetectedField(
        element=None,
        category=category,
        label=label,
        identifier=identifier,
        required=required,
        default_value="",
        confidence=0.8,
    )


def test_normalize_context_splits_camel_case_and_punctuation() -> None:
    assert normalize_context("workAuthorization__Status") == "work authorization status"
    assert normalize_context("Are you 18+?") == "are you 18 ?"


def test_mapping_omits_empty_values_and_keeps_order(profile: ApplicantProfile) -> None:
    mapping = build_profile_mapping(profile)

    keys = list(mapping)
    assert keys[:5] == ["first_name", "last_name", "full_name", "email", "phone"]
    assert mapping["full_name"] == "Ada Lovelace"
    assert mapping["current_title"] == "Staff Engineer"
    assert mapping["university"] == "University of London"
    assert mapping["sponsorship"] == "No"
    assert "address" not in mapping
    assert "github" not in mapping
    assert "cover_letter" not in mapping


def test_mapping_includes_custom_responses_and_ai_text(profile: ApplicantProfile) -> None:
    custom = profile.model_copy(update={"custom_responses": {"How did you hear about us?": "Referral"}})

    mapping = build_profile_mapping(custom, ai_text="I would love to join.")

    assert mapping["how_did_you_hear_about_us?"] == "Referral"
    assert mapping["cover_letter"] == "I would love to join."


def test_email_label_resolves_by_substring(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    mapping = build_profile_mapping(profile)

    value = resolver.resolve_value(_field("text", "Email Address", "contact_email"), mapping)

    assert value == "a@b.com"


def test_key_match_skips_excluded_words(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    mapping = build_profile_mapping(profile)

    assert resolver.resolve_value(_field("text", "State", "addressState"), mapping) == "CA"
    assert resolver.resolve_value(_field("text", "Statement of purpose", "statement"), mapping) == ""
    assert resolver.resolve_value(_field("select", "Ethnicity", "ethnicity"), mapping) == "Prefer not to say"


def test_keys_match_inside_concatenated_words(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    mapping = build_profile_mapping(profile)

    assert resolver.resolve_value(_field("text", "LinkedIn Profile", "urls[LinkedIn]"), mapping) == (
        "https://linkedin.com/in/ada"
    )
    assert resolver.resolve_value(_field("text", "", "zipcode"), mapping) == "94105"
    assert resolver.resolve_value(_field("text", "", "phonenumber"), mapping) == "555-0100"
    assert resolver.resolve_value(_field("text", "", "firstName"), mapping) == "Ada"


def test_resolution_is_pure(profile: ApplicantProfile) -> None:
    resolver = ValueResolver(today=date(2024, 1, 1))
    mapping = build_profile_mapping(profile)
    field = _field("date", "Earliest start date", "start")

    first = resolver.resolve_value(field, mapping)
    second = resolver.resolve_value(field, dict(mapping))

    assert first == second


def test_authorization_radio_resolves_yes(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    field = _field("radio", "Are you legally authorized to work?", "work_auth")

    assert resolver.resolve_value(field, build_profile_mapping(profile)) == "Yes"


def test_sensitive_questions_use_safe_defaults(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    sponsored = profile.model_copy(update={"requires_sponsorship": True})
    mapping = build_profile_mapping(sponsored)

    assert resolver.resolve_value(_field("radio", "Have you been convicted of a felony?", "criminal"), mapping) == "No"
    assert resolver.resolve_value(_field("radio", "Will you require visa sponsorship?", "sponsorship"), mapping) == "No"
    assert resolver.resolve_value(_field("checkbox", "Subscribe to our newsletter", "newsletter"), mapping) == "false"


def test_category_fallbacks(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    mapping = build_profile_mapping(profile)

    assert resolver.resolve_value(_field("checkbox", "I agree to the terms", "terms"), mapping) == "true"
    assert resolver.resolve_value(_field("select", "Veteran status", "vet"), mapping) == "Not a veteran"
    assert resolver.resolve_value(_field("select", "Gender identity", "gender_id"), mapping) == "Prefer not to say"
    assert resolver.resolve_value(_field("radio", "Pick one", "misc"), mapping) == "No"
    assert resolver.resolve_value(_field("text", "Favourite colour", "colour"), mapping) == ""


def test_date_fallbacks_are_relative_to_today(profile: ApplicantProfile) -> None:
    resolver = ValueResolver(today=date(2024, 3, 1))
    mapping = {}

    assert resolver.resolve_value(_field("date", "Date available", "avail"), mapping) == "2024-03-15"
    assert resolver.resolve_value(_field("date", "Graduation", "grad"), mapping) == GRADUATION_PLACEHOLDER
    assert resolver.resolve_value(_field("date", "Date of birth", "dob"), mapping) == ""


def test_motivation_question_uses_cover_letter(profile: ApplicantProfile) -> None:
    resolver = ValueResolver()
    mapping = build_profile_mapping(profile, ai_text="Dear team")

    value = resolver.resolve_value(_field("text", "Why do you want to work here?", "q_why"), mapping)

    assert value == "Dear team"


def test_default_value_uses_only_field_text() -> None:
    resolver = ValueResolver()

    assert resolver.default_value("checkbox", "Send me marketing emails") == "false"
    assert resolver.default_value("radio", "Are you willing to relocate?") == "Yes"
    assert resolver.default_value("text", "First name") == ""
