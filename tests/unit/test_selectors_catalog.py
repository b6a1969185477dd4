from __future__ import annotations

from formpilot.browser.selectors import (
    CATEGORY_EXCLUDED_INPUT_TYPES,
    CONFIDENCE_KEYWORDS,
    FIELD_SELECTORS,
    NEVER_CLAIMED_INPUT_TYPES,
)
from formpilot.types import FIELD_CATEGORIES


def test_every_category_has_ordered_selectors() -> None:
    for category in FIELD_CATEGORIES:
        selectors = FIELD_SELECTORS[category]
        assert selectors
        assert len(selectors) == len(set(selectors)), category


def test_generic_selector_comes_first() -> None:
    assert FIELD_SELECTORS["select"][0] == "select"
    assert FIELD_SELECTORS["radio"][0] == 'input[type="radio"]'
    assert FIELD_SELECTORS["checkbox"][0] == 'input[type="checkbox"]'
    assert FIELD_SELECTORS["file"][0] == 'input[type="file"]'


def test_no_category_claims_hidden_or_button_inputs() -> None:
    for category in FIELD_CATEGORIES:
        assert NEVER_CLAIMED_INPUT_TYPES <= CATEGORY_EXCLUDED_INPUT_TYPES[category]


def test_choice_inputs_only_belong_to_their_own_category() -> None:
    assert "checkbox" in CATEGORY_EXCLUDED_INPUT_TYPES["text"]
    assert "radio" in CATEGORY_EXCLUDED_INPUT_TYPES["checkbox"]
    assert "radio" not in CATEGORY_EXCLUDED_INPUT_TYPES["radio"]
    assert "date" not in CATEGORY_EXCLUDED_INPUT_TYPES["date"]


def test_confidence_keywords_cover_all_categories() -> None:
    assert set(CONFIDENCE_KEYWORDS) == set(FIELD_CATEGORIES)
    for rules in CONFIDENCE_KEYWORDS.values():
        assert all(0 < boost <= 0.3 for _, boost in rules)
