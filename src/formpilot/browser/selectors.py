"""Selector catalog.

Declarative locator tables shared by the field classifier, the browser driver and
the job-detail extractor. Everything here is immutable module-level data; extend
the tables rather than adding branches to the code that reads them.

Field patterns are plain CSS so they work both in the browser and against parsed
HTML. Page-level indicators may use Playwright text pseudo-classes.
"""

from __future__ import annotations

from formpilot.types import FieldCategory

FIELD_SELECTORS: dict[FieldCategory, tuple[str, ...]] = {
    "text": (
        'input[type="text"]',
        'input[type="email"]',
        'input[type="tel"]',
        'input[type="url"]',
        'input[type="number"]',
        "textarea",
        'input[name*="name" i]',
        'input[name*="address" i]',
        'input[name*="city" i]',
        'input[name*="state" i]',
        'input[name*="zip" i]',
        'input[name*="postal" i]',
        'input[name*="phone" i]',
        'input[name*="email" i]',
        'input[name*="website" i]',
        'input[name*="linkedin" i]',
        'input[name*="portfolio" i]',
        'input[name*="github" i]',
        'input[name*="salary" i]',
        'input[name*="compensation" i]',
        'input[name*="title" i]',
        'input[name*="company" i]',
        'input[name*="school" i]',
        'input[name*="university" i]',
        'input[name*="degree" i]',
        'input[name*="major" i]',
        'input[name*="gpa" i]',
        'input[name*="experience" i]',
        'input[id*="name" i]',
        'input[id*="address" i]',
        'input[id*="contact" i]',
        'input[placeholder*="name" i]',
        'input[placeholder*="phone" i]',
        'input[placeholder*="email" i]',
        'input[data-automation-id*="textInputWidget"]',
        'input[data-automation-id*="formField"]',
        "input[data-automation-id]",
        "input[data-testid]",
        "input[data-qa]",
        'input[class*="form-control" i]',
        'input[class*="text-input" i]',
        'input[id^="job_application_"]',
        'input[name^="job_application["]',
        'input[name^="cards["]',
        'input[class*="application-question"]',
        "input:not([type])",
    ),
    "select": (
        "select",
        'select[name*="country" i]',
        'select[name*="state" i]',
        'select[name*="education" i]',
        'select[name*="degree" i]',
        'select[name*="experience" i]',
        'select[name*="authorization" i]',
        'select[name*="gender" i]',
        'select[name*="race" i]',
        'select[name*="ethnicity" i]',
        'select[name*="veteran" i]',
        'select[name*="disability" i]',
        'select[name*="source" i]',
        '[role="combobox"]',
        '[role="listbox"]',
        '[data-automation-id*="dropdown" i]',
        '[data-testid*="select"]',
        ".select-control",
        'div[class*="select-input"]',
        'div[class*="dropdown-input"]',
    ),
    "radio": (
        'input[type="radio"]',
        'input[type="radio"][name*="authorization" i]',
        'input[type="radio"][name*="eligible" i]',
        'input[type="radio"][name*="sponsorship" i]',
        'input[type="radio"][name*="visa" i]',
        'input[type="radio"][name*="criminal" i]',
        'input[type="radio"][name*="background" i]',
        'input[type="radio"][name*="worked" i]',
        'input[type="radio"][name*="employed" i]',
        'input[type="radio"][name*="relative" i]',
        'input[type="radio"][name*="willing" i]',
        'input[type="radio"][name*="relocate" i]',
        'input[type="radio"][name*="gender" i]',
        'input[type="radio"][name*="veteran" i]',
        'input[type="radio"][name*="disability" i]',
        '[role="radio"]',
    ),
    "checkbox": (
        'input[type="checkbox"]',
        'input[type="checkbox"][name*="agree" i]',
        'input[type="checkbox"][name*="consent" i]',
        'input[type="checkbox"][name*="terms" i]',
        'input[type="checkbox"][name*="privacy" i]',
        'input[type="checkbox"][name*="newsletter" i]',
        'input[type="checkbox"][name*="marketing" i]',
        'input[type="checkbox"][name*="subscribe" i]',
        'input[type="checkbox"][name*="acknowledge" i]',
        'input[type="checkbox"][name*="certify" i]',
        '[role="checkbox"]',
    ),
    "file": (
        'input[type="file"]',
        'input[type="file"][name*="resume" i]',
        'input[type="file"][name*="cv" i]',
        'input[type="file"][name*="cover" i]',
        'input[type="file"][name*="attachment" i]',
        'input[type="file"][name*="document" i]',
        'input[accept*="pdf"]',
        'input[accept*="doc"]',
    ),
    "date": (
        'input[type="date"]',
        'input[type="datetime-local"]',
        'input[type="month"]',
        'input[name*="date" i]',
        'input[name*="start" i]',
        'input[name*="graduation" i]',
        'input[name*="available" i]',
        '[data-automation-id*="date" i]',
        '[data-testid*="date" i]',
        'input[placeholder*="mm/dd/yyyy" i]',
        'input[placeholder*="yyyy-mm-dd" i]',
        ".datepicker",
        ".date-picker",
    ),
}

NEVER_CLAIMED_INPUT_TYPES = frozenset({"hidden", "submit", "button", "reset", "image", "password"})

_CHOICE_TYPES = frozenset({"checkbox", "radio", "file"})
_DATE_TYPES = frozenset({"date", "datetime-local", "month", "week", "time"})

CATEGORY_EXCLUDED_INPUT_TYPES: dict[FieldCategory, frozenset[str]] = {
    "text": NEVER_CLAIMED_INPUT_TYPES | _CHOICE_TYPES | _DATE_TYPES,
    "select": NEVER_CLAIMED_INPUT_TYPES | _CHOICE_TYPES | _DATE_TYPES,
    "radio": NEVER_CLAIMED_INPUT_TYPES | (_CHOICE_TYPES - {"radio"}) | _DATE_TYPES,
    "checkbox": NEVER_CLAIMED_INPUT_TYPES | (_CHOICE_TYPES - {"checkbox"}) | _DATE_TYPES,
    "file": NEVER_CLAIMED_INPUT_TYPES | (_CHOICE_TYPES - {"file"}) | _DATE_TYPES,
    "date": NEVER_CLAIMED_INPUT_TYPES | _CHOICE_TYPES,
}

CONFIDENCE_KEYWORDS: dict[FieldCategory, tuple[tuple[str, float], ...]] = {
    "text": (("name", 0.3), ("email", 0.3), ("phone", 0.3), ("address", 0.2)),
    "select": (("select", 0.2), ("choose", 0.2), ("dropdown", 0.2)),
    "radio": (("yes", 0.3), ("no", 0.3), ("?", 0.2)),
    "checkbox": (("agree", 0.2), ("consent", 0.2), ("terms", 0.2)),
    "file": (("resume", 0.3), ("cv", 0.3), ("cover", 0.3)),
    "date": (("date", 0.2), ("start", 0.2), ("graduation", 0.2)),
}

# Keywords that are matched as whole tokens rather than substrings.
TOKEN_KEYWORDS = frozenset({"yes", "no", "cv"})

# Profile keys are matched as substrings; these words hide a key inside an unrelated term.
PROFILE_KEY_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "state": ("statement", "estate"),
    "city": ("ethnicity", "capacity", "electricity"),
    "major": ("majority",),
}

LOGIN_REQUIRED_SELECTORS: tuple[str, ...] = (
    'input[type="password"]',
    '[data-testid*="login" i]',
    '[data-testid*="sign-in" i]',
    'button:has-text("Sign in")',
    'button:has-text("Log in")',
    'button:has-text("Login")',
    ".login-form",
    ".signin-form",
    "#login",
    "#signin",
)

LOGGED_IN_SELECTORS: tuple[str, ...] = (
    '[data-testid*="profile" i]',
    '[data-testid*="account" i]',
    '[data-testid*="logout" i]',
    'button:has-text("Logout")',
    'button:has-text("Sign out")',
    'a:has-text("Sign out")',
    ".user-profile",
    ".account-menu",
    ".profile-dropdown",
    ".user-avatar",
)

APPLY_BUTTON_SELECTORS: tuple[str, ...] = (
    'a:has-text("Apply for this job")',
    'button:has-text("Apply for this job")',
    'a:has-text("Apply now")',
    'button:has-text("Apply now")',
    '[data-qa="btn-apply"]',
    '[data-automation-id="adventureButton"]',
    'a:has-text("Apply")',
    'button:has-text("Apply")',
)

SUBMIT_BUTTON_SELECTORS: tuple[str, ...] = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Submit application")',
    'button:has-text("Submit")',
    'button:has-text("Send application")',
    '[data-qa="btn-submit"]',
    '[data-testid*="submit" i]',
    'button:has-text("Apply")',
)

CONFIRMATION_SELECTORS: tuple[str, ...] = (
    "text=/thank you for applying/i",
    "text=/application (has been )?(submitted|received)/i",
    ".success-message",
    ".confirmation",
    '[data-qa="msg-submit-success"]',
    '[data-testid*="confirmation" i]',
)

CONFIRMATION_URL_TOKENS: tuple[str, ...] = ("success", "thank", "confirm", "submitted")

JOB_TITLE_SELECTORS: tuple[str, ...] = (
    '[data-qa="job-title"]',
    '[data-automation-id="jobPostingHeader"]',
    ".job-title",
    ".posting-headline h2",
    ".app-title",
    "h1",
)

COMPANY_SELECTORS: tuple[str, ...] = (
    '[data-qa="company-name"]',
    ".company-name",
    ".company",
    '[data-testid*="company" i]',
    'meta[property="og:site_name"]',
)

LOCATION_SELECTORS: tuple[str, ...] = (
    '[data-qa="job-location"]',
    '[data-automation-id="locations"]',
    ".location",
    ".posting-categories .location",
)
