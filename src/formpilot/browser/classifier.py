from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from formpilot.browser.resolver import ValueResolver
from formpilot.browser.selectors import (
    CATEGORY_EXCLUDED_INPUT_TYPES,
    CONFIDENCE_KEYWORDS,
    FIELD_SELECTORS,
    TOKEN_KEYWORDS,
)
from formpilot.types import FIELD_CATEGORIES, FieldCategory

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.3

# Collects everything the classifier needs from one element in a single round trip.
DESCRIBE_ELEMENT_JS = """
(el) => {
  const text = (node) => (node ? (node.innerText || node.textContent || '') : '').trim();
  const attr = (name) => el.getAttribute(name) || '';
  const id = attr('id');
  const type = attr('type').toLowerCase();

  let labelFor = '';
  if (id) {
    labelFor = text(document.querySelector(`label[for="${CSS.escape(id)}"]`));
  }

  let siblingLabel = '';
  for (let node = el.nextElementSibling; node; node = node.nextElementSibling) {
    if (node.tagName === 'LABEL') { siblingLabel = text(node); break; }
  }
  const previous = el.previousElementSibling;
  if (!siblingLabel && previous && previous.tagName === 'LABEL') {
    siblingLabel = text(previous);
  }

  const parent = el.parentElement;
  const blockText = text(parent).split('\\n').map((line) => line.trim()).find(Boolean) || '';

  const group = el.closest('fieldset, [role="radiogroup"], [role="group"]');
  let groupCaption = '';
  if (group) {
    groupCaption = text(group.querySelector('legend')) || group.getAttribute('aria-label') || '';
    const labelledBy = group.getAttribute('aria-labelledby');
    if (!groupCaption && labelledBy) {
      groupCaption = text(document.getElementById(labelledBy));
    }
  }
  const scope = (type === 'radio' || type === 'checkbox') ? (group || parent) : parent;

  const path = [];
  for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
    let index = 1;
    for (let sib = node.previousElementSibling; sib; sib = sib.previousElementSibling) {
      if (sib.tagName === node.tagName) index += 1;
    }
    path.unshift(`${node.tagName.toLowerCase()}:${index}`);
  }

  return {
    key: path.join('/'),
    tag: el.tagName.toLowerCase(),
    type,
    name: attr('name'),
    id,
    labelFor,
    enclosingLabel: text(el.closest('label')),
    siblingLabel,
    blockText,
    groupCaption,
    contextText: text(scope),
    placeholder: attr('placeholder'),
    ariaLabel: attr('aria-label'),
    title: attr('title'),
    dataLabel: attr('data-label'),
    dataQa: attr('data-qa'),
    dataTestid: attr('data-testid'),
    dataAutomationId: attr('data-automation-id'),
    required: el.hasAttribute('required'),
    ariaRequired: attr('aria-required').toLowerCase() === 'true',
  };
}
"""

_LABEL_STRATEGIES = (
    "labelFor",
    "enclosingLabel",
    "siblingLabel",
    "blockText",
    "placeholder",
    "ariaLabel",
    "title",
)
_DATA_ATTRIBUTE_STRATEGIES = ("dataLabel", "dataQa", "dataTestid", "dataAutomationId")
_REQUIRED_WORDS = re.compile(r"\b(required|mandatory)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class DetectedField:
    """One classified control on a live page.

    `element` is the driver's locator for the control. It is only valid while the
    page that produced it is open and must not outlive the owning session.
    """

    element: Any
    category: FieldCategory
    label: str
    identifier: str
    required: bool
    default_value: str
    confidence: float
    tag_name: str = "input"

    @property
    def key(self) -> str:
        return self.identifier or self.label

    @property
    def context(self) -> str:
        return f"{self.label} {self.identifier}".strip().lower()


class FieldClassifier:
    def __init__(
        self,
        *,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        selectors: dict[FieldCategory, tuple[str, ...]] | None = None,
        resolver: ValueResolver | None = None,
    ):
        self.threshold = threshold
        self.selectors = selectors or FIELD_SELECTORS
        self.resolver = resolver or ValueResolver()

    async def detect_fields(self, page: Any) -> list[DetectedField]:
        visited: set[str] = set()
        candidates: list[DetectedField] = []

        for category in FIELD_CATEGORIES:
            for selector in self.selectors.get(category, ()):
                try:
                    elements = await page.locator(selector).all()
                except Exception as exc:
                    logger.warning("Selector scan failed category=%s selector=%s error=%s", category, selector, exc)
                    continue

                for element in elements:
                    try:
                        detected = await self._analyze(element, category, visited)
                    except Exception as exc:
                        logger.debug("Skipping element category=%s selector=%s error=%s", category, selector, exc)
                        continue
                    if detected is not None:
                        candidates.append(detected)

        fields = self._deduplicate(candidates)
        fields.sort(key=lambda field: field.confidence, reverse=True)
        logger.info("Detected %s fields (%s candidates)", len(fields), len(candidates))
        return fields

    async def _analyze(
        self,
        element: Any,
        category: FieldCategory,
        visited: set[str],
    ) -> DetectedField | None:
        if not await element.is_visible() or not await element.is_enabled():
            return None

        info: dict[str, Any] = await element.evaluate(DESCRIBE_ELEMENT_JS)
        key = str(info.get("key") or "")
        if key in visited:
            return None
        if str(info.get("type") or "") in CATEGORY_EXCLUDED_INPUT_TYPES[category]:
            return None
        visited.add(key)

        identifier = _clean(info.get("name")) or _clean(info.get("id"))
        label = self._extract_label(info, category)
        required = self._is_required(info)
        confidence = self._score(category, label, identifier, info)
        if confidence < self.threshold:
            logger.debug("Discarding low-confidence field identifier=%s confidence=%.2f", identifier, confidence)
            return None

        default_value = self.resolver.default_value(category, f"{label} {identifier}")
        return DetectedField(
            element=element,
            category=category,
            label=label,
            identifier=identifier,
            required=required,
            default_value=default_value,
            confidence=confidence,
            tag_name=str(info.get("tag") or "input"),
        )

    @staticmethod
    def _extract_label(info: dict[str, Any], category: FieldCategory) -> str:
        if category == "radio":
            caption = _clean(info.get("groupCaption"))
            if caption:
                return caption

        for strategy in _LABEL_STRATEGIES:
            value = _clean(info.get(strategy))
            if value:
                return value

        for strategy in _DATA_ATTRIBUTE_STRATEGIES:
            value = _clean(info.get(strategy))
            if value:
                return re.sub(r"[-_]+", " ", value).strip()

        fallback = _clean(info.get("name")) or _clean(info.get("id"))
        return re.sub(r"[-_]+", " ", fallback).strip().lower()

    @staticmethod
    def _is_required(info: dict[str, Any]) -> bool:
        if info.get("required") or info.get("ariaRequired"):
            return True
        context = str(info.get("contextText") or "")
        return "*" in context or bool(_REQUIRED_WORDS.search(context))

    def _score(self, category: FieldCategory, label: str, identifier: str, info: dict[str, Any]) -> float:
        hint = f"{label} {identifier}"
        if category == "radio":
            hint = " ".join([hint, _clean(info.get("labelFor")), _clean(info.get("enclosingLabel"))])
        hint = hint.lower()
        tokens = set(re.findall(r"[a-z0-9]+", hint))

        confidence = 0.5
        for keyword, boost in CONFIDENCE_KEYWORDS.get(category, ()):
            if keyword in TOKEN_KEYWORDS:
                matched = keyword in tokens
            else:
                matched = keyword in hint
            if matched:
                confidence += boost

        if len(label) < 3:
            confidence -= 0.2
        if not label and not identifier:
            confidence -= 0.4
        return round(max(0.0, min(1.0, confidence)), 4)

    @staticmethod
    def _deduplicate(candidates: list[DetectedField]) -> list[DetectedField]:
        identifiers: set[str] = set()
        labels: set[tuple[str, str]] = set()
        unique: list[DetectedField] = []

        for field in candidates:
            if field.identifier and field.identifier in identifiers:
                continue
            label_key = (field.label, field.category)
            if label_key in labels:
                continue
            if field.identifier:
                identifiers.add(field.identifier)
            labels.add(label_key)
            unique.append(field)
        return unique


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()
