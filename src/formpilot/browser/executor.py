from __future__ import annotations

import logging
from typing import Any

from formpilot.browser.classifier import DetectedField
from formpilot.types import FieldCategory, FillFailure, FillResult

logger = logging.getLogger(__name__)

OPTION_LABEL_JS = """
(el) => {
  const text = (node) => (node ? (node.innerText || node.textContent || '') : '').trim();
  const id = el.getAttribute('id');
  if (id) {
    const explicit = text(document.querySelector(`label[for="${CSS.escape(id)}"]`));
    if (explicit) return explicit;
  }
  const enclosing = text(el.closest('label'));
  if (enclosing) return enclosing;
  let own = '';
  for (let node = el.nextSibling; node; node = node.nextSibling) {
    if (node.nodeType === Node.ELEMENT_NODE) {
      if (node.tagName === 'INPUT') break;
      if (node.tagName === 'LABEL') return own.trim() || text(node);
    }
    own += node.textContent || '';
  }
  return own.trim();
}
"""

TRUTHY_VALUES = frozenset({"true", "yes"})


class FillError(Exception):
    def __init__(self, identifier: str, category: FieldCategory, reason: str):
        super().__init__(f"{category} field {identifier or '<unnamed>'}: {reason}")
        self.identifier = identifier
        self.category = category
        self.reason = reason


class FillExecutor:
    def __init__(self, *, timeout_ms: float = 10_000):
        self.timeout_ms = timeout_ms

    async def fill(self, field: DetectedField, value: str) -> None:
        if field.category == "file":
            raise FillError(field.identifier, field.category, "file inputs are handled by the uploader")
        if field.category == "checkbox":
            await self._fill_checkbox(field, value)
        elif field.category == "radio":
            await self._fill_radio(field, value)
        elif field.category == "select":
            await self._fill_select(field, value)
        else:
            await field.element.fill(value, timeout=self.timeout_ms)

    async def fill_fields(self, assignments: list[tuple[DetectedField, str]]) -> FillResult:
        result = FillResult()
        for field, value in assignments:
            if field.category == "file":
                continue
            if not value:
                if field.required:
                    result.failures.append(_failure(field, "no value resolved"))
                else:
                    result.skipped.append(field.key)
                continue

            try:
                await self.fill(field, value)
            except FillError as exc:
                logger.warning("Fill failed %s", exc)
                result.failures.append(_failure(field, exc.reason))
                continue
            except Exception as exc:
                logger.warning("Fill raised category=%s identifier=%s error=%s", field.category, field.identifier, exc)
                result.failures.append(_failure(field, str(exc) or exc.__class__.__name__))
                continue

            result.filled[field.key] = value
            logger.debug("Filled category=%s key=%s", field.category, field.key)
        return result

    async def _fill_checkbox(self, field: DetectedField, value: str) -> None:
        if value.strip().lower() not in TRUTHY_VALUES:
            return
        if not await field.element.is_checked():
            await field.element.check(timeout=self.timeout_ms)

    async def _fill_radio(self, field: DetectedField, value: str) -> None:
        name = await field.element.get_attribute("name")
        if name:
            options = await field.element.page.locator(
                f'input[type="radio"][name={css_string(name)}]'
            ).all()
        else:
            options = [field.element]

        candidates: list[tuple[Any, list[str]]] = []
        for option in options:
            option_value = await option.get_attribute("value") or ""
            option_label = await option.evaluate(OPTION_LABEL_JS) or ""
            candidates.append((option, [option_label, option_value]))

        chosen = match_option(value, candidates)
        if chosen is None:
            raise FillError(field.identifier, field.category, f"no radio option matches {value!r}")
        await chosen.check(timeout=self.timeout_ms)

    async def _fill_select(self, field: DetectedField, value: str) -> None:
        if field.tag_name != "select":
            await field.element.fill(value, timeout=self.timeout_ms)
            return

        candidates: list[tuple[Any, list[str]]] = []
        for option in await field.element.locator("option").all():
            text = (await option.text_content() or "").strip()
            option_value = await option.get_attribute("value") or ""
            candidates.append((text, [text, option_value]))

        label = match_option(value, candidates)
        if label is None:
            raise FillError(field.identifier, field.category, f"no select option matches {value!r}")

        try:
            await field.element.select_option(label=label, timeout=self.timeout_ms)
        except Exception as exc:
            logger.debug("select_option failed identifier=%s error=%s; writing value directly", field.identifier, exc)
            await field.element.fill(value, timeout=self.timeout_ms)


def match_option(value: str, candidates: list[tuple[Any, list[str]]]) -> Any | None:
    """Pick the option whose label or value matches `value`.

    Exact (case-insensitive) matches win over substring matches in either
    direction; within each pass the first option in document order wins.
    """

    target = value.strip().lower()
    if not target:
        return None

    for handle, texts in candidates:
        if any(text.strip().lower() == target for text in texts if text.strip()):
            return handle

    for handle, texts in candidates:
        for text in texts:
            normalized = text.strip().lower()
            if normalized and (normalized in target or target in normalized):
                return handle
    return None


def css_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _failure(field: DetectedField, reason: str) -> FillFailure:
    return FillFailure(
        identifier=field.identifier,
        label=field.label,
        category=field.category,
        required=field.required,
        reason=reason,
    )
