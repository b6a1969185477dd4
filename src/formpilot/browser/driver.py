from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Any, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from formpilot.browser.selectors import (
    APPLY_BUTTON_SELECTORS,
    CONFIRMATION_SELECTORS,
    CONFIRMATION_URL_TOKENS,
    LOGGED_IN_SELECTORS,
    LOGIN_REQUIRED_SELECTORS,
    SUBMIT_BUTTON_SELECTORS,
)
from formpilot.config import Settings

logger = logging.getLogger(__name__)

_FORM_CONTROLS = "form input:not([type=\"hidden\"]), form textarea, form select"


class BrowserDriver(Protocol):
    """Capability set the automation session needs from a browser."""

    async def open(self, url: str) -> Any: ...

    async def open_login_window(self, url: str) -> None: ...

    async def requires_login(self, page: Any) -> bool: ...

    async def is_logged_in(self, page: Any) -> bool: ...

    async def reveal_application_form(self, page: Any) -> bool: ...

    async def submit(self, page: Any) -> bool: ...

    async def confirm_submission(self, page: Any) -> bool: ...

    async def page_html(self, page: Any) -> str: ...

    async def screenshot(self, page: Any, label: str) -> str | None: ...

    async def close(self, page: Any) -> None: ...


class PlaywrightDriver:
    """One automated browser context plus an optional visible login window.

    A driver instance belongs to exactly one session. Cookies entered by the user
    in the login window are copied into the automated context while polling.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._login_browser: Browser | None = None
        self._login_context: BrowserContext | None = None
        self._synced_cookie_count = 0

    async def open(self, url: str) -> Page:
        playwright = await self._ensure_playwright()
        self._browser = await playwright.chromium.launch(**self._launch_kwargs(self.settings.browser_headless))
        self._context = await self._browser.new_context()
        self._context.set_default_timeout(self.settings.browser_action_timeout_sec * 1000)
        page = await self._context.new_page()
        await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.browser_nav_timeout_sec * 1000)
        logger.info("Opened %s", url)
        return page

    async def open_login_window(self, url: str) -> None:
        playwright = await self._ensure_playwright()
        self._login_browser = await playwright.chromium.launch(
            **self._launch_kwargs(self.settings.login_window_headless)
        )
        self._login_context = await self._login_browser.new_context()
        login_page = await self._login_context.new_page()
        await login_page.goto(url, wait_until="domcontentloaded", timeout=self.settings.browser_nav_timeout_sec * 1000)
        logger.info("Login window opened for %s", url)

    async def requires_login(self, page: Page) -> bool:
        return await _any_visible(page, LOGIN_REQUIRED_SELECTORS)

    async def is_logged_in(self, page: Page) -> bool:
        await self._sync_login_cookies(page)
        if await _any_visible(page, LOGGED_IN_SELECTORS):
            return True
        return not await _any_visible(page, LOGIN_REQUIRED_SELECTORS)

    async def reveal_application_form(self, page: Page) -> bool:
        if await page.locator(_FORM_CONTROLS).count() > 0:
            return False

        for selector in APPLY_BUTTON_SELECTORS:
            button = page.locator(selector).first
            try:
                if await button.count() and await button.is_visible():
                    await button.click()
                    await page.wait_for_load_state("domcontentloaded")
                    logger.info("Clicked apply button selector=%s", selector)
                    return True
            except Exception as exc:
                logger.debug("Apply button selector failed selector=%s error=%s", selector, exc)
        return False

    async def submit(self, page: Page) -> bool:
        for selector in SUBMIT_BUTTON_SELECTORS:
            button = page.locator(selector).first
            try:
                if await button.count() and await button.is_visible() and await button.is_enabled():
                    await button.click()
                    logger.info("Clicked submit button selector=%s", selector)
                    return True
            except Exception as exc:
                logger.debug("Submit selector failed selector=%s error=%s", selector, exc)
        return False

    async def confirm_submission(self, page: Page) -> bool:
        deadline = time.monotonic() + self.settings.confirmation_timeout_sec
        while True:
            url = page.url.lower()
            if any(token in url for token in CONFIRMATION_URL_TOKENS):
                return True
            if await _any_visible(page, CONFIRMATION_SELECTORS):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(0.5)

    async def page_html(self, page: Page) -> str:
        return await page.content()

    async def screenshot(self, page: Page, label: str) -> str | None:
        if not self.settings.save_screenshots:
            return None

        artifact_dir = Path(self.settings.run_artifact_dir).expanduser()
        artifact_dir.mkdir(parents=True, exist_ok=True)
        stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", label)
        path = artifact_dir / f"{stem}.png"
        await page.screenshot(path=str(path), full_page=True)
        if self.settings.save_dom_snapshots:
            (artifact_dir / f"{stem}.html").write_text(await page.content(), encoding="utf-8")
        return str(path)

    async def close(self, page: Any) -> None:
        for resource in (self._login_context, self._login_browser, self._context, self._browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as exc:
                logger.warning("Failed to close browser resource: %s", exc)
        self._login_context = self._login_browser = self._context = self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                logger.warning("Failed to stop playwright: %s", exc)
            self._playwright = None

    async def _ensure_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    def _launch_kwargs(self, headless: bool) -> dict[str, object]:
        kwargs: dict[str, object] = {"headless": headless}
        if self.settings.browser_channel.strip():
            kwargs["channel"] = self.settings.browser_channel.strip()
        if self.settings.browser_executable_path.strip():
            kwargs["executable_path"] = self.settings.browser_executable_path.strip()
        return kwargs

    async def _sync_login_cookies(self, page: Page) -> None:
        if self._login_context is None:
            return

        cookies = await self._login_context.cookies()
        if len(cookies) == self._synced_cookie_count:
            return
        await page.context.add_cookies(cookies)
        self._synced_cookie_count = len(cookies)
        await page.reload(wait_until="domcontentloaded")


async def _any_visible(page: Any, selectors: tuple[str, ...]) -> bool:
    for selector in selectors:
        locator = page.locator(selector)
        try:
            if await locator.count() and await locator.first.is_visible():
                return True
        except Exception as exc:
            logger.debug("Indicator check failed selector=%s error=%s", selector, exc)
    return False
