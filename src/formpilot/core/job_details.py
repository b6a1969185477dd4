from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from formpilot.browser.selectors import COMPANY_SELECTORS, JOB_TITLE_SELECTORS, LOCATION_SELECTORS
from formpilot.types import JobDetails

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 1000


def extract_job_details(html: str, url: str = "") -> JobDetails:
    if not html:
        return JobDetails(url=url)

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()

    title = _first_text(soup, JOB_TITLE_SELECTORS)
    company = _first_text(soup, COMPANY_SELECTORS)
    location = _first_text(soup, LOCATION_SELECTORS)

    text = soup.get_text("\n")
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    description = "\n".join(lines)[:DESCRIPTION_LIMIT]

    logger.debug("Extracted job details title=%r company=%r", title, company)
    return JobDetails(url=url, title=title, company=company, location=location, description=description)


def _first_text(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        if node.name == "meta":
            value = str(node.get("content") or "").strip()
        else:
            value = " ".join(node.get_text(" ").split())
        if value:
            return value
    return ""
