from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass(frozen=True, slots=True)
class PlatformAdapter:
    name: str
    display_name: str
    host_tokens: tuple[str, ...]


PLATFORMS: tuple[PlatformAdapter, ...] = (
    PlatformAdapter("greenhouse", "Greenhouse", ("greenhouse.io", "boards.greenhouse")),
    PlatformAdapter("lever", "Lever", ("lever.co",)),
    PlatformAdapter("workday", "Workday", ("myworkdayjobs.com", "workday.com")),
    PlatformAdapter("bamboohr", "BambooHR", ("bamboohr.com",)),
    PlatformAdapter("smartrecruiters", "SmartRecruiters", ("smartrecruiters.com",)),
    PlatformAdapter("jobvite", "Jobvite", ("jobvite.com",)),
    PlatformAdapter("taleo", "Taleo", ("taleo.net",)),
    PlatformAdapter("successfactors", "SuccessFactors", ("successfactors.com", "sapsf.com")),
    PlatformAdapter("icims", "iCIMS", ("icims.com",)),
    PlatformAdapter("workable", "Workable", ("workable.com",)),
    PlatformAdapter("linkedin", "LinkedIn", ("linkedin.com",)),
)

GENERIC = PlatformAdapter("generic", "Generic ATS", ())


def detect_platform(url: str) -> PlatformAdapter:
    host = urlparse(url).netloc.lower()
    if not host:
        return GENERIC

    for platform in PLATFORMS:
        if any(token in host for token in platform.host_tokens):
            return platform
    return GENERIC
