from __future__ import annotations

import logging

from formpilot.config import get_settings


_LOG_CONFIGURED = False
_NOISY_LOGGERS = ("asyncio", "httpx", "openai", "urllib3")


def configure_logging(level: str | None = None) -> None:
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))
    _LOG_CONFIGURED = True
