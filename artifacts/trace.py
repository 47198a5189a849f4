from __future__ import annotations

from pathlib import Path

from playwright.async_api import Browser, Page

from core.logger import get_structured_logger

logger = get_structured_logger(__name__)


async def start_trace(browser: Browser, page: Page, path: Path) -> None:
    # Chromium-only; writes a DevTools trace (JSON) with screenshots when stopped.
    await browser.start_tracing(page=page, path=str(path), screenshots=True)
    logger.debug("trace_started", path=str(path))


async def stop_trace(browser: Browser) -> int:
    data = await browser.stop_tracing()
    logger.debug("trace_stopped", bytes=len(data))
    return len(data)
