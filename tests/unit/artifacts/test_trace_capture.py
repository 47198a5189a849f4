from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from artifacts.trace import start_trace, stop_trace


@pytest.mark.asyncio
async def test_start_trace_records_screenshots_for_page(tmp_path: Path):
    browser = AsyncMock()
    page = AsyncMock()
    path = tmp_path / "trace.json"

    await start_trace(browser, page, path)

    browser.start_tracing.assert_awaited_once_with(page=page, path=str(path), screenshots=True)


@pytest.mark.asyncio
async def test_stop_trace_returns_trace_size():
    browser = AsyncMock()
    browser.stop_tracing.return_value = b'{"traceEvents": []}'

    size = await stop_trace(browser)

    browser.stop_tracing.assert_awaited_once()
    assert size == len(b'{"traceEvents": []}')
