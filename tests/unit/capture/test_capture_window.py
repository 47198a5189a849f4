import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from capture.window import describe_condition, navigate, run_capture_window, wait_for_condition
from config import CompletionCondition, PerformanceConfig
from core.exceptions import AwaitedConditionNeverResolved, NavigationError

URL = "https://react.dev/?uwu=1"


@pytest.fixture
def performance():
    return PerformanceConfig(navigation_timeout=5000, condition_timeout=7000)


class TestNavigate:
    @pytest.mark.asyncio
    async def test_passes_wait_until_and_timeout(self):
        page = AsyncMock()

        await navigate(page, URL, "domcontentloaded", 1234)

        page.goto.assert_awaited_once_with(URL, wait_until="domcontentloaded", timeout=1234)

    @pytest.mark.asyncio
    async def test_failure_raises_navigation_error(self):
        page = AsyncMock()
        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        with pytest.raises(NavigationError) as exc_info:
            await navigate(page, URL, "load", 1000)

        assert exc_info.value.url == URL
        assert "ERR_NAME_NOT_RESOLVED" in str(exc_info.value)


class TestWaitForCondition:
    def test_network_idle_needs_no_extra_wait(self):
        page = MagicMock()

        assert wait_for_condition(page, CompletionCondition(kind="network_idle"), 1000) is None
        page.wait_for_event.assert_not_called()
        page.wait_for_selector.assert_not_called()

    def test_response_predicate_matches_url_fragment(self):
        page = MagicMock()
        condition = CompletionCondition(kind="response_url_contains", value="uwu.png")

        wait_for_condition(page, condition, 1000)

        args, kwargs = page.wait_for_event.call_args
        assert args == ("response",)
        assert kwargs["timeout"] == 1000
        predicate = kwargs["predicate"]
        assert predicate(MagicMock(url="https://react.dev/images/uwu.png")) is True
        assert predicate(MagicMock(url="https://react.dev/images/logo.svg")) is False

    def test_selector_waits_for_attached_element(self):
        page = MagicMock()
        condition = CompletionCondition(kind="selector", value="#root main")

        wait_for_condition(page, condition, 0)

        page.wait_for_selector.assert_called_once_with("#root main", state="attached", timeout=0)

    def test_describe_condition(self):
        assert describe_condition(CompletionCondition()) == "network_idle"
        assert describe_condition(CompletionCondition(kind="selector", value="h1")) == "selector=h1"


class TestRunCaptureWindow:
    @pytest.mark.asyncio
    async def test_network_idle_only_navigates(self, performance):
        """Test the window ends once the profiled navigation reaches network idle."""
        page = AsyncMock()

        await run_capture_window(page, URL, CompletionCondition(), performance)

        page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=5000)
        page.wait_for_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_waits_for_both_navigation_and_condition(self, performance):
        """Test a response condition is armed with its own timeout alongside the navigation."""
        page = AsyncMock()
        condition = CompletionCondition(kind="response_url_contains", value="uwu.png")

        await run_capture_window(page, URL, condition, performance)

        page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=5000)
        page.wait_for_event.assert_awaited_once()
        assert page.wait_for_event.call_args.kwargs["timeout"] == 7000

    @pytest.mark.asyncio
    async def test_condition_timeout_raises(self, performance):
        """Test a condition that never fires surfaces as AwaitedConditionNeverResolved."""
        page = AsyncMock()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 7000ms exceeded.")
        condition = CompletionCondition(kind="selector", value=".never")

        with pytest.raises(AwaitedConditionNeverResolved) as exc_info:
            await run_capture_window(page, URL, condition, performance)

        assert exc_info.value.condition == "selector=.never"
        assert exc_info.value.timeout_ms == 7000

    @pytest.mark.asyncio
    async def test_navigation_failure_raises(self, performance):
        page = AsyncMock()
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded.")

        with pytest.raises(NavigationError):
            await run_capture_window(page, URL, CompletionCondition(), performance)

    @pytest.mark.asyncio
    async def test_failure_waits_for_sibling_and_reports_both(self, performance, caplog):
        """Test the navigation is settled and its error logged when the condition fails first."""
        page = AsyncMock()
        page.wait_for_event.side_effect = PlaywrightTimeoutError("Timeout 7000ms exceeded.")
        page.goto.side_effect = PlaywrightError("net::ERR_ABORTED")
        condition = CompletionCondition(kind="response_url_contains", value="uwu.png")

        with caplog.at_level(logging.WARNING, logger="capture.window"):
            with pytest.raises(AwaitedConditionNeverResolved):
                await run_capture_window(page, URL, condition, performance)

        page.goto.assert_awaited_once()
        assert any("NavigationError" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_condition_success_does_not_hide_navigation_failure(self, performance):
        page = AsyncMock()
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        condition = CompletionCondition(kind="selector", value="h1")

        with pytest.raises(NavigationError):
            await run_capture_window(page, URL, condition, performance)

        page.wait_for_selector.assert_awaited_once()
