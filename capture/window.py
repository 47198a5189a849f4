import asyncio
import logging
from typing import Any, Awaitable, Optional

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from config import CompletionCondition, PerformanceConfig
from core.exceptions import AwaitedConditionNeverResolved, NavigationError

logger = logging.getLogger(__name__)


def describe_condition(condition: CompletionCondition) -> str:
    if condition.kind == "network_idle":
        return "network_idle"
    return f"{condition.kind}={condition.value}"


async def navigate(page: Page, url: str, wait_until: str, timeout: int) -> None:
    """Navigates `page` to `url`, turning any Playwright failure into NavigationError."""
    try:
        await page.goto(url, wait_until=wait_until, timeout=timeout)
    except PlaywrightError as e:
        raise NavigationError(url, e) from e


def wait_for_condition(page: Page, condition: CompletionCondition, timeout: int) -> Optional[Awaitable[Any]]:
    """
    Builds the awaitable for an application-defined completion condition.

    Returns None for `network_idle`, which the navigation itself covers.
    """
    if condition.kind == "response_url_contains":
        fragment = condition.value
        return page.wait_for_event(
            "response",
            predicate=lambda response: fragment in response.url,
            timeout=timeout,
        )
    if condition.kind == "selector":
        return page.wait_for_selector(condition.value, state="attached", timeout=timeout)
    return None


async def _guard_condition(awaitable: Awaitable[Any], condition: CompletionCondition, timeout: int) -> Any:
    try:
        return await awaitable
    except PlaywrightTimeoutError as e:
        raise AwaitedConditionNeverResolved(describe_condition(condition), timeout) from e


async def run_capture_window(
    page: Page,
    url: str,
    condition: CompletionCondition,
    performance: PerformanceConfig,
) -> None:
    """
    Navigates to `url` and returns once the page is network idle and the
    completion condition has resolved.

    The condition wait is armed before the navigation starts so that an early
    response is not missed. Neither side is cancelled if the other fails.

    Raises:
        NavigationError: If the navigation fails or times out.
        AwaitedConditionNeverResolved: If the condition does not resolve within
            `performance.condition_timeout` ms (0 waits forever).
    """
    logger.info(f"Capture window opened: {url} until {describe_condition(condition)}")
    waits = [navigate(page, url, "networkidle", performance.navigation_timeout)]
    condition_wait = wait_for_condition(page, condition, performance.condition_timeout)
    if condition_wait is not None:
        waits.insert(0, _guard_condition(condition_wait, condition, performance.condition_timeout))

    # Both sides always run to completion; the first failure is raised once both are settled.
    results = await asyncio.gather(*waits, return_exceptions=True)
    errors = [r for r in results if isinstance(r, BaseException)]
    for extra in errors[1:]:
        logger.warning(f"Capture window: additional failure {type(extra).__name__}: {extra}")
    if errors:
        raise errors[0]
    logger.info("Capture window closed.")
