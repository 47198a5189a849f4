import asyncio
import sys
import logging
from datetime import datetime
from typing import Callable, Optional

from playwright.async_api import async_playwright, Browser, Page, Playwright, Error as PlaywrightError

# It's important to set up logging before other imports that might use it.
from core.logger import setup_logging, get_structured_logger, bind_context
from config import config, AppConfig

setup_logging()
logger = logging.getLogger(__name__)
structured_logger = get_structured_logger(__name__)

from artifacts.lighthouse import run_lighthouse
from artifacts.naming import build_run_dir
from artifacts.storage import ensure_dir, write_json
from artifacts.trace import start_trace, stop_trace
from artifacts.types import RunArtifacts, RunResult
from capture.recorder import attach_to_page, open_cdp_session
from capture.window import navigate, run_capture_window
from core.exceptions import CaptureError, SessionSetupError
from core.utils import ask_user

BLANK_PAGE = "about:blank"
CONFIRM_PROMPT = "Prepare the page, then press Enter to start profiling: "


async def launch_browser(p: Playwright, app_config: AppConfig) -> Browser:
    """Launches Chromium headful, without the automation banner and with a debugging port for Lighthouse."""
    executable_path = app_config.capture.executable_path
    try:
        return await p.chromium.launch(
            executable_path=str(executable_path) if executable_path else None,
            headless=app_config.browser.headless,
            ignore_default_args=app_config.browser.ignore_default_args,
            args=[f"--remote-debugging-port={app_config.browser.remote_debugging_port}"],
        )
    except PlaywrightError as e:
        raise SessionSetupError("browser_launch", e) from e


async def disable_http_cache(page: Page) -> None:
    cdp_session = await open_cdp_session(page)
    try:
        await cdp_session.send("Network.enable")
        await cdp_session.send("Network.setCacheDisabled", {"cacheDisabled": True})
    except PlaywrightError as e:
        raise SessionSetupError("Network.setCacheDisabled", e) from e


async def profile_page(
    browser: Browser,
    app_config: AppConfig,
    artifacts: RunArtifacts,
    confirm: Callable[[str], str],
) -> None:
    """Runs the fixed capture sequence on a fresh page of `browser`."""
    target_url = app_config.capture.target_url
    timeout = app_config.performance.navigation_timeout

    page = await browser.new_page(no_viewport=True)
    if app_config.browser.disable_cache:
        await disable_http_cache(page)

    await navigate(page, target_url, "domcontentloaded", timeout)
    # Manual checkpoint; runs off the event loop so the browser connection stays serviced.
    await asyncio.to_thread(confirm, CONFIRM_PROMPT)

    await navigate(page, BLANK_PAGE, "networkidle", timeout)
    await page.bring_to_front()

    recorder = await attach_to_page(page)
    await start_trace(browser, page, artifacts.trace)

    await run_capture_window(
        page,
        target_url,
        app_config.capture.completion_condition,
        app_config.performance,
    )

    await stop_trace(browser)
    har = await recorder.export()
    write_json(artifacts.har, har.to_dict())
    logger.info(f"HAR written to {artifacts.har}")

    await navigate(page, BLANK_PAGE, "load", timeout)

    if app_config.lighthouse.enabled:
        await run_lighthouse(
            target_url,
            app_config.browser.remote_debugging_port,
            artifacts.lighthouse,
            app_config.lighthouse,
        )
    else:
        logger.info("Lighthouse audit disabled; skipping.")


async def run(
    app_config: AppConfig,
    confirm: Callable[[str], str] = ask_user,
    now: Optional[datetime] = None,
) -> RunResult:
    """
    Captures trace, HAR and Lighthouse report for the configured target.

    Args:
        app_config: Application configuration.
        confirm: Blocking prompt that returns once the operator is ready.
        now: Run timestamp override, mainly for tests.

    Returns:
        RunResult.ok with the artifact paths, or RunResult.failure with the reason.
    """
    target_url = app_config.capture.target_url
    run_dir = build_run_dir(app_config.output.output_root, target_url, now)
    artifacts = RunArtifacts.in_dir(run_dir, app_config.output)
    run_logger = bind_context(structured_logger, target_url=target_url, run_dir=str(run_dir))
    run_logger.info("capture_run_started")

    try:
        ensure_dir(run_dir)
        async with async_playwright() as p:
            browser = await launch_browser(p, app_config)
            try:
                await profile_page(browser, app_config, artifacts, confirm)
            finally:
                await browser.close()
    except CaptureError as e:
        run_logger.error("capture_run_failed", error=str(e), error_type=type(e).__name__)
        return RunResult.failure(str(e), artifacts)
    except (PlaywrightError, OSError) as e:
        # Browser or filesystem failure outside the wrapped capture steps.
        run_logger.error("capture_run_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
        return RunResult.failure(f"{type(e).__name__}: {e}", artifacts)

    run_logger.info("capture_run_finished")
    return RunResult.ok(artifacts)


# --- Main Orchestrator ---
async def main() -> int:
    """Main entry point: one capture run with the global configuration."""
    result = await run(config)
    if result.success:
        logger.info(f"Artifacts written to {result.artifacts.run_dir}")
    else:
        logger.error(f"Capture run failed: {result.reason}")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
