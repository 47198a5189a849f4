"""Lighthouse audit through the Lighthouse CLI.

The CLI attaches to the already running browser over its remote debugging
port and writes its JSON report straight to the run directory, so the report
is persisted exactly as Lighthouse produced it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

from config import LighthouseConfig
from core.exceptions import LighthouseError
from core.logger import get_structured_logger, bind_context

logger = get_structured_logger(__name__)


def build_lighthouse_command(url: str, port: int, output_path: Path, settings: LighthouseConfig) -> List[str]:
    cmd = [
        settings.binary,
        url,
        f"--port={port}",
        "--output=json",
        f"--output-path={output_path}",
        "--quiet",
    ]
    if settings.preset:
        cmd.append(f"--preset={settings.preset}")
    cmd.extend(settings.extra_flags)
    return cmd


async def run_lighthouse(url: str, port: int, output_path: Path, settings: LighthouseConfig) -> Path:
    """
    Runs a Lighthouse audit of `url` against the browser listening on `port`.

    Args:
        url: Page to audit.
        port: Remote debugging port of the running browser.
        output_path: Where the JSON report is written.
        settings: Lighthouse section of the application config.

    Returns:
        Path of the written report.

    Raises:
        LighthouseError: If the CLI is missing, fails, times out or writes no report.
    """
    cmd = build_lighthouse_command(url, port, output_path, settings)
    audit_logger = bind_context(logger, url=url, port=port)
    audit_logger.info("lighthouse_started", command=" ".join(cmd))

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise LighthouseError(f"Lighthouse binary not found: {settings.binary}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=settings.timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise LighthouseError(f"Lighthouse did not finish within {settings.timeout} s") from e

    stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
    if process.returncode != 0:
        raise LighthouseError("Lighthouse audit failed.", returncode=process.returncode, stderr=stderr_text)
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise LighthouseError(f"Lighthouse wrote no report to {output_path}")

    audit_logger.info("lighthouse_finished", report=str(output_path))
    return output_path
