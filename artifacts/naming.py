from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from core.utils import path_slug


def run_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with milliseconds, safe for use as a directory name."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z").replace(":", "-")


def build_run_dir(base: Path, target_url: str, now: Optional[datetime] = None) -> Path:
    hostname = urlparse(target_url).hostname or "unknown-host"
    run_dir = base / hostname
    slug = path_slug(target_url)
    if slug:
        run_dir = run_dir.joinpath(*slug.split("/"))
    return run_dir / run_timestamp(now)
