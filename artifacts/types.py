from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import OutputConfig


@dataclass(frozen=True)
class RunArtifacts:
    run_dir: Path
    trace: Path
    har: Path
    lighthouse: Path

    @classmethod
    def in_dir(cls, run_dir: Path, output: Optional[OutputConfig] = None) -> "RunArtifacts":
        output = output or OutputConfig()
        return cls(
            run_dir=run_dir,
            trace=run_dir / output.trace_file_name,
            har=run_dir / output.har_file_name,
            lighthouse=run_dir / output.lighthouse_file_name,
        )


@dataclass
class RunResult:
    """Outcome of one capture run; the caller decides the process exit code."""

    success: bool
    reason: Optional[str] = None
    artifacts: Optional[RunArtifacts] = None

    @classmethod
    def ok(cls, artifacts: RunArtifacts) -> "RunResult":
        return cls(success=True, artifacts=artifacts)

    @classmethod
    def failure(cls, reason: str, artifacts: Optional[RunArtifacts] = None) -> "RunResult":
        return cls(success=False, reason=reason, artifacts=artifacts)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
