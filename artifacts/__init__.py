from .naming import build_run_dir, run_timestamp
from .storage import ensure_dir, write_json
from .types import RunArtifacts, RunResult

__all__ = [
    "build_run_dir",
    "run_timestamp",
    "ensure_dir",
    "write_json",
    "RunArtifacts",
    "RunResult",
]
