from pathlib import Path

from artifacts.types import RunArtifacts, RunResult
from config import OutputConfig


def test_default_artifact_names(tmp_path: Path):
    artifacts = RunArtifacts.in_dir(tmp_path)

    assert artifacts.run_dir == tmp_path
    assert artifacts.trace == tmp_path / "trace.json"
    assert artifacts.har == tmp_path / "requests.har"
    assert artifacts.lighthouse == tmp_path / "lighthouse.json"


def test_artifact_names_follow_output_config(tmp_path: Path):
    output = OutputConfig(har_file_name="network.har", lighthouse_file_name="audit.json")

    artifacts = RunArtifacts.in_dir(tmp_path, output)

    assert artifacts.har == tmp_path / "network.har"
    assert artifacts.lighthouse == tmp_path / "audit.json"
    assert artifacts.trace == tmp_path / "trace.json"


def test_run_result_exit_codes(tmp_path: Path):
    artifacts = RunArtifacts.in_dir(tmp_path)

    ok = RunResult.ok(artifacts)
    failed = RunResult.failure("Navigation to https://x/ failed", artifacts)

    assert ok.success is True and ok.exit_code == 0 and ok.reason is None
    assert failed.success is False and failed.exit_code == 1
    assert failed.reason == "Navigation to https://x/ failed"
