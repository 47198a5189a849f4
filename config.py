from pathlib import Path
from typing import List, Literal, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class CompletionCondition(BaseModel):
    """Condition that, together with network idle, ends the capture window.

    kind:
        network_idle           - the profiled navigation reaching network idle is enough.
        response_url_contains  - additionally wait for a response whose URL contains `value`.
        selector               - additionally wait for an element matching the CSS selector `value`.
    """

    kind: Literal["network_idle", "response_url_contains", "selector"] = "network_idle"
    value: Optional[str] = None

    @model_validator(mode="after")
    def check_value_for_kind(self) -> "CompletionCondition":
        if self.kind != "network_idle" and not self.value:
            raise ValueError(f"completion condition '{self.kind}' requires a value")
        return self


class CaptureConfig(BaseSettings):
    """What to profile and when the capture window ends."""

    # Chromium binary to drive; None lets Playwright use its bundled build.
    executable_path: Optional[Path] = Field(None, validation_alias="CHROMIUM_EXECUTABLE_PATH")
    target_url: str = Field("https://react.dev/?uwu=1", validation_alias="TARGET_URL")
    completion_condition: CompletionCondition = CompletionCondition(
        kind="response_url_contains", value="uwu.png"
    )

    @field_validator("target_url")
    @classmethod
    def target_url_must_be_absolute(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("target_url must be an absolute http(s) URL")
        return v


class BrowserConfig(BaseSettings):
    """Browser launch settings."""

    headless: bool = False
    # Lighthouse attaches to the running browser through this port.
    remote_debugging_port: int = 9222
    ignore_default_args: List[str] = ["--enable-automation"]
    disable_cache: bool = True


class PerformanceConfig(BaseSettings):
    """Timeout settings. A value of 0 disables the timeout."""

    navigation_timeout: int = 60000  # ms
    condition_timeout: int = 120000  # ms


class OutputConfig(BaseSettings):
    """Where run directories are created."""

    output_root: Path = Path("./dist")
    trace_file_name: str = "trace.json"
    har_file_name: str = "requests.har"
    lighthouse_file_name: str = "lighthouse.json"


class LighthouseConfig(BaseSettings):
    """Configuration for the Lighthouse CLI audit."""

    enabled: bool = True
    binary: str = "lighthouse"
    preset: Optional[Literal["desktop", "perf", "experimental"]] = "desktop"
    extra_flags: List[str] = []
    timeout: int = 300  # seconds


class LoggingConfig(BaseSettings):
    """Configuration for logging."""

    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    log_file_path: Optional[Path] = Path("./logs/capture.log")
    # Third-party loggers capped at WARNING.
    quiet_loggers: List[str] = ["asyncio"]


class AppConfig(BaseSettings):
    """Root configuration class for the application."""

    capture: CaptureConfig = CaptureConfig()
    browser: BrowserConfig = BrowserConfig()
    performance: PerformanceConfig = PerformanceConfig()
    output: OutputConfig = OutputConfig()
    lighthouse: LighthouseConfig = LighthouseConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Instantiate the main config object
config = AppConfig()
