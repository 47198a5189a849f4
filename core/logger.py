import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from config import config, LoggingConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

# Flag to ensure configuration happens only once
_is_configured = False


def log_file_for(log_path: Path, now: Optional[datetime] = None) -> Path:
    """Per-run log file next to `log_path`, e.g. logs/capture_20240305_140709.log."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return log_path.parent / f"{log_path.stem}_{stamp}{log_path.suffix}"


def _build_handlers(settings: LoggingConfig) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]

    if settings.log_file_path:
        log_file = log_file_for(settings.log_file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    return handlers


def setup_logging(settings: Optional[LoggingConfig] = None, force: bool = False):
    """
    Set up stdlib logging and route structlog through it.

    Idempotent: later calls are no-ops unless `force` is set. Loggers listed
    in `settings.quiet_loggers` are raised to WARNING so browser-driver chatter
    does not drown the capture events.
    """
    global _is_configured
    if _is_configured and not force:
        return

    settings = settings or config.logging
    numeric_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Replaces whatever handlers other libraries or pytest installed
    logging.basicConfig(level=numeric_level, handlers=_build_handlers(settings), force=True)
    for name in settings.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    # stdlib handlers own formatting and timestamps; structlog only shapes the event.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _is_configured = True


def get_structured_logger(name: str) -> structlog.BoundLogger:
    """Structured logger for a module; events are snake_case, e.g. `har_exported`."""
    return structlog.get_logger(name)


def bind_context(logger: structlog.BoundLogger, **context) -> structlog.BoundLogger:
    # Used once per run to stamp every event with target_url and run_dir.
    return logger.bind(**context)
