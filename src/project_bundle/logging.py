from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOG_LEVEL_ENV = "PROJECT_BUNDLE_LOG_LEVEL"

_LOGGING_CONFIGURED = False
_LEVEL = logging.INFO
_HANDLERS: list[logging.Handler] = []


def level_from_env(default: int = logging.INFO) -> int:
    """Log level named by `PROJECT_BUNDLE_LOG_LEVEL` (e.g. `WARNING`), or `default`."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelNamesMapping().get(name)
    return default if level is None else level


def setup_logging(filename: str | Path | None = None, level: int | None = None) -> structlog.BoundLogger:
    """Set up structured JSON logging for the project_bundle package.

    Only the first call configures anything; later calls return the same logger.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level of emitted events, read from the environment when None.

    Returns:
        A structlog logger instance configured for the project_bundle package.
    """
    global _LOGGING_CONFIGURED, _LEVEL  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        _LEVEL = level_from_env() if level is None else level
        handler: logging.Handler = (
            logging.FileHandler(str(filename), encoding="utf-8") if filename else logging.StreamHandler(sys.stderr)
        )
        _HANDLERS.append(handler)

        logging.basicConfig(level=_LEVEL, handlers=[handler], format="%(message)s")
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(_LEVEL),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("project_bundle")


def redirect_to_file(filename: str | Path) -> None:
    """Send log records to `filename` instead of the handler installed at setup.

    Handlers added by other code (test capture, embedding applications) are
    left in place.

    Args:
        filename: path of the log file to append to.
    """
    root = logging.getLogger()
    for handler in _HANDLERS:
        root.removeHandler(handler)
        handler.close()
    _HANDLERS.clear()
    handler = logging.FileHandler(str(filename), encoding="utf-8")
    _HANDLERS.append(handler)
    root.addHandler(handler)
    root.setLevel(_LEVEL)


logger = setup_logging()
