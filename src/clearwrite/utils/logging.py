"""Logging setup for grammar checks.

One rotating log file collects the whole run. Grammar service traffic gets
its own policy: it stays quiet by default, and ``trace_requests`` turns on
request-level tracing from the grammar client and httpx without dropping the
rest of the application to DEBUG. Service credentials are masked in every
record before it reaches a handler.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
from pathlib import Path

__all__ = ["LOG_FILENAME", "setup_logging", "resolve_level", "get_log_path"]

LOG_FILENAME = "clearwrite.log"

_DEFAULT_LOG_DIR = Path.home() / ".clearwrite" / "logs"
_GRAMMAR_LOGGER = "clearwrite.grammar"
_HTTP_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", *_HTTP_LOGGERS)
_SECRET_PATTERN = re.compile(r"""(["']?(?:apiKey|api_key)["']?\s*[:=]\s*["']?)([^"'&\s,}]+)""")
_CONFIGURED = False
_LOG_PATH: Path | None = None


class SecretMaskingFilter(logging.Filter):
    """Replace API key values in formatted messages with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PATTERN.sub(r"\1***", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    trace_requests: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging and return the log file path.

    ``trace_requests`` lets DEBUG records from :mod:`clearwrite.grammar` and
    INFO request lines from httpx through even when ``level`` is higher.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILENAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler_level = min(level, logging.DEBUG) if trace_requests else level
    masking = SecretMaskingFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        handler.addFilter(masking)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _apply_service_policy(level, trace_requests=trace_requests)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def resolve_level(*, verbose: bool = False, debug_logging: bool = False) -> int:
    """Return the root level for a run; either toggle switches to DEBUG."""

    return logging.DEBUG if verbose or debug_logging else logging.INFO


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("CLEARWRITE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _apply_service_policy(root_level: int, *, trace_requests: bool) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
    grammar_logger = logging.getLogger(_GRAMMAR_LOGGER)
    if trace_requests:
        grammar_logger.setLevel(logging.DEBUG)
        for logger_name in _HTTP_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.INFO)
    else:
        grammar_logger.setLevel(logging.NOTSET)
