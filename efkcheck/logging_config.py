"""Centralized logging configuration for the efkcheck harness.

Two sinks are used during a run:
- the harness log (``logs/efkcheck/efkcheck.log`` plus the console), fed by
  the ``efkcheck.<module>`` loggers
- captured pod logs, one file per pod and container under ``logs/pods``

Environment switches: ``EFKCHECK_DEBUG=1``, ``EFKCHECK_LOG_LEVEL`` and
``EFKCHECK_LOG_DIR`` (the log root, default ``logs``).
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Iterable, Optional, Union

ROOT_LOGGER = "efkcheck"

DEBUG_MODE = os.getenv("EFKCHECK_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("EFKCHECK_LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO")

# Log root, shared with HarnessConfig.log_dir
LOG_ROOT = Path(os.getenv("EFKCHECK_LOG_DIR", "logs"))
HARNESS_LOG_DIR = LOG_ROOT / "efkcheck"
POD_LOG_DIR = LOG_ROOT / "pods"

# Debug runs also record the emitting file and line
LOG_FORMAT = (
    "[%(asctime)s] [%(levelname)-8s] [%(name)s] [%(filename)s:%(lineno)d] %(message)s"
    if DEBUG_MODE
    else "[%(asctime)s] [%(levelname)-8s] [%(name)s] %(message)s"
)

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _formatted(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _get_file_handler(log_file: Path, level: int) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    rotating = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
    )
    return _formatted(rotating, level)


def _get_console_handler(level: int) -> logging.Handler:
    return _formatted(logging.StreamHandler(), level)


def configure_harness_logging(
    log_level: Optional[str] = None,
    include_console: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach the harness handlers to the ``efkcheck`` logger.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        log_level: Level name; unknown names fall back to INFO
        include_console: Also stream records to stderr
        log_dir: Directory for ``efkcheck.log`` (default: ``HARNESS_LOG_DIR``)

    Returns:
        The ``efkcheck`` logger
    """
    level = getattr(logging, (log_level or LOG_LEVEL).upper(), logging.INFO)

    logger = get_harness_logger()
    logger.setLevel(level)
    logger.handlers.clear()

    logger.addHandler(
        _get_file_handler((log_dir or HARNESS_LOG_DIR) / "efkcheck.log", level)
    )
    if include_console:
        logger.addHandler(_get_console_handler(level))
    return logger


def configure_module_logging(module_name: str) -> logging.Logger:
    """Child logger ``efkcheck.<module_name>`` using the harness handlers."""
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")


def get_harness_logger() -> logging.Logger:
    return logging.getLogger(ROOT_LOGGER)


def write_pod_log(
    pod: str,
    lines: Iterable[str],
    container: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> Path:
    """Write captured pod log lines to ``<log_dir>/<pod>[-<container>].log``."""
    target_dir = log_dir or POD_LOG_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    name = f"{pod}-{container}" if container else pod
    path = target_dir / f"{name}.log"
    path.write_text("".join(f"{line}\n" for line in lines))
    return path


class StructuredLogContext:
    """``key=value | key=value`` rendering for log messages."""

    def __init__(self, **context):
        self.context = context

    def __str__(self):
        return " | ".join(f"{key}={value}" for key, value in self.context.items())


def setup_all_logging(
    log_level: Optional[str] = None, log_root: Optional[Union[str, Path]] = None
):
    """Initialize harness logging once per test session.

    ``log_root`` is the same root ``HarnessConfig.log_dir`` names; the harness
    log goes to ``<log_root>/efkcheck`` and pod logs to ``<log_root>/pods``.
    """
    root = Path(log_root) if log_root else LOG_ROOT
    configure_harness_logging(log_level=log_level, log_dir=root / "efkcheck")

    logger = get_harness_logger()
    banner = "=" * 70
    logger.info(banner)
    logger.info("efkcheck logging initialized")
    logger.info(banner)
    logger.info(f"Debug mode: {DEBUG_MODE}, level: {log_level or LOG_LEVEL}")
    logger.info(f"Harness log: {root / 'efkcheck' / 'efkcheck.log'}")
    logger.info(f"Pod logs: {root / 'pods'}/<pod>[-<container>].log")
