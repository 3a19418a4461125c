"""Logging setup shared by the CLI and the provisioning pipeline.

Progress and the final report go through the rich console. The log stream
carries the command trail (every external invocation at DEBUG) and the
warnings raised by readiness waits and teardown.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every HTTP request at DEBUG
QUIET_LOGGERS = ("urllib3", "kubernetes")


def _attach_file_handler(
    root: logging.Logger, log_file: Path, formatter: logging.Formatter
) -> None:
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
    except OSError as e:
        root.warning(f"Cannot write log file {log_file}: {e}")
        return
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(level: str = "INFO", log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure the root logger.

    The stderr handler shows warnings only, or everything when ``verbose``.
    A log file, when given, always receives the full DEBUG trail so a failed
    run can be replayed command by command.

    Args:
        level: Root level when neither verbose nor a log file asks for DEBUG
        log_file: Optional path to log file
        verbose: Echo DEBUG output to stderr
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.handlers.clear()
    if verbose or log_file:
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(getattr(logging, level.upper()))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if log_file:
        _attach_file_handler(root, log_file, formatter)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name`` (pass ``__name__``)."""
    return logging.getLogger(name)
