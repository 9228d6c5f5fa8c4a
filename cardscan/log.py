"""Logging setup: progress on stdout, recoverable failures in a per-run error log."""
import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(error_log_path: str, level: str = "INFO", stream=None) -> logging.Handler:
    """
    Install the stdout handler and the error log sink.

    The error log is opened in write mode so each run starts with an empty
    file; it receives WARNING and above, one line per failure.
    `stream` defaults to stdout; pass stderr when stdout carries machine output.
    Returns the file handler so callers can close it.
    """
    path = Path(error_log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    sink = logging.FileHandler(path, mode="w", encoding="utf-8")
    sink.setLevel(logging.WARNING)
    sink.setFormatter(logging.Formatter(LOG_FORMAT))

    console = logging.StreamHandler(stream or sys.stdout)
    console.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    console.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=logging.DEBUG, handlers=[console, sink], force=True)
    # Per-request chatter from the HTTP stack stays out of the run log.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return sink
