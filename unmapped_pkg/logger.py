"""Logging setup shared by every stage of the extraction pipeline.

Thin wrapper around loguru that keeps one configured logger for the whole
process, supports keyword context on each call and simple named timers.
"""

import sys
import time
from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger as _loguru_logger

__all__ = [
    'PipelineLogger',
    'setup_logging',
    'add_log_file',
    'get_logger',
]

CONSOLE_FORMAT = "<level>[{level}]</level> {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"


class PipelineLogger:
    """Logger with keyword context and stage timers."""

    def __init__(self, backend=_loguru_logger):
        self._backend = backend
        self._timers: Dict[str, float] = {}

    def _log(self, level: str, message: str, context: dict) -> None:
        # depth=2 attributes the record to the caller, not to this wrapper
        self._backend.bind(**context).opt(depth=2).log(level, message)

    def debug(self, message: str, **context) -> None:
        self._log("DEBUG", message, context)

    def info(self, message: str, **context) -> None:
        self._log("INFO", message, context)

    def warning(self, message: str, **context) -> None:
        self._log("WARNING", message, context)

    def error(self, message: str, **context) -> None:
        self._log("ERROR", message, context)

    def exception(self, message: str, **context) -> None:
        self._backend.bind(**context).opt(depth=1, exception=True).error(message)

    def start_timer(self, name: str) -> None:
        """Start (or restart) a named timer."""
        self._timers[name] = time.perf_counter()

    def stop_timer(self, name: str) -> float:
        """Stop a named timer and return elapsed seconds (0.0 if never started)."""
        started = self._timers.pop(name, None)
        if started is None:
            return 0.0
        return time.perf_counter() - started


_LOGGER: Optional[PipelineLogger] = None


def setup_logging(
    console_level: str = 'INFO',
    log_file: Optional[Union[str, Path]] = None
) -> PipelineLogger:
    """
    Configure console (stderr) and optional file sinks.

    Args:
        console_level: Minimum level printed to stderr
        log_file: Optional path; receives everything from DEBUG up

    Returns:
        The process-wide PipelineLogger
    """
    _loguru_logger.remove()
    _loguru_logger.add(sys.stderr, level=console_level.upper(), format=CONSOLE_FORMAT)

    if log_file is not None:
        add_log_file(log_file)

    logger = get_logger()
    logger.debug(f"Logger configured at level: {console_level.upper()}")
    return logger


def add_log_file(log_file: Union[str, Path]) -> None:
    """Add a DEBUG file sink, creating its directory if needed."""
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    _loguru_logger.add(str(log_file), level="DEBUG", format=FILE_FORMAT)


def get_logger() -> PipelineLogger:
    """Return the process-wide PipelineLogger, creating it on first use."""
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = PipelineLogger()
    return _LOGGER
