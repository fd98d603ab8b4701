"""
Logging for kinempc.

Everything logs under the ``kinempc`` logger, configured from:
- KINEMPC_LOG_LEVEL (DEBUG, INFO, ...; default INFO)
- KINEMPC_LOG_FORMAT ("json" for one JSON object per line, else plain text)
- KINEMPC_LOG_FILE (optional file written next to stderr)

The profiling helpers exist mainly to watch solve times against the solver's
CPU-time cap.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, List, NamedTuple, Optional, TypeVar

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

LOGGER_NAME = "kinempc"

LOG_LEVEL_ENV = "KINEMPC_LOG_LEVEL"
LOG_FORMAT_ENV = "KINEMPC_LOG_FORMAT"
LOG_FILE_ENV = "KINEMPC_LOG_FILE"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


@dataclass(frozen=True)
class LoggingSettings:
    level: int = logging.INFO
    json_format: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        level = getattr(logging, level_name, None)
        if not isinstance(level, int):
            level = logging.INFO
        return cls(
            level=level,
            json_format=os.environ.get(LOG_FORMAT_ENV, "").lower() == "json",
            log_file=os.environ.get(LOG_FILE_ENV) or None,
        )

    def formatter(self) -> logging.Formatter:
        if self.json_format:
            return JsonFormatter()
        return logging.Formatter(TEXT_FORMAT)


# =============================================================================
# Logger Setup
# =============================================================================

_logger: Optional[logging.Logger] = None
_owned_handlers: List[logging.Handler] = []


def setup_logging(
    level: Optional[int] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """Configure the ``kinempc`` logger.

    Arguments left as None fall back to the environment. Without ``force``
    an already configured logger is returned untouched; with it, handlers
    installed by a previous call are closed and replaced (handlers added by
    other code are left alone).
    """
    global _logger, _owned_handlers

    if _logger is not None and not force:
        return _logger

    env = LoggingSettings.from_env()
    settings = LoggingSettings(
        level=env.level if level is None else level,
        json_format=env.json_format if json_format is None else json_format,
        log_file=log_file or env.log_file,
    )

    logger = logging.getLogger(LOGGER_NAME)
    for handler in _owned_handlers:
        logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    formatter = settings.formatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(settings.level)
    logger.propagate = False

    _logger = logger
    _owned_handlers = handlers
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Package logger, or its ``kinempc.<name>`` child."""
    logger = _logger or setup_logging()
    return logger.getChild(name) if name else logger


def LOG_DEBUG(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().debug(msg, *args, **kwargs)


def LOG_INFO(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().info(msg, *args, **kwargs)


def LOG_WARN(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().warning(msg, *args, **kwargs)


def LOG_ERROR(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().error(msg, *args, **kwargs)


# =============================================================================
# Profiling
# =============================================================================


@contextmanager
def profile_scope(name: str, log_level: int = logging.DEBUG):
    """Log the wall time spent inside the block.

    Example:
        with profile_scope("ipopt solve"):
            solution = backend.solve(problem)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        get_logger().log(log_level, f"{name} took {time.perf_counter() - start:.4f}s")


def timed(func: F) -> F:
    """Decorator form of ``profile_scope`` labelled with the function name."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with profile_scope(func.__name__):
            return func(*args, **kwargs)

    return wrapper  # type: ignore


class TimingSummary(NamedTuple):
    mean_ms: float
    max_ms: float
    count: int
    over_budget: int = 0


class SolveTimer:
    """Per-cycle solve times of a controller run.

    Example:
        timer = SolveTimer("closed loop", budget_ms=500.0)
        for _ in range(steps):
            with timer.measure():
                controller.solve(state, polynomial)
        timer.log_summary()
    """

    def __init__(self, name: str, budget_ms: Optional[float] = None):
        self.name = name
        self.budget_ms = budget_ms
        self._times_ms: List[float] = []

    def __len__(self) -> int:
        return len(self._times_ms)

    def record(self, elapsed_ms: float) -> None:
        self._times_ms.append(float(elapsed_ms))

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record((time.perf_counter() - start) * 1000.0)

    def summary(self) -> TimingSummary:
        if not self._times_ms:
            return TimingSummary(0.0, 0.0, 0, 0)
        times = np.asarray(self._times_ms)
        over = 0 if self.budget_ms is None else int(np.count_nonzero(times > self.budget_ms))
        return TimingSummary(float(times.mean()), float(times.max()), len(times), over)

    def log_summary(self) -> None:
        stats = self.summary()
        if stats.count == 0:
            LOG_INFO(f"{self.name}: no solves timed")
            return
        LOG_INFO(
            f"{self.name}: {stats.count} solves, mean {stats.mean_ms:.1f} ms, "
            f"max {stats.max_ms:.1f} ms"
        )
        if stats.over_budget:
            LOG_WARN(
                f"{self.name}: {stats.over_budget} solves exceeded the "
                f"{self.budget_ms:.0f} ms budget"
            )

    def reset(self) -> None:
        self._times_ms = []


setup_logging()
