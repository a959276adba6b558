# app_logger.py
"""
A small wrapper around the standard library `logging` module.
Every module gets its logger from here (``get_logger(tag)``), so there is a
single source of truth for log configuration.  The process owns the
configuration; protocol components only emit records.
"""

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, List, Optional

# ----------------------------------------------------------------------
# 1️⃣ Dedicated namespace logger
# ----------------------------------------------------------------------
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOGGER_NAME = "libre2"

logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(logging.INFO)
logger.propagate = False               # keep records out of the root logger


# ----------------------------------------------------------------------
# 2️⃣ In‑memory handler – stores the last N log records for the UI
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class LogBufferPolicy:
    """How many formatted records the in-memory history keeps."""
    capacity: int = 100


class MemoryHandler(logging.Handler):
    """
    Handler that keeps the newest N formatted log strings in a deque.
    The bound comes from a ``LogBufferPolicy``; the oldest line is dropped
    once the deque is full.
    """
    def __init__(self, policy: LogBufferPolicy = LogBufferPolicy()):
        super().__init__()
        self.policy = policy
        self.buffer: Deque[str] = deque(maxlen=policy.capacity)

    def emit(self, record: logging.LogRecord) -> None:
        msg = self.format(record)
        self.buffer.append(msg)

    def apply_policy(self, policy: LogBufferPolicy) -> None:
        """Resize the history, keeping the most recent lines."""
        self.policy = policy
        self.buffer = deque(self.buffer, maxlen=policy.capacity)

    def history(self, count: Optional[int] = None) -> List[str]:
        """Return the *count* most recent lines (all of them by default)."""
        lines = list(self.buffer)
        if count is None:
            return lines
        return lines[-count:] if count > 0 else []

    def clear(self) -> None:
        self.buffer.clear()

    def export(self) -> str:
        return "\n".join(self.buffer)


formatter = logging.Formatter(LOG_FORMAT)

memory_handler = MemoryHandler()
memory_handler.setFormatter(formatter)
logger.addHandler(memory_handler)

console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)


def configure_logging(
    policy: Optional[LogBufferPolicy] = None,
    level: int = logging.INFO,
    log_file: str | Path | None = None,
) -> MemoryHandler:
    """
    Apply the process-wide logging setup and return the memory handler so
    the caller (CLI or UI) can read the history.
    """
    if policy is not None:
        memory_handler.apply_policy(policy)
    logger.setLevel(level)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)      # capture everything
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return memory_handler


def get_logger(tag: str) -> logging.Logger:
    """Component logger, e.g. ``get_logger("decoder")`` -> ``libre2.decoder``."""
    return logger.getChild(tag)


def _render(data: Any) -> str:
    if isinstance(data, BaseException):
        return f"{type(data).__name__}: {data}"
    if isinstance(data, (bytes, bytearray)):
        return data.hex()
    return repr(data)


def log(level: int, tag: str, message: str, data: Any = None) -> None:
    """
    ``log(level, tag, message, optional_data)`` entry point for callers that
    do not hold a logger.  *data* is appended to the message.
    """
    if data is not None:
        get_logger(tag).log(level, "%s | %s", message, _render(data))
    else:
        get_logger(tag).log(level, "%s", message)
