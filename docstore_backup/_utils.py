import logging
import re

logger = logging.getLogger("docstore-backup")

_DURATION_RE = re.compile(r"^\d+(d|h|m|s|ms|micros|nanos)$")


def is_valid_duration(value: str) -> bool:
    """Check a store time unit string such as ``10m`` or ``30s``."""
    return bool(_DURATION_RE.match(value or ""))


def get_logger(custom: logging.Logger = None) -> logging.Logger:
    """Return the injected logger, or the package logger."""
    return custom if custom is not None else logger
