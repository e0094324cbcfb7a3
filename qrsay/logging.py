"""
Logging for the qrsay package.

The root logger gets one stdout handler the first time this module is
imported. Cart and service modules call ``get_logger(__name__)``; ids and
customer-typed text go through the sanitizers below before being logged.

Environment:
    LOG_LEVEL   level name, INFO when unset
    QRSAY_ENV   "production" drops timestamps (the platform adds its own)
"""

import logging
import os
import sys
from functools import cache

_DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_PRODUCTION_FORMAT = "%(levelname)s - %(name)s - %(message)s"

_MAX_ID_LENGTH = 12
_CONTROL_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": ""})


def _configure_root_logger() -> None:
    root = logging.getLogger()
    if root.handlers:
        # The host application already set logging up
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    production = os.environ.get("QRSAY_ENV") == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_PRODUCTION_FORMAT if production else _DETAILED_FORMAT))
    root.setLevel(level)
    root.addHandler(handler)

    # One line per backend request is noise at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Loggable form of a dish, restaurant or cart owner id.

    Composite line item keys (``dish|variant|extras``) get long, so only the
    first 12 characters are kept; that is enough to correlate log lines.
    """
    if not id_value:
        return "N/A"
    return str(id_value).translate(_CONTROL_CHARS)[:_MAX_ID_LENGTH]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Loggable form of customer-typed text such as promo codes and search queries."""
    if not value:
        return "N/A"
    safe_value = str(value).translate(_CONTROL_CHARS)
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


__all__ = [
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
