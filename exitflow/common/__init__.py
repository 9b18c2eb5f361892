"""Common utilities for exitflow."""

from .logger import setup_logger, get_logger
from .timeutils import parse_iso, round_half_up, utc_now

__all__ = ["get_logger", "parse_iso", "round_half_up", "setup_logger", "utc_now"]
