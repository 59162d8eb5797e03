"""Utility modules: logging, rate limiting."""

from weave_toolkit.utils.logging import setup_logging, get_logger
from weave_toolkit.utils.rate_limit import RateLimiter

__all__ = [
    "setup_logging",
    "get_logger",
    "RateLimiter",
]
