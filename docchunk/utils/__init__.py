"""
Utilities module for docchunk.
"""

from .logging import get_logger, setup_logging
from .helpers import slugify, truncate_text, clean_text, format_duration, Timer

__all__ = [
    "get_logger",
    "setup_logging",
    "slugify",
    "truncate_text",
    "clean_text",
    "format_duration",
    "Timer",
]
