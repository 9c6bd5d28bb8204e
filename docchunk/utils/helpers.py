"""
Helper utilities for docchunk.
"""

import re
import time
from typing import Iterable, List


def slugify(value: str, separator: str = '-') -> str:
    """Turn a heading, operation id or path into a lowercase URL slug."""
    slug = value.strip().lower()

    # Underscores and whitespace become separators
    slug = re.sub(r'[_\s]+', separator, slug)

    # Drop anything that is not URL safe
    slug = re.sub(rf'[^a-z0-9/{re.escape(separator)}]', '', slug)

    # Collapse repeated separators
    slug = re.sub(rf'{re.escape(separator)}{{2,}}', separator, slug)

    return slug.strip(separator)


def format_duration(seconds: float) -> str:
    """Format duration in seconds as human-readable string."""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to specified length with optional suffix."""
    if len(text) <= max_length:
        return text

    if len(suffix) >= max_length:
        return text[:max_length]

    return text[:max_length - len(suffix)] + suffix


def clean_text(text: str) -> str:
    """Collapse all whitespace runs to single spaces."""
    if not text:
        return ""

    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def lower_set(values: Iterable[str]) -> set:
    """Build a case-insensitive lookup set."""
    return {value.lower() for value in values}


def title_case_words(value: str, separator: str = '_') -> str:
    """Turn ``create_payment_link`` into ``Create Payment Link``."""
    words: List[str] = [word for word in value.split(separator) if word]
    return ' '.join(word[:1].upper() + word[1:] for word in words)


class Timer:
    """Simple timer context manager."""

    def __init__(self, name: str = "Operation"):
        """Initialize timer with optional name."""
        self.name = name
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop timing."""
        self.end_time = time.time()

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.start_time is None:
            return 0.0

        end = self.end_time if self.end_time else time.time()
        return end - self.start_time

    def __str__(self) -> str:
        """String representation of timer."""
        return f"{self.name}: {format_duration(self.elapsed)}"
