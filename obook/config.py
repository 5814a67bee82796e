"""
Configuration for obook.

Defaults live in module constants; ``Settings.from_env()`` applies the
environment overrides.  Every component receives a ``Settings`` instance
at construction time, so two jobs in one process never share paths.

Environment variables:
    OBOOK_API_URL       API root (default: O'Reilly learning API v1)
    OBOOK_CACHE_DIR     chapter/image cache root
    OBOOK_OUTPUT_DIR    where finished .epub files are written
"""

from __future__ import annotations

import functools
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .retry import MAX_RETRY_COUNT, RETRY_DELAY, retry

API_URL = "https://learning.oreilly.com/api/v1"
LOOKUP_URL = "https://www.oreilly.com/member/auth/corporate/lookup/"

HEADERS = {
    "accept": "*/*",
    "cache-control": "no-cache",
    "connection": "keep-alive",
}

MAX_RETRIES = MAX_RETRY_COUNT
REQUEST_DELAY = 0.0  # minimum seconds between requests
TIMEOUT = 30

DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "epub_tmp"
DEFAULT_OUTPUT_DIR = Path.home() / "obooks"


@dataclass
class Settings:
    api_url: str = API_URL
    lookup_url: str = LOOKUP_URL
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    output_dir: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    request_delay: float = REQUEST_DELAY
    timeout: float = TIMEOUT

    @classmethod
    def from_env(cls, **overrides) -> Settings:
        """Build settings from the environment; explicit *overrides* win."""
        values: dict = {
            "api_url": os.environ.get("OBOOK_API_URL", API_URL),
            "cache_dir": Path(os.environ.get("OBOOK_CACHE_DIR", str(DEFAULT_CACHE_DIR))),
            "output_dir": Path(
                os.environ.get("OBOOK_OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR))
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def book_url(self, book_id: str) -> str:
        return f"{self.api_url}/book/{book_id}"

    def book_cache_dir(self, book_id: str) -> Path:
        """Cache root for a single book (chapters and their image trees)."""
        return Path(self.cache_dir) / str(book_id)

    def retry_call(self):
        """Return ``retry`` bound to the configured attempt count and delay."""
        return functools.partial(
            retry, attempts=self.max_retries, delay=self.retry_delay
        )
