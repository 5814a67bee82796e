"""Content-addressed cache for chapter bodies.

A chapter body is stored under ``<root>/<key>`` where *key* is the MD5 of
the chapter's declared content URL.  The key is known before any network
call, so a second run over the same book never refetches a chapter.
Entries are never invalidated: a file on disk is a completed fetch.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Callable
from pathlib import Path

log = logging.getLogger("obook.cache")


def content_key(ref: str) -> str:
    """Stable 128-bit hex key for a content reference."""
    return hashlib.md5(ref.encode("utf-8")).hexdigest()


class ContentCache:
    """Chapter-body cache rooted at one book's cache directory.

    Parameters
    ----------
    root : Path
        Directory holding the cached files (created if missing).
    client : ApiClient
        Anything with ``get_text(url) -> str``.
    retry_call : callable, optional
        ``retry_call(operation)`` wrapper applied to every network fetch.
    """

    def __init__(self, root: str | os.PathLike, client, retry_call: Callable | None = None):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.client = client
        self._retry = retry_call or (lambda op: op())
        self.last_hit = False

    def path_for(self, ref: str) -> Path:
        return self.root / content_key(ref)

    def get(self, ref: str) -> str:
        """Return the body behind *ref*, fetching and persisting it on a miss."""
        location = self.path_for(ref)

        if location.exists():
            self.last_hit = True
            log.info("- CONTENT - Cached %s", location)
            return location.read_bytes().decode("utf-8")

        content = self._retry(lambda: self.client.get_text(ref))
        part = location.with_name(location.name + ".part")
        # Bytes on both sides so line endings survive the round trip.
        part.write_bytes(content.encode("utf-8"))
        os.replace(part, location)

        self.last_hit = False
        log.info("- CONTENT - Downloaded %s", location)
        return content
