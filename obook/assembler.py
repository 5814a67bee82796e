"""
Book assembly: metadata -> chapters -> cached bodies + images -> package.

One ``BookAssembler`` drives a single book export.  Chapters are walked
strictly in table-of-contents order, one at a time; the per-chapter state
is kept in ``statuses`` so callers and tests can see what happened to each
chapter without parsing log output.

Usage::

    settings = Settings.from_env()
    with ApiClient(settings, credentials=cookie) as client:
        path = BookAssembler(settings, client, "9781492056348").create()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path

from .assets import AssetResolver
from .cache import ContentCache
from .config import Settings
from .epub_builder import build_epub
from .errors import TransportError, UnsupportedFormat
from .models import (
    SUPPORTED_FORMAT,
    BookMetadata,
    Chapter,
    ChapterRecord,
    ChapterStatus,
    EpubManifest,
)
from .rewrite import rewrite_sources

log = logging.getLogger("obook.assembler")

COVER_IMAGE = "cover.jpg"
EPUB_EXT = ".epub"

_URL_RE = re.compile(
    r"(http|https)://(\w+:{0,1}\w*)?(\S+)(:[0-9]+)?(/|/([\w#!:.?+=&%!\-/]))?"
)


def is_url(value: str) -> bool:
    """Loose check that *value* is an absolute http(s) URL."""
    return bool(_URL_RE.match(value or ""))


def join_names(people) -> str:
    """``[{"name": "A"}, {"name": "B"}]`` -> ``"A, B"``; empty for none."""
    if not people:
        return ""
    return ", ".join(p.get("name", "") for p in people)


def output_filename(title: str) -> str:
    """Package filename for a title: lowercased, whitespace runs -> ``-``."""
    return re.sub(r"\s+", "-", title.lower()) + EPUB_EXT


class BookAssembler:
    """Fetches one book and hands the assembled manifest to a packager.

    Parameters
    ----------
    settings : Settings
        Paths and retry policy for this job.
    client : ApiClient
        Authenticated transport shared by every step.
    book_id : str
        Identifier used in ``{api_url}/book/{book_id}`` and for the cache root.
    packager : callable
        ``packager(manifest, output_path, client) -> Path``; defaults to
        :func:`obook.epub_builder.build_epub`.
    progress_callback : callable, optional
        ``progress_callback(done, total, record)`` after every chapter.
    """

    def __init__(
        self,
        settings: Settings,
        client,
        book_id: str,
        packager: Callable = build_epub,
        progress_callback: Callable | None = None,
    ):
        self.settings = settings
        self.client = client
        self.book_id = str(book_id)
        self.packager = packager
        self.progress_callback = progress_callback

        self._retry = settings.retry_call()
        cache_root = settings.book_cache_dir(self.book_id)
        self.cache = ContentCache(cache_root, client, retry_call=self._retry)
        self.resolver = AssetResolver(cache_root, client, retry_call=self._retry)

        self.metadata: BookMetadata | None = None
        self.statuses: dict[str, ChapterStatus] = {}
        self.missing_images: dict[str, tuple[str, ...]] = {}

    # ── Metadata ────────────────────────────────────────────────────────

    def fetch_metadata(self) -> BookMetadata:
        """Fetch book metadata and enforce the supported format.

        Raises
        ------
        TransportError
            The metadata request failed.
        UnsupportedFormat
            The book is not a ``"book"`` (video, audiobook, ...).
        """
        data = self.client.fetch("GET", self.settings.book_url(self.book_id))
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected metadata payload for {self.book_id}")

        meta = BookMetadata.from_api(data)
        if meta.format != SUPPORTED_FORMAT:
            log.error("%s format not supported.", meta.format)
            raise UnsupportedFormat(meta.format)

        self.metadata = meta
        return meta

    # ── Cover ───────────────────────────────────────────────────────────

    def resolve_cover(self, chapter_refs) -> str | None:
        """Find the cover image URL from the title page, if there is one."""
        cover_ref = next(
            (c for c in chapter_refs if "cover" in c or "titlepage" in c), None
        )
        if cover_ref is None:
            return None

        try:
            page = self.client.fetch("GET", cover_ref)
        except TransportError as e:
            log.warning("Title page %s unavailable, building without cover: %s", cover_ref, e)
            return None
        if not isinstance(page, dict):
            return None

        title_page = Chapter.from_api(page)
        if COVER_IMAGE not in title_page.images:
            return None

        full_path = title_page.asset_base_url + COVER_IMAGE
        return full_path if is_url(full_path) else None

    # ── Chapters ────────────────────────────────────────────────────────

    def fetch_chapter(self, url: str) -> Chapter:
        data = self._retry(lambda: self.client.fetch("GET", url))
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected chapter payload from {url}")
        return Chapter.from_api(data)

    def process_chapter(self, url: str) -> ChapterRecord:
        """Fetch -> cache-or-download -> resolve images -> rewrite.

        A chapter fetch failure marks the chapter FAILED and propagates.
        """
        self.statuses[url] = ChapterStatus.PENDING
        try:
            chapter = self.fetch_chapter(url)
            content = self.cache.get(chapter.content)
        except TransportError:
            self.statuses[url] = ChapterStatus.FAILED
            raise

        status = ChapterStatus.CACHED if self.cache.last_hit else ChapterStatus.DOWNLOADED

        images_path = self.resolver.resolve_images(chapter)
        failed = self.resolver.last_result.failed
        if failed:
            self.missing_images[url] = failed
            status = ChapterStatus.PARTIAL

        html = rewrite_sources(content, images_path, chapter.images)
        self.statuses[url] = status
        return ChapterRecord(
            title=chapter.title,
            author=join_names(chapter.author),
            html=html,
            url=url,
            status=status,
        )

    # ── Orchestration ───────────────────────────────────────────────────

    def build_manifest(self) -> EpubManifest:
        """Run every step up to (not including) packaging."""
        meta = self.fetch_metadata()
        manifest = EpubManifest(
            title=meta.title,
            author=join_names(meta.authors),
            publisher=join_names(meta.publishers),
            cover=self.resolve_cover(meta.chapters),
            identifier=f"obook-{self.book_id}",
            asset_root=self.settings.book_cache_dir(self.book_id),
        )

        # The first TOC entry is the cover / title page.
        chapter_urls = list(meta.chapters[1:])
        total = len(chapter_urls)
        log.info("Getting:: %s ...", meta.title)
        log.info("%d chapters to download, this can take a while...", total)

        for i, url in enumerate(chapter_urls, 1):
            record = self.process_chapter(url)
            manifest.chapters.append(record)
            log.info("%d/%d Done downloading chapter: %s", i, total, record.title)
            if self.progress_callback:
                self.progress_callback(i, total, record)

        return manifest

    def create(self) -> Path:
        """Build the manifest and write the package. Returns the package path."""
        manifest = self.build_manifest()
        output_dir = Path(self.settings.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / output_filename(manifest.title)

        result = self.packager(manifest, output_path, self.client)
        log.info("Wrote %s", result or output_path)
        return Path(result or output_path)
