"""
EPUB packaging for an assembled book manifest.

Takes the ordered chapter records built by the assembler, embeds every
local image the rewritten markup points at, fetches the cover (when the
manifest names one) and writes a single .epub with ebooklib.
"""

from __future__ import annotations

import html as html_lib
import io
import logging
import mimetypes
import re
from pathlib import Path

from ebooklib import epub
from PIL import Image

from .errors import TransportError
from .models import EpubManifest

log = logging.getLogger("obook.epub")

# ── Constants ────────────────────────────────────────────────────────────────

BOOK_CSS = """\
@charset "UTF-8";
body {
    font-family: "Noto Serif", "Times New Roman", serif;
    line-height: 1.6;
    margin: 1em;
    padding: 0;
    color: #1a1a1a;
}
h2 {
    font-size: 1.3em;
    text-align: center;
    margin: 1.2em 0 0.8em;
    color: #34495e;
}
.chapter-author {
    text-align: center;
    font-style: italic;
    margin: 0 0 1.5em;
}
img {
    max-width: 100%;
}
pre {
    white-space: pre-wrap;
    font-size: 0.85em;
}
"""

LANGUAGE = "en"

_SRC_RE = re.compile(r'(\bsrc\s*=\s*")([^"]*)(")', re.IGNORECASE)


# ── Cover helpers ────────────────────────────────────────────────────────────


def validate_cover(data: bytes) -> bool:
    """Check the cover bytes decode as an image."""
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        return True
    except Exception:
        return False


def fetch_cover(client, url: str | None) -> bytes | None:
    """Download the cover image; None when absent, unreachable or not an image."""
    if not url or client is None:
        return None
    try:
        data = client.get_bytes(url)
    except TransportError as e:
        log.warning("Cover download failed %s: %s", url, e)
        return None
    if not validate_cover(data):
        log.warning("Cover at %s is not a readable image", url)
        return None
    return data


# ── Image embedding ──────────────────────────────────────────────────────────


class _ImageRegistry:
    """Maps local image paths to in-package file names, adding each once.

    Only regular files under *root* are embedded; with no root nothing is.
    """

    def __init__(self, book: epub.EpubBook, root: Path | None = None):
        self.book = book
        self.root = Path(root).resolve() if root is not None else None
        self._names: dict[Path, str] = {}

    def file_name_for(self, path: Path) -> str | None:
        path = path.resolve()
        if path in self._names:
            return self._names[path]
        if self.root is None or not path.is_relative_to(self.root):
            log.info("Not packaging %s: outside the book cache", path)
            return None
        if not path.is_file():
            return None

        media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        file_name = f"images/{len(self._names) + 1:05d}_{path.name}"
        item = epub.EpubImage(
            uid=f"img_{len(self._names) + 1:05d}",
            file_name=file_name,
            media_type=media_type,
            content=path.read_bytes(),
        )
        self.book.add_item(item)
        self._names[path] = file_name
        return file_name

    def embed(self, markup: str) -> str:
        """Replace local file references in *markup* with packaged copies."""

        def _sub(m: re.Match) -> str:
            value = m.group(2)
            if "://" in value or value.startswith("data:") or not value:
                return m.group(0)
            file_name = self.file_name_for(Path(value))
            if file_name is None:
                return m.group(0)
            return f"{m.group(1)}{file_name}{m.group(3)}"

        return _SRC_RE.sub(_sub, markup)


# ── EPUB builder ─────────────────────────────────────────────────────────────


def build_epub(
    manifest: EpubManifest,
    output_path: Path,
    client=None,
) -> Path:
    """Write *manifest* to an EPUB at *output_path*.

    Args:
        manifest: Title, author, publisher, cover URL and ordered chapters.
            Local images are embedded only from under ``manifest.asset_root``.
        output_path: Where to save the .epub file.
        client: Used to download the cover; without it the cover is skipped.

    Returns:
        Path to the created EPUB file.
    """
    book = epub.EpubBook()
    book.set_identifier(manifest.identifier or manifest.title)
    book.set_title(manifest.title)
    book.set_language(LANGUAGE)

    if manifest.author:
        book.add_author(manifest.author)
    if manifest.publisher:
        book.add_metadata("DC", "publisher", manifest.publisher)

    style = epub.EpubItem(
        uid="book_style",
        file_name="style/book.css",
        media_type="text/css",
        content=BOOK_CSS.encode("utf-8"),
    )
    book.add_item(style)

    cover_data = fetch_cover(client, manifest.cover)
    if cover_data:
        book.set_cover("images/cover.jpg", cover_data, create_page=True)

    images = _ImageRegistry(book, manifest.asset_root)
    spine_items: list = ["nav"]
    epub_chapters: list[epub.EpubHtml] = []

    for idx, record in enumerate(manifest.chapters, 1):
        title = record.title or f"Chapter {idx}"
        heading = f"<h2>{html_lib.escape(title)}</h2>"
        if record.author:
            heading += f'\n<p class="chapter-author">{html_lib.escape(record.author)}</p>'

        epub_ch = epub.EpubHtml(
            title=title,
            file_name=f"chapter_{idx:04d}.xhtml",
            lang=LANGUAGE,
        )
        epub_ch.content = f"{heading}\n{images.embed(record.html)}".encode("utf-8")
        epub_ch.add_item(style)

        book.add_item(epub_ch)
        epub_chapters.append(epub_ch)
        spine_items.append(epub_ch)

    book.toc = epub_chapters
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())

    if cover_data:
        spine_items.insert(0, "cover")
    book.spine = spine_items

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    epub.write_epub(str(output_path), book, {})

    return output_path
