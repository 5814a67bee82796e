"""Tests for writing a manifest out as an EPUB."""

from __future__ import annotations

import io
import tempfile
import unittest
import zipfile
from pathlib import Path

from PIL import Image

from obook.epub_builder import build_epub, fetch_cover, validate_cover
from obook.models import ChapterRecord, EpubManifest

from .fakes import FakeClient

COVER_URL = "https://cdn.test/cover.jpg"


def _jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


class TestCover(unittest.TestCase):

    def test_validate_cover(self):
        self.assertTrue(validate_cover(_jpeg_bytes()))
        self.assertFalse(validate_cover(b"<html>not an image</html>"))
        self.assertFalse(validate_cover(b""))

    def test_fetch_cover_skips_failures(self):
        client = FakeClient(fail=[COVER_URL])
        self.assertIsNone(fetch_cover(client, COVER_URL))
        self.assertIsNone(fetch_cover(client, None))
        self.assertIsNone(fetch_cover(None, COVER_URL))

    def test_fetch_cover_rejects_non_images(self):
        client = FakeClient(blobs={COVER_URL: b"oops"})
        self.assertIsNone(fetch_cover(client, COVER_URL))


class TestBuildEpub(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _names(self, path: Path) -> list[str]:
        with zipfile.ZipFile(path) as zf:
            return zf.namelist()

    def _read(self, path: Path, suffix: str) -> str:
        with zipfile.ZipFile(path) as zf:
            name = next(n for n in zf.namelist() if n.endswith(suffix))
            return zf.read(name).decode("utf-8")

    def test_chapters_and_local_images_are_packaged(self):
        asset_dir = self.tmp / "cache" / "abc_images" / "fig"
        asset_dir.mkdir(parents=True)
        (asset_dir / "a.png").write_bytes(b"\x89PNG fake")

        manifest = EpubManifest(
            title="My Book",
            author="Ada",
            publisher="Test Press",
            identifier="obook-1",
            asset_root=self.tmp / "cache",
            chapters=[
                ChapterRecord(
                    title="One",
                    author="Ada",
                    html=f'<p>first</p><img src="{asset_dir / "a.png"}"/>',
                ),
                ChapterRecord(title="Two", author="", html="<p>second</p>"),
            ],
        )

        out = build_epub(manifest, self.tmp / "out" / "my-book.epub")

        self.assertTrue(out.is_file())
        names = self._names(out)
        self.assertTrue(any(n.endswith("chapter_0001.xhtml") for n in names))
        self.assertTrue(any(n.endswith("chapter_0002.xhtml") for n in names))
        self.assertTrue(any(n.endswith("images/00001_a.png") for n in names))

        first = self._read(out, "chapter_0001.xhtml")
        self.assertIn("One", first)
        self.assertIn('src="images/00001_a.png"', first)
        self.assertNotIn(str(asset_dir), first)

    def test_missing_local_image_left_as_is(self):
        manifest = EpubManifest(
            title="T",
            chapters=[ChapterRecord(title="One", author="", html='<img src="/nope/x.png"/>')],
            asset_root=self.tmp,
        )
        out = build_epub(manifest, self.tmp / "t.epub")
        self.assertFalse(any("images/" in n for n in self._names(out)))

    def test_files_outside_asset_root_are_not_packaged(self):
        cache = self.tmp / "cache"
        cache.mkdir()
        secret = self.tmp / "secret.txt"
        secret.write_text("do not ship", encoding="utf-8")

        html = (
            f'<img src="{secret}"/>'
            f'<img src="{cache}/../secret.txt"/>'
            '<img src="/etc/hostname"/>'
        )
        manifest = EpubManifest(
            title="T",
            asset_root=cache,
            chapters=[ChapterRecord(title="One", author="", html=html)],
        )
        out = build_epub(manifest, self.tmp / "t.epub")

        self.assertFalse(any("images/" in n for n in self._names(out)))
        self.assertIn(f'src="{secret}"', self._read(out, "chapter_0001.xhtml"))

    def test_nothing_local_is_packaged_without_asset_root(self):
        image = self.tmp / "a.png"
        image.write_bytes(b"\x89PNG fake")
        manifest = EpubManifest(
            title="T",
            chapters=[ChapterRecord(title="One", author="", html=f'<img src="{image}"/>')],
        )
        out = build_epub(manifest, self.tmp / "t.epub")
        self.assertFalse(any("images/" in n for n in self._names(out)))

    def test_cover_is_downloaded_and_embedded(self):
        client = FakeClient(blobs={COVER_URL: _jpeg_bytes()})
        manifest = EpubManifest(
            title="T",
            cover=COVER_URL,
            chapters=[ChapterRecord(title="One", author="", html="<p>x</p>")],
        )
        out = build_epub(manifest, self.tmp / "t.epub", client)

        self.assertEqual(client.urls(), [COVER_URL])
        self.assertTrue(any(n.endswith("images/cover.jpg") for n in self._names(out)))


if __name__ == "__main__":
    unittest.main()
