"""Per-chapter image download into the chapter's asset directory.

Images are cached by existence only: ``<root>/<key>_images/<fragment>/<name>``
is unique per chapter and image reference, so a present file is never
fetched again.  A failing image is logged and skipped; a chapter with a
partial image set is still packaged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import NamedTuple

from .cache import content_key
from .errors import TransportError
from .models import Chapter

log = logging.getLogger("obook.assets")


class AssetResult(NamedTuple):
    """Outcome of one ``resolve_images`` call."""

    directory: Path | None
    downloaded: tuple[str, ...] = ()
    cached: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


def split_image_path(image: str) -> tuple[str, str]:
    """Split an image reference into (directory fragment, filename).

    The fragment is normalised so it stays inside the asset directory:
    empty, ``.`` and ``..`` components and any leading ``/`` are dropped.

    >>> split_image_path("graphics/ch01/fig1.png")
    ('graphics/ch01', 'fig1.png')
    >>> split_image_path("../../etc/passwd")
    ('etc', 'passwd')
    """
    parts = [p for p in image.split("/") if p not in ("", ".", "..")]
    if not parts:
        return "", ""
    return "/".join(parts[:-1]), parts[-1]


def asset_dir_for(root: str | os.PathLike, chapter: Chapter) -> Path:
    return Path(root) / f"{content_key(chapter.content)}_images"


def local_image_path(asset_dir: str | os.PathLike, image: str) -> Path | None:
    """Where *image* lives under *asset_dir*, or None for an empty reference."""
    fragment, filename = split_image_path(image)
    if not filename:
        return None
    base = Path(asset_dir)
    return base / PurePosixPath(fragment) / filename if fragment else base / filename


class AssetResolver:
    """Downloads a chapter's images next to the cached chapter body.

    Parameters
    ----------
    root : Path
        The book's cache directory.
    client : ApiClient
        Anything with ``download(url, dest)``.
    retry_call : callable, optional
        ``retry_call(operation)`` wrapper applied to every download.
    """

    def __init__(self, root: str | os.PathLike, client, retry_call: Callable | None = None):
        self.root = Path(root)
        self.client = client
        self._retry = retry_call or (lambda op: op())
        self.last_result = AssetResult(None)

    def resolve_images(self, chapter: Chapter) -> Path | None:
        """Fetch every image of *chapter* that is not on disk yet.

        Returns the chapter's asset directory (even if some images failed),
        or None when the chapter has no images.  Never raises for a single
        image; see ``last_result`` for the per-image outcome.
        """
        if not chapter.images:
            self.last_result = AssetResult(None)
            return None

        asset_dir = asset_dir_for(self.root, chapter)
        downloaded: list[str] = []
        cached: list[str] = []
        failed: list[str] = []

        for image in chapter.images:
            dest = local_image_path(asset_dir, image)
            if dest is None:
                log.warning("- IMG - Skipping empty image reference in %s", chapter.title)
                failed.append(image)
                continue

            if dest.exists():
                log.info("- IMG - Cached %s", dest)
                cached.append(image)
                continue

            url = chapter.asset_base_url + image
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                self._retry(lambda: self.client.download(url, dest))
            except (TransportError, OSError) as e:
                log.warning("- IMG - Failed %s: %s", url, e)
                failed.append(image)
                continue

            log.info("- IMG - Downloaded %s", dest)
            downloaded.append(image)

        self.last_result = AssetResult(
            asset_dir, tuple(downloaded), tuple(cached), tuple(failed)
        )
        return asset_dir
