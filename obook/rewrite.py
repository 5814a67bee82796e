"""Point ``src="..."`` references in chapter markup at the local asset directory.

This is a textual substitution on the ``src="`` pattern, not a DOM walk:
every double-quoted ``src`` value is rewritten, whatever tag carries it.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import urlsplit

from .assets import split_image_path

_SRC_RE = re.compile(r'(\bsrc\s*=\s*")([^"]*)(")', re.IGNORECASE)


def _src_path(value: str) -> str:
    """The path part of a src value, without scheme, host, query or fragment."""
    if "://" in value or value.startswith("//"):
        return urlsplit(value).path
    return re.split(r"[?#]", value, maxsplit=1)[0]


def _local_name(value: str, declared: list[str]) -> str | None:
    fragment, filename = split_image_path(_src_path(value))
    if not filename:
        return None
    normalised = f"{fragment}/{filename}" if fragment else filename

    # Prefer the longest declared reference the src ends with, so the
    # rewritten path matches the directory layout the resolver wrote.
    for ref in declared:
        if normalised == ref or normalised.endswith("/" + ref):
            return ref
    # The src may drop the fragment; a single declared match by name wins.
    same_name = [ref for ref in declared if ref.rpartition("/")[2] == filename]
    if len(same_name) == 1:
        return same_name[0]
    return filename


def rewrite_sources(
    html: str,
    asset_dir: str | os.PathLike | None,
    images: Iterable[str] = (),
) -> str:
    """Rewrite every ``src="..."`` in *html* to a path under *asset_dir*.

    The final path component of the original value is always kept.  When
    *images* (the chapter's declared image references) is given and one of
    them is a path suffix of the src value, the whole reference is kept so
    the result points at ``<asset_dir>/<fragment>/<filename>``.  Failing
    that, a single declared reference with the same filename is used.  Returns
    *html* unchanged when *asset_dir* is None.  ``data:`` URIs and values
    without a filename are left alone.
    """
    if asset_dir is None:
        return html

    base = Path(asset_dir).as_posix().rstrip("/")
    declared = sorted(
        {"/".join(p for p in split_image_path(i) if p) for i in images},
        key=len,
        reverse=True,
    )

    def _sub(m: re.Match) -> str:
        value = m.group(2)
        if value.startswith("data:"):
            return m.group(0)
        name = _local_name(value, declared)
        if name is None:
            return m.group(0)
        return f"{m.group(1)}{base}/{name}{m.group(3)}"

    return _SRC_RE.sub(_sub, html)
