"""Data types shared by the fetch / cache / assemble pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

SUPPORTED_FORMAT = "book"


class ChapterStatus(str, Enum):
    """Where a chapter is in the pipeline.

    ``PENDING`` before its metadata is fetched; ``CACHED`` / ``DOWNLOADED``
    once its body came from disk / network with every image in place;
    ``PARTIAL`` when the body is in but some images failed; ``FAILED`` when
    the chapter itself could not be fetched.
    """

    PENDING = "pending"
    CACHED = "cached"
    DOWNLOADED = "downloaded"
    PARTIAL = "partial"
    FAILED = "failed"


def _names(people) -> tuple[dict, ...]:
    return tuple(p for p in (people or []) if isinstance(p, dict))


@dataclass(frozen=True)
class BookMetadata:
    title: str
    format: str
    authors: tuple[dict, ...] = ()
    publishers: tuple[dict, ...] = ()
    chapters: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict) -> BookMetadata:
        return cls(
            title=data.get("title") or "",
            format=data.get("format") or "",
            authors=_names(data.get("authors")),
            publishers=_names(data.get("publishers")),
            chapters=tuple(data.get("chapters") or ()),
        )


@dataclass(frozen=True)
class Chapter:
    title: str
    content: str
    author: tuple[dict, ...] = ()
    images: tuple[str, ...] = ()
    asset_base_url: str = ""

    @classmethod
    def from_api(cls, data: dict) -> Chapter:
        return cls(
            title=data.get("title") or "",
            content=data.get("content") or "",
            author=_names(data.get("author")),
            images=tuple(data.get("images") or ()),
            asset_base_url=data.get("asset_base_url") or "",
        )


@dataclass
class ChapterRecord:
    """One chapter as it goes into the package."""

    title: str
    author: str
    html: str
    url: str = ""
    status: ChapterStatus = ChapterStatus.PENDING


@dataclass
class EpubManifest:
    title: str
    author: str = ""
    publisher: str = ""
    cover: str | None = None
    identifier: str = ""
    chapters: list[ChapterRecord] = field(default_factory=list)
    # Only local files under this directory may be packaged.
    asset_root: Path | None = None
