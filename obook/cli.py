"""
obook: export a book from the content API as an EPUB.

Commands:
    download <book_id>      Fetch metadata, chapters and images, write the .epub
    lookup <email>          Look up the corporate login for an email domain

The session cookie comes from --cookie or the OBOOK_COOKIE environment
variable.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .assembler import BookAssembler
from .client import ApiClient
from .config import Settings
from .errors import FatalInputError, LookupFailed, TransportError
from .lookup import lookup_email
from .models import ChapterStatus

console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _print_summary(assembler: BookAssembler, output: Path) -> None:
    counts = {s: 0 for s in ChapterStatus}
    for status in assembler.statuses.values():
        counts[status] += 1

    summary = (
        f"[green]{counts[ChapterStatus.DOWNLOADED]}[/green] downloaded  •  "
        f"[blue]{counts[ChapterStatus.CACHED]}[/blue] cached  •  "
        f"[yellow]{counts[ChapterStatus.PARTIAL]}[/yellow] partial  •  "
        f"[bold]{len(assembler.statuses)}[/bold] total\n"
        f"[dim]{output}[/dim]"
    )
    console.print(
        Panel(summary, title="[bold cyan]EPUB Export[/bold cyan]", border_style="cyan")
    )

    if assembler.missing_images:
        table = Table(
            title="Missing images (package built without them)",
            show_header=True,
            header_style="bold yellow",
        )
        table.add_column("Chapter", ratio=2)
        table.add_column("Images", ratio=3)
        for url, images in assembler.missing_images.items():
            table.add_row(url, ", ".join(images))
        console.print(table)


def cmd_download(args) -> int:
    """Export one book. Returns the process exit code."""
    cookie = args.cookie or os.environ.get("OBOOK_COOKIE")
    if not cookie:
        console.print("[red]No session cookie:[/red] pass --cookie or set OBOOK_COOKIE")
        return 1

    settings = Settings.from_env(
        cache_dir=args.cache_dir,
        output_dir=args.output_dir,
        max_retries=args.retries,
        retry_delay=args.retry_delay,
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[cyan]{task.description}[/cyan]"),
        BarColumn(bar_width=30),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        console=console,
    )
    task = progress.add_task("Chapters", total=None)

    def on_chapter(done, total, record):
        progress.update(
            task, completed=done, total=total, description=record.title[:40] or "Chapters"
        )

    with ApiClient(settings, credentials=cookie) as client:
        assembler = BookAssembler(
            settings, client, args.book_id, progress_callback=on_chapter
        )
        try:
            with progress:
                output = assembler.create()
        except FatalInputError as e:
            console.print(f"[red]{e}[/red] Nothing was produced.")
            return 1
        except TransportError as e:
            console.print(f"[red]Download failed:[/red] {e}. Nothing was produced.")
            return 1

    _print_summary(assembler, output)
    return 0


def cmd_lookup(args) -> int:
    try:
        result = lookup_email(args.email)
    except LookupFailed as e:
        console.print(f"[red]Email lookup failed:[/red] {e}")
        return 1
    if isinstance(result, str):
        console.print(result)
    else:
        console.print_json(data=result)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obook",
        description="Export books from the content API as EPUB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every cache hit/miss")

    sub = parser.add_subparsers(dest="command")

    p_dl = sub.add_parser("download", help="Export a book as EPUB")
    p_dl.add_argument("book_id", help="Book identifier (e.g. 9781492056348)")
    p_dl.add_argument("--cookie", help="Session cookie string (default: $OBOOK_COOKIE)")
    p_dl.add_argument("--output-dir", type=Path, help="Where to write the .epub")
    p_dl.add_argument("--cache-dir", type=Path, help="Chapter/image cache root")
    p_dl.add_argument("--retries", type=int, help="Attempts per chapter/image request")
    p_dl.add_argument("--retry-delay", type=float, help="Seconds between attempts")

    p_lookup = sub.add_parser("lookup", help="Corporate login lookup for an email")
    p_lookup.add_argument("email")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    if args.command == "download":
        return cmd_download(args)
    return cmd_lookup(args)


if __name__ == "__main__":
    sys.exit(main())
