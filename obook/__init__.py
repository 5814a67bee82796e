"""Export books from the content API as EPUB files."""

from __future__ import annotations

from .assembler import BookAssembler, output_filename
from .client import ApiClient
from .config import Settings
from .errors import (
    FatalInputError,
    LookupFailed,
    ObookError,
    TransportError,
    UnsupportedFormat,
)
from .lookup import lookup_email

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "BookAssembler",
    "FatalInputError",
    "LookupFailed",
    "ObookError",
    "Settings",
    "TransportError",
    "UnsupportedFormat",
    "lookup_email",
    "output_filename",
]
