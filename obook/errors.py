"""Exception hierarchy for obook."""

from __future__ import annotations


class ObookError(Exception):
    pass


class FatalInputError(ObookError):
    """The input can never produce a package; retrying will not help."""


class UnsupportedFormat(FatalInputError):
    def __init__(self, fmt: str):
        super().__init__(f"{fmt} format not supported.")
        self.format = fmt


class TransportError(ObookError):
    """Network failure or non-2xx response from the remote API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LookupFailed(ObookError):
    """The corporate email-domain lookup could not be completed."""
