"""Corporate email-domain lookup.

A single unauthenticated POST; no cache, no retry, no shared state with the
book pipeline.
"""

from __future__ import annotations

import logging

import httpx

from .client import ApiClient
from .config import Settings
from .errors import LookupFailed, TransportError

log = logging.getLogger("obook.lookup")


def email_domain(email: str) -> str:
    """``"jane@example.com"`` -> ``"example.com"``."""
    local, sep, domain = email.strip().rpartition("@")
    if not sep or not local or not domain:
        raise LookupFailed(f"Not an email address: {email!r}")
    return domain


def lookup_email(
    email: str,
    settings: Settings | None = None,
    transport: httpx.BaseTransport | None = None,
):
    """Ask the lookup endpoint about the domain of *email*.

    Returns the parsed response body.  Raises ``LookupFailed`` for a
    malformed address or any transport failure.
    """
    settings = settings or Settings.from_env()
    body = {"domain": email_domain(email)}

    with ApiClient(settings, transport=transport) as client:
        try:
            return client.fetch("POST", settings.lookup_url, body)
        except TransportError as e:
            log.error("There was an error during email lookup: %s", e)
            raise LookupFailed(str(e)) from e
