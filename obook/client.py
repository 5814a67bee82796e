"""HTTP client for the content API with throttling and cookie credentials.

The client never retries on its own; callers wrap calls in
:func:`obook.retry.retry` where a transient failure is worth another try.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any

import httpx

from .config import HEADERS, Settings
from .errors import TransportError


class ApiClient:
    """Synchronous HTTP client that attaches the session cookie to every call."""

    def __init__(
        self,
        settings: Settings,
        credentials: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.settings = settings
        self.delay = settings.request_delay
        headers = dict(HEADERS)
        if credentials:
            headers["cookie"] = credentials
        self._client = httpx.Client(
            headers=headers,
            timeout=settings.timeout,
            follow_redirects=True,
            transport=transport,
        )
        self._last_request = 0.0

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _throttle(self):
        if self.delay <= 0:
            return
        elapsed = time.time() - self._last_request
        if elapsed < self.delay:
            time.sleep(self.delay - elapsed)
        self._last_request = time.time()

    def request(self, method: str, url: str, body: Any = None) -> httpx.Response:
        """Send one request. Returns the response or raises TransportError."""
        self._throttle()
        try:
            if body is None:
                r = self._client.request(method, url)
            else:
                r = self._client.request(method, url, json=body)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url}: {e}") from e

        if not r.is_success:
            raise TransportError(f"HTTP {r.status_code}: {url}", r.status_code)
        return r

    def fetch(self, method: str, url: str, body: Any = None) -> Any:
        """Send a request and return the parsed body (JSON when possible, else text)."""
        r = self.request(method, url, body)
        if "json" in r.headers.get("content-type", ""):
            try:
                return r.json()
            except ValueError as e:
                raise TransportError(f"Invalid JSON from {url}: {e}") from e
        return r.text

    def get(self, url: str) -> Any:
        return self.fetch("GET", url)

    def get_text(self, url: str) -> str:
        """Fetch a URL and return the body as text, whatever its content type."""
        return self.request("GET", url).text

    def get_bytes(self, url: str) -> bytes:
        """Fetch a URL and return raw bytes (for images)."""
        return self.request("GET", url).content

    def download(self, url: str, dest: str | os.PathLike) -> Path:
        """Stream *url* into *dest*.

        The body goes to ``<dest>.part`` first and is renamed on success, so
        a file at *dest* always holds a complete download.
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")

        self._throttle()
        try:
            with self._client.stream("GET", url) as r:
                if not r.is_success:
                    raise TransportError(f"HTTP {r.status_code}: {url}", r.status_code)
                with open(part, "wb") as f:
                    for chunk in r.iter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            part.unlink(missing_ok=True)
            raise TransportError(f"GET {url}: {e}") from e
        except BaseException:
            part.unlink(missing_ok=True)
            raise

        os.replace(part, dest)
        return dest
