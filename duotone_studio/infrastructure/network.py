from __future__ import annotations

import logging
import time
from typing import Callable

from urllib.parse import urlsplit

import requests

from ..config import SETTINGS
from ..errors import OversizedInputError, SourceFetchError, UnsupportedFormatError
from ..validation import ACCEPTED_MIME_TYPES

log = logging.getLogger("duotone-studio")

SessionFactory = Callable[[], requests.Session]

CHUNK_SIZE = 64 * 1024


def _check_source_url(url: str) -> str:
    parts = urlsplit(url or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise SourceFetchError(f"Invalid source URL: {url!r}")
    return url


class SourceFetcher:
    """Downloads source images for the studio when no file is uploaded."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory or requests.Session
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers.update({"User-Agent": "duotone-studio/1.0"})
        return session

    def _read_body(self, response: requests.Response, max_bytes: int) -> bytes:
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise OversizedInputError(f"source declares {declared} bytes, limit is {max_bytes}")

        body = bytearray()
        for chunk in response.iter_content(CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > max_bytes:
                raise OversizedInputError(f"source exceeds the {max_bytes} byte limit")
        return bytes(body)

    def fetch_bytes(
        self,
        source_url: str,
        *,
        max_bytes: int | None = None,
    ) -> bytes:
        """Download ``source_url`` and return the raw image bytes.

        Network failures are retried ``SETTINGS.retries`` times with a linear
        backoff. Type and size violations are rejected immediately.
        """

        limit = SETTINGS.max_upload_bytes if max_bytes is None else max_bytes
        target_url = _check_source_url(source_url)

        last_exception: Exception | None = None
        for attempt in range(1, SETTINGS.retries + 2):
            try:
                response = self._session.get(target_url, timeout=SETTINGS.timeout, stream=True)
                try:
                    response.raise_for_status()
                    content_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    if content_type not in ACCEPTED_MIME_TYPES:
                        raise UnsupportedFormatError(f"source served {content_type or 'no content type'}")
                    return self._read_body(response, limit)
                finally:
                    response.close()
            except requests.RequestException as exc:
                last_exception = exc
                log.warning("fetch attempt %d for %s failed: %s", attempt, target_url, exc)
                if attempt <= SETTINGS.retries:
                    time.sleep(0.4 * attempt)
        raise SourceFetchError(str(last_exception))


FETCHER = SourceFetcher()
