"""Source image retrieval with a short-lived shared cache."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import requests

from timelapse_maker.errors import RemoteError, TransportError
from timelapse_maker.models import CachedPayload

DEFAULT_CACHE_TTL = 30.0
DEFAULT_HTTP_TIMEOUT = 10.0


class CachingFetcher:
    """Download the source image, collapsing bursts of calls into one request.

    Several acquisition jobs fire on the same minute boundary and share one
    image source. The cached payload is only trusted for ``cache_ttl``
    seconds; the staleness check and the refresh both happen under a single
    lock so concurrent callers never trigger duplicate downloads.
    """

    def __init__(
        self,
        url: str,
        logger: logging.Logger,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.logger = logger
        self.cache_ttl = cache_ttl
        self.http_timeout = http_timeout
        self.session = session or requests.Session()
        self.clock = clock
        self._cached: Optional[CachedPayload] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_fresh(self, now: float) -> bool:
        return self._cached is not None and now <= self._cached.valid_until

    def _download(self) -> bytes:
        self.logger.info("GET to %s", self.url)
        try:
            response = self.session.get(self.url, timeout=self.http_timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Failed to fetch {self.url}: {exc}") from exc

        try:
            if response.status_code != 200:
                raise RemoteError(response.status_code, self.url)
            return response.content
        except requests.RequestException as exc:
            raise TransportError(f"Failed to read body from {self.url}: {exc}") from exc
        finally:
            response.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch(self) -> bytes:
        """Return the source image bytes, refreshing the cache when stale."""
        with self._lock:
            now = self.clock()
            if self._is_fresh(now):
                self.logger.debug("Returning cached bytes for %s", self.url)
                return self._cached.content

            content = self._download()
            self._cached = CachedPayload(content=content, valid_until=now + self.cache_ttl)
            return content


__all__ = ["CachingFetcher", "DEFAULT_CACHE_TTL", "DEFAULT_HTTP_TIMEOUT"]
