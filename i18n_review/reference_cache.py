"""On-disk cache for the translators' reference document."""

import logging
import time
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class ReferenceCache:
    """Caches one text document in a file, refreshed after ``ttl_seconds``.

    Freshness is judged by the cache file's modification time.
    """

    def __init__(
        self,
        cache_file: Path,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache_file = Path(cache_file)
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, fetch: Callable[[], str | None]) -> str | None:
        """Return the cached document, or fetch and cache a fresh copy.

        Args:
            fetch: Called when the cache is missing or stale. May return None.

        Returns:
            Document text, or None if it is not cached and could not be fetched.
        """
        cached = self._read_fresh()
        if cached is not None:
            logger.debug("Using cached %s (%d characters)", self._cache_file, len(cached))
            return cached

        content = fetch()
        if content is None:
            logger.warning("Could not fetch reference document for %s", self._cache_file.name)
            return None

        self._write(content)
        return content

    def _read_fresh(self) -> str | None:
        try:
            age = self._clock() - self._cache_file.stat().st_mtime
        except OSError:
            return None
        if age >= self._ttl_seconds:
            return None
        try:
            return self._cache_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            logger.warning("Could not read cache file %s: %s", self._cache_file, error)
            return None

    def _write(self, content: str) -> None:
        try:
            self._cache_file.parent.mkdir(parents=True, exist_ok=True)
            self._cache_file.write_text(content, encoding="utf-8")
        except OSError as error:
            logger.warning("Could not write cache file %s: %s", self._cache_file, error)
            return
        logger.info("Cached %s (%d characters)", self._cache_file, len(content))
