"""In-memory caches for fetched pages and transformation results.

Two independent tiers are kept:

* the content cache stores :class:`~pagepersona.models.ScrapedContent` keyed
  by normalised URL, so repeated requests skip the network fetch;
* the transform cache stores successful
  :class:`~pagepersona.models.TransformationResult` objects keyed by the
  content identity (URL or text digest) and persona id, so repeated requests
  skip the paid generation call.

Both tiers are :class:`CacheStore` instances configured with their own
:class:`~pagepersona.config.CachePolicy`. Entries are lost on restart.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Callable, Generic, TypeVar
from urllib.parse import urlsplit, urlunsplit

from cachetools import TTLCache

from pagepersona.config import CONTENT_CACHE_POLICY, TRANSFORM_CACHE_POLICY, CachePolicy
from pagepersona.models import ScrapedContent, TransformationResult

__all__ = [
    "CacheService",
    "CacheStats",
    "CacheStore",
    "normalize_url",
    "text_identity",
]

logger = logging.getLogger(__name__)

V = TypeVar("V")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Return a canonical string form of ``url`` for use in cache keys.

    The scheme and host are lower-cased, default ports are dropped and an
    empty path becomes ``/``. Input that does not parse as an absolute URL is
    returned unchanged so it still maps to a stable key.
    """

    try:
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.hostname:
            return url

        scheme = parts.scheme.lower()
        host = parts.hostname
        if ":" in host:
            host = f"[{host}]"
        port = parts.port
        if port is not None and _DEFAULT_PORTS.get(scheme) != port:
            host = f"{host}:{port}"

        userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""
        netloc = f"{userinfo}@{host}" if userinfo else host

        return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))
    except ValueError:
        return url


def text_identity(text: str) -> str:
    """Return a compact, stable identity for a block of direct text input."""

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"text:{digest}"


@dataclass(slots=True, frozen=True)
class CacheStats:
    """Snapshot of a cache tier for observability."""

    entries: int
    hits: int
    misses: int
    max_entries: int
    ttl_seconds: float

    def as_dict(self) -> dict:
        return asdict(self)


class _OldestFirstTTLCache(TTLCache):
    """``TTLCache`` whose capacity eviction drops the oldest write, not the least recently read."""

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float]) -> None:
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)
        self._order: OrderedDict = OrderedDict()

    def __setitem__(self, key, value) -> None:
        super().__setitem__(key, value)
        self._order.pop(key, None)
        self._order[key] = None

    def __delitem__(self, key) -> None:
        super().__delitem__(key)
        self._order.pop(key, None)

    def expire(self, time=None):
        expired = super().expire(time)
        for key, _ in expired or ():
            self._order.pop(key, None)
        return expired

    def popitem(self):
        self.expire()
        while self._order:
            key, _ = self._order.popitem(last=False)
            if key in self:
                return key, self.pop(key)
        raise KeyError(f"{type(self).__name__} is empty")


class CacheStore(Generic[V]):
    """Thread-safe key/value store with per-entry TTL and bounded size.

    ``get`` never raises; unknown and expired keys both read as ``None``.
    ``set`` replaces any existing entry and restarts its TTL. When the store
    is full, expired entries are dropped first and then the oldest live
    entry is evicted. Age counts from the last ``set``; reads do not refresh
    it.
    """

    def __init__(
        self,
        policy: CachePolicy,
        *,
        name: str = "cache",
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy
        self.name = name
        self._timer = timer
        self._cache: TTLCache = _OldestFirstTTLCache(policy.max_entries, policy.ttl_seconds, timer)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._last_sweep = timer()

    def get(self, key: str) -> V | None:
        with self._lock:
            self._maybe_sweep()
            try:
                value = self._cache[key]
            except KeyError:
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._maybe_sweep()
            self._cache[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Drop every entry held by this store."""

        with self._lock:
            self._cache.clear()

    def sweep(self) -> int:
        """Remove expired entries now and return how many were dropped."""

        with self._lock:
            return self._sweep()

    def stats(self) -> CacheStats:
        with self._lock:
            self._cache.expire()
            return CacheStats(
                entries=len(self._cache),
                hits=self._hits,
                misses=self._misses,
                max_entries=self.policy.max_entries,
                ttl_seconds=self.policy.ttl_seconds,
            )

    def __len__(self) -> int:
        return self.stats().entries

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def _maybe_sweep(self) -> None:
        if self._timer() - self._last_sweep >= self.policy.sweep_interval_seconds:
            self._sweep()

    def _sweep(self) -> int:
        expired = self._cache.expire()
        self._last_sweep = self._timer()
        count = len(expired) if expired is not None else 0
        if count:
            logger.debug("Swept %d expired entries from %s cache", count, self.name)
        return count


class CacheService:
    """Content and transform cache tiers with independent policies."""

    def __init__(
        self,
        content_policy: CachePolicy = CONTENT_CACHE_POLICY,
        transform_policy: CachePolicy = TRANSFORM_CACHE_POLICY,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.content_cache: CacheStore[ScrapedContent] = CacheStore(content_policy, name="content", timer=timer)
        self.transform_cache: CacheStore[TransformationResult] = CacheStore(
            transform_policy, name="transform", timer=timer
        )

    @staticmethod
    def scrape_key(url: str) -> str:
        return f"scrape:{normalize_url(url)}"

    @staticmethod
    def transform_key(source: str, persona_id: str) -> str:
        return f"transform:{normalize_url(source)}:{persona_id}"

    text_cache_source = staticmethod(text_identity)

    def get_cached_content(self, url: str) -> ScrapedContent | None:
        content = self.content_cache.get(self.scrape_key(url))
        logger.debug("Content cache %s for %s", "hit" if content is not None else "miss", url)
        return content

    def set_cached_content(self, url: str, content: ScrapedContent) -> None:
        self.content_cache.set(self.scrape_key(url), content)

    def get_cached_transformation(self, source: str, persona_id: str) -> TransformationResult | None:
        result = self.transform_cache.get(self.transform_key(source, persona_id))
        logger.debug(
            "Transform cache %s for %s (%s)", "hit" if result is not None else "miss", source, persona_id
        )
        return result

    def set_cached_transformation(self, source: str, persona_id: str, result: TransformationResult) -> None:
        """Store a transformation result; failed results are rejected."""

        if not result.success:
            raise ValueError("Failed transformation results must not be cached")
        self.transform_cache.set(self.transform_key(source, persona_id), result)

    def clear_scrape_cache(self) -> None:
        self.content_cache.clear()

    def clear_transform_cache(self) -> None:
        self.transform_cache.clear()

    def clear_all_caches(self) -> None:
        self.clear_scrape_cache()
        self.clear_transform_cache()

    def get_cache_stats(self) -> dict[str, CacheStats]:
        return {
            "scrape_cache": self.content_cache.stats(),
            "transform_cache": self.transform_cache.stats(),
        }
