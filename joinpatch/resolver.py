"""
External Address Resolver

Discovers the public IPv4 address by asking plain-text lookup services in
order, and caches the answer for a fixed window so repeated QR refreshes do
not hit the network.
"""

import re
import time
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, List, Optional

import requests

from .exceptions import ResolverExhausted

logger = logging.getLogger(__name__)


# Plain-text lookup services, tried in order
DEFAULT_PROVIDERS = [
    "https://api.ipify.org",
    "https://checkip.amazonaws.com/",
    "https://icanhazip.com/",
    "https://wtfismyip.com/text",
]

DEFAULT_TTL_S = 300.0
DEFAULT_TIMEOUT_S = 5.0

# Shape check only; octet ranges are validated at substitution time
IPV4_PATTERN = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


@dataclass
class CacheEntry:
    """Cached external address"""
    address: str
    observed_at: float


class ExternalAddressCache:
    """Single time-bounded address slot. Writes overwrite, never merge."""

    def __init__(self, ttl_s: float = DEFAULT_TTL_S):
        self.ttl_s = ttl_s
        self._entry: Optional[CacheEntry] = None
        self._lock = Lock()

    def get(self, now: float) -> Optional[str]:
        """Cached address if still inside the TTL window"""
        with self._lock:
            entry = self._entry
        if entry is not None and now - entry.observed_at < self.ttl_s:
            return entry.address
        return None

    def set(self, address: str, now: float) -> None:
        with self._lock:
            self._entry = CacheEntry(address=address, observed_at=now)

    def clear(self) -> None:
        with self._lock:
            self._entry = None

    @property
    def entry(self) -> Optional[CacheEntry]:
        with self._lock:
            return self._entry


class ExternalAddressResolver:
    """
    Public address lookup with provider fallback.

    Resolution is single-flight: the cache check, provider queries and cache
    update happen under one lock, so concurrent callers on a cache miss wait
    for the first lookup instead of issuing their own.
    """

    def __init__(self, providers: List[str] = None,
                 timeout: float = DEFAULT_TIMEOUT_S,
                 cache: ExternalAddressCache = None,
                 session=None,
                 clock: Callable[[], float] = time.time):
        self.providers = list(providers or DEFAULT_PROVIDERS)
        self.timeout = timeout
        self.cache = cache if cache is not None else ExternalAddressCache()
        self.session = session or requests.Session()
        self.clock = clock
        self._lock = Lock()

    def resolve(self) -> Optional[str]:
        """
        Get the external IPv4 address.

        Returns:
            Dotted-quad address, or None if every provider failed
        """
        with self._lock:
            cached = self.cache.get(self.clock())
            if cached is not None:
                return cached

            for provider in self.providers:
                address = self._query_provider(provider)
                if address is not None:
                    self.cache.set(address, self.clock())
                    logger.info(f"[RESOLVER] External address from {provider}: {address}")
                    return address

        logger.warning(f"[RESOLVER] All {len(self.providers)} providers failed")
        return None

    def resolve_or_raise(self) -> str:
        """Like resolve(), but raises ResolverExhausted instead of returning None"""
        address = self.resolve()
        if address is None:
            raise ResolverExhausted(len(self.providers))
        return address

    def _query_provider(self, provider: str) -> Optional[str]:
        """Query a single provider; any failure means "skip it"."""
        try:
            response = self.session.get(provider, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.debug(f"[RESOLVER] Provider {provider} failed: {e}")
            return None

        body = response.text.strip()
        if not IPV4_PATTERN.match(body):
            logger.debug(f"[RESOLVER] Provider {provider} returned {body[:40]!r}")
            return None

        return body


_default_resolver: Optional[ExternalAddressResolver] = None
_default_lock = Lock()


def get_default_resolver() -> ExternalAddressResolver:
    """Process-wide resolver (and therefore process-wide cache)."""
    global _default_resolver
    with _default_lock:
        if _default_resolver is None:
            _default_resolver = ExternalAddressResolver()
        return _default_resolver


def configure_default_resolver(providers: List[str] = None,
                               timeout: float = DEFAULT_TIMEOUT_S,
                               ttl_s: float = DEFAULT_TTL_S) -> ExternalAddressResolver:
    """Replace the process-wide resolver, e.g. after loading config."""
    global _default_resolver
    with _default_lock:
        _default_resolver = ExternalAddressResolver(
            providers=providers,
            timeout=timeout,
            cache=ExternalAddressCache(ttl_s),
        )
        return _default_resolver
