"""Endpoint resolver — logical resource key to physical endpoint, discovered once per key."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from restbind._models import Endpoint

log = logging.getLogger(__name__)


class EndpointResolver:
    """Caches key → endpoint bindings learned from a discovery function.

    At most one discovery runs per key at a time; concurrent callers for the
    same key wait for it and receive the same endpoint (or the same error).
    Failed discoveries are not cached, so a later call retries. Learned
    bindings are never evicted.

    :param discover: Provider-supplied discovery, ``key -> Endpoint``.
    :param name: Label used in log messages.
    """

    def __init__(self, discover: Callable[[str], Endpoint], *, name: str = "") -> None:
        self._discover = discover
        self._name = name
        self._lock = threading.Lock()
        self._cache: dict[str, Endpoint] = {}
        self._inflight: dict[str, Future[Endpoint]] = {}

    def __repr__(self) -> str:
        return f"EndpointResolver(name={self._name!r}, cached={len(self._cache)})"

    def __len__(self) -> int:
        return len(self._cache)

    def resolve(self, key: str) -> Endpoint:
        """Return the endpoint for ``key``, discovering it on first use.

        :raises Exception: Whatever the discovery function raised.
        """
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            future = self._inflight.get(key)
            leader = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future

        if not leader:
            return future.result()

        try:
            endpoint = self._discover(key)
        except BaseException as exc:
            with self._lock:
                del self._inflight[key]
            future.set_exception(exc)
            log.debug("Discovery for %r failed: %s", key, exc)
            raise

        with self._lock:
            endpoint = self._cache.setdefault(key, endpoint)
            del self._inflight[key]
        future.set_result(endpoint)
        log.info("Resolved endpoint for %r: %s (%s)", key, endpoint, self._name or "resolver")
        return endpoint

    def peek(self, key: str) -> Endpoint | None:
        """Return the cached endpoint for ``key`` without discovering."""
        with self._lock:
            return self._cache.get(key)

    def prime(self, key: str, endpoint: Endpoint) -> Endpoint:
        """Record a binding learned elsewhere. The first binding for a key wins."""
        with self._lock:
            return self._cache.setdefault(key, endpoint)
