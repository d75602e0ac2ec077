"""Tests for the endpoint resolver."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from restbind._models import Endpoint
from restbind._resolver import EndpointResolver

EU = Endpoint.from_url("https://s3-eu-west-1.amazonaws.com", region="EU")
US = Endpoint.from_url("https://s3.amazonaws.com", region="us-standard")


class TestResolve:
    def test_discovers_once(self) -> None:
        calls: list[str] = []

        def discover(key: str) -> Endpoint:
            calls.append(key)
            return EU

        resolver = EndpointResolver(discover)
        assert resolver.resolve("eubucket") is EU
        assert resolver.resolve("eubucket") is EU
        assert calls == ["eubucket"]
        assert len(resolver) == 1

    def test_keys_are_independent(self) -> None:
        resolver = EndpointResolver(lambda key: EU if key.startswith("eu") else US)
        assert resolver.resolve("eubucket") is EU
        assert resolver.resolve("usbucket") is US

    def test_failure_not_cached(self) -> None:
        attempts: list[int] = []

        def discover(key: str) -> Endpoint:
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("down")
            return EU

        resolver = EndpointResolver(discover)
        with pytest.raises(ConnectionError):
            resolver.resolve("b")
        assert resolver.peek("b") is None
        assert resolver.resolve("b") is EU
        assert len(attempts) == 2


class TestPeekAndPrime:
    def test_peek_does_not_discover(self) -> None:
        resolver = EndpointResolver(lambda key: pytest.fail("discovered"))
        assert resolver.peek("b") is None

    def test_prime_first_wins(self) -> None:
        resolver = EndpointResolver(lambda key: US)
        assert resolver.prime("b", EU) is EU
        assert resolver.prime("b", US) is EU
        assert resolver.resolve("b") is EU


class TestConcurrency:
    def test_single_flight(self) -> None:
        """Concurrent callers for one key share one discovery and one result."""
        release = threading.Event()
        calls: list[str] = []
        lock = threading.Lock()

        def discover(key: str) -> Endpoint:
            with lock:
                calls.append(key)
            release.wait(timeout=5)
            return Endpoint.from_url("https://s3-eu-west-1.amazonaws.com", region="EU")

        resolver = EndpointResolver(discover)
        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(resolver.resolve, "eubucket") for _ in range(8)]
            while not calls:
                time.sleep(0.01)
            time.sleep(0.2)
            release.set()
            results = [f.result(timeout=5) for f in futures]

        assert calls == ["eubucket"]
        assert all(r is results[0] for r in results)

    def test_waiters_share_failure(self) -> None:
        release = threading.Event()
        calls: list[str] = []

        def discover(key: str) -> Endpoint:
            calls.append(key)
            release.wait(timeout=5)
            raise LookupError("no such bucket")

        resolver = EndpointResolver(discover)
        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(resolver.resolve, "b") for _ in range(4)]
            while not calls:
                time.sleep(0.01)
            time.sleep(0.2)
            release.set()
            errors = [f.exception(timeout=5) for f in futures]

        assert len(calls) == 1
        assert all(isinstance(e, LookupError) for e in errors)
        assert resolver.peek("b") is None
