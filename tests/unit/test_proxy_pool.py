"""
Unit tests for proxy selection strategies and failure tracking.
"""

import random

import pytest

from curl_scraper.models import ProxyConfig
from curl_scraper.proxy import ProxyPool, RotationStrategy


@pytest.fixture
def proxies():
    return [ProxyConfig("10.0.0.1", 8080), ProxyConfig("10.0.0.2", 8080), ProxyConfig("10.0.0.3", 8080)]


class TestProxyPool:
    """Selection and failure bookkeeping."""

    def test_round_robin_cycles(self, proxies):
        pool = ProxyPool(proxies)
        picked = [pool.next() for _ in range(4)]
        assert picked == [proxies[0], proxies[1], proxies[2], proxies[0]]

    def test_failover_returns_first_healthy(self, proxies):
        pool = ProxyPool(proxies, strategy="failover", max_failures=1)
        assert pool.next() is proxies[0]
        pool.mark_failed(proxies[0])
        assert pool.next() is proxies[1]

    def test_random_strategy_uses_rng(self, proxies):
        pool = ProxyPool(proxies, strategy=RotationStrategy.RANDOM, rng=random.Random(7))
        for _ in range(20):
            assert pool.next() in proxies

    @pytest.mark.parametrize("strategy", ["round-robin", "random", "failover"])
    def test_failed_proxies_are_excluded(self, proxies, strategy):
        pool = ProxyPool(proxies, strategy=strategy, max_failures=2)
        for _ in range(2):
            pool.mark_failed(proxies[1])

        picked = {pool.next().host for _ in range(30)}

        assert "10.0.0.2" not in picked

    def test_all_failed_returns_none(self, proxies):
        pool = ProxyPool(proxies, max_failures=1)
        for proxy in proxies:
            pool.mark_failed(proxy)
        assert pool.next() is None
        assert pool.available == []

    def test_empty_pool(self):
        assert ProxyPool().next() is None

    def test_next_stamps_last_used(self, proxies):
        pool = ProxyPool(proxies, clock=lambda: 42.0)
        assert pool.next().last_used == 42.0

    def test_mark_failed_none_is_noop(self, proxies):
        pool = ProxyPool(proxies)
        pool.mark_failed(None)
        assert all(proxy.fail_count == 0 for proxy in proxies)

    def test_reset_failures(self, proxies):
        pool = ProxyPool(proxies, max_failures=1)
        for proxy in proxies:
            pool.mark_failed(proxy)

        pool.reset_failures(proxies[2])
        assert pool.available == [proxies[2]]

        pool.reset_failures()
        assert pool.available == proxies

    def test_accepts_urls_and_find(self):
        pool = ProxyPool(["socks5://user:pw@127.0.0.1:1080"])
        proxy = pool.find(("socks5", "127.0.0.1", 1080))
        assert proxy is not None
        assert proxy.username == "user"
        assert proxy in pool
        assert len(pool) == 1

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            ProxyPool(max_failures=0)
        with pytest.raises(ValueError):
            ProxyPool(strategy="weighted")
