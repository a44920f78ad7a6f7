"""
Unit tests for concurrent batch requests.

A routed transport answers per URL, so outcomes do not depend on the order
in which concurrent workers reach the wire.
"""

import asyncio

import pytest

from curl_scraper.config import (
    CloudflareSettings,
    ProxyRotationSettings,
    RateLimitSettings,
    ScraperConfig,
    SessionSettings,
)
from curl_scraper.errors import CloudflareError, MaxRetriesExceededError, TransportError
from curl_scraper.http.transport import RawTransferResult, Transport
from curl_scraper.models import ProxyConfig

CHALLENGE_BODY = "<html><title>Just a moment...</title>Checking your browser before accessing</html>"


class RoutedTransport(Transport):
    """Answers each URL from its own outcome list and tracks concurrency."""

    name = "routed"

    def __init__(self, routes):
        self.routes = {url: list(outcomes) for url, outcomes in routes.items()}
        self.calls = []
        self.in_flight = 0
        self.peak = 0

    async def execute(self, url, spec, fingerprint):
        self.calls.append({"url": url, "spec": spec, "fingerprint": fingerprint})
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome = self.routes[url].pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return RawTransferResult(url=url, backend=self.name, native=outcome)
        finally:
            self.in_flight -= 1


@pytest.fixture
def routed(build_orchestrator):
    def _build(routes, config=None):
        orchestrator, _ = build_orchestrator([], config=config)
        orchestrator.transport = RoutedTransport(routes)
        return orchestrator, orchestrator.transport

    return _build


@pytest.mark.asyncio
class TestBatchRequest:
    async def test_results_keep_input_order(self, routed, response_factory):
        urls = [f"https://example.com/{n}" for n in range(5)]
        orchestrator, _ = routed({url: [response_factory(url=url)] for url in urls})

        result = await orchestrator.batch_request(urls, concurrency=3)

        assert [item.url for item in result.items] == urls
        assert [item.response.url for item in result.items] == urls
        assert result.successful_requests == 5
        assert result.failed_requests == 0

    async def test_concurrency_is_bounded(self, routed, response_factory):
        urls = [f"https://example.com/{n}" for n in range(6)]
        orchestrator, transport = routed({url: [response_factory()] for url in urls})

        await orchestrator.batch_request(urls, concurrency=2)

        assert transport.peak == 2

    async def test_default_concurrency_from_config(self, routed, response_factory):
        urls = [f"https://example.com/{n}" for n in range(6)]
        config = ScraperConfig(rate_limiting=RateLimitSettings(max_concurrent_requests=3))
        orchestrator, transport = routed({url: [response_factory()] for url in urls}, config=config)

        await orchestrator.batch_request(urls)

        assert transport.peak == 3

    async def test_failures_are_collected_and_counted(self, routed, response_factory):
        proxy = ProxyConfig("10.0.0.1", 8080)
        config = ScraperConfig(
            session=SessionSettings(max_retries=1),
            cloudflare=CloudflareSettings(auto_retry=False),
            proxy_rotation=ProxyRotationSettings(enabled=True, proxies=[proxy], max_failures=10),
        )
        refused = TransportError.from_curl_code(7, "Failed to connect: Connection refused",
                                                proxy_in_use=True)
        orchestrator, _ = routed({
            "https://example.com/ok": [response_factory()],
            "https://example.com/blocked": [response_factory(503, CHALLENGE_BODY)],
            "https://example.com/proxy": [refused],
        }, config=config)

        result = await orchestrator.batch_request([
            "https://example.com/ok", "https://example.com/blocked", "https://example.com/proxy",
        ])

        ok, blocked, via_proxy = result.items
        assert ok.success
        assert isinstance(blocked.error, CloudflareError)
        assert isinstance(via_proxy.error, MaxRetriesExceededError)
        assert (result.successful_requests, result.failed_requests) == (1, 2)
        assert result.cloudflare_challenges == 1
        assert result.proxy_failures == 1

        summary = result.to_dict()
        assert summary["total_requests"] == 3
        assert summary["results"][1]["error"]["code"] == "CF_CHALLENGE"

    async def test_each_url_gets_its_own_session(self, routed, response_factory):
        urls = ["https://example.com/a", "https://example.com/b"]
        orchestrator, _ = routed({url: [response_factory()] for url in urls})

        await orchestrator.batch_request(urls)

        assert len(orchestrator.sessions) == 2

    async def test_shared_session(self, routed, response_factory):
        urls = ["https://example.com/a", "https://example.com/b"]
        orchestrator, _ = routed({url: [response_factory()] for url in urls})
        session = orchestrator.sessions.create()

        await orchestrator.batch_request(urls, session_id=session.id)

        assert len(orchestrator.sessions) == 1
        assert session.request_count == 2

    async def test_batch_is_paced(self, routed, response_factory, sleep):
        urls = [f"https://example.com/{n}" for n in range(3)]
        config = ScraperConfig(rate_limiting=RateLimitSettings(enabled=True, delay_between_requests=0.5))
        orchestrator, _ = routed({url: [response_factory()] for url in urls}, config=config)

        await orchestrator.batch_request(urls, concurrency=3)

        assert sleep.delays == [0.5, 0.5]

    async def test_empty_batch(self, routed):
        orchestrator, _ = routed({})

        result = await orchestrator.batch_request([])

        assert result.total_requests == 0
        assert result.average_response_time == 0.0

    async def test_invalid_concurrency(self, routed):
        orchestrator, _ = routed({})
        with pytest.raises(ValueError):
            await orchestrator.batch_request(["https://example.com/"], concurrency=0)
