"""Shared fixtures: a scripted transport, a controllable clock and builders."""

import logging
import random
from typing import Any, Dict, List, Optional, Union

import pytest

from curl_scraper.browser.fingerprint import default_catalog
from curl_scraper.config import ScraperConfig
from curl_scraper.http.response import ResponseDecoder
from curl_scraper.http.transport import RawTransferResult, Transport
from curl_scraper.models import HttpResponse
from curl_scraper.orchestrator import RequestOrchestrator


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests across components")


def make_response(status_code: int = 200, body: str = "<html><body>ok</body></html>",
                  headers: Optional[Dict[str, str]] = None,
                  url: str = "https://example.com/") -> HttpResponse:
    return HttpResponse(
        status_code=status_code,
        status_text="",
        headers={key.lower(): value for key, value in (headers or {"content-type": "text/html"}).items()},
        body=body,
        url=url,
        response_time=0.05,
        size=len(body),
    )


class FakeClock:
    """Deterministic replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedTransport(Transport):
    """Replays a list of outcomes: HttpResponse objects or exceptions to raise."""

    name = "scripted"

    def __init__(self, outcomes: List[Union[HttpResponse, BaseException]]):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def execute(self, url, spec, fingerprint):
        self.calls.append({"url": url, "spec": spec, "fingerprint": fingerprint})
        if not self.outcomes:
            raise AssertionError("ScriptedTransport ran out of outcomes")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return RawTransferResult(url=url, backend=self.name, native=outcome)

    async def close(self):
        self.closed = True


class PassthroughDecoder(ResponseDecoder):
    def decode(self, raw):
        return raw.native


class RecordingSleep:
    """Records requested delays and advances the fake clock by each one."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def catalog():
    return default_catalog(rng=random.Random(1234))


@pytest.fixture
def test_logger():
    return logging.getLogger("tests.curl_scraper")


@pytest.fixture
def build_orchestrator(clock, sleep, catalog, test_logger):
    """Factory producing an orchestrator wired to a scripted transport."""

    def _build(outcomes, config: Optional[ScraperConfig] = None, **kwargs):
        transport = ScriptedTransport(outcomes)
        orchestrator = RequestOrchestrator(
            config=config or ScraperConfig(),
            transport=transport,
            decoder=PassthroughDecoder(),
            catalog=catalog,
            logger=test_logger,
            sleep=sleep,
            clock=clock,
            **kwargs,
        )
        return orchestrator, transport

    return _build


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def scripted_transport_cls():
    return ScriptedTransport
