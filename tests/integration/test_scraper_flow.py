"""
Integration tests for complete request flows.

The synchronous Scraper drives the orchestrator on its background loop with
a scripted transport, and the curl-impersonate transport runs end to end
against a patched subprocess producing real curl output.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from curl_scraper import Scraper
from curl_scraper.errors import CloudflareError, MaxRetriesExceededError, TransportError
from curl_scraper.http import CurlImpersonateTransport, CurlOutputDecoder
from curl_scraper.http.transport import WRITE_OUT_MARKER
from curl_scraper.orchestrator import RequestOrchestrator

pytestmark = pytest.mark.integration

NEXT_PAGE = (
    '<!DOCTYPE html><html><head><title>Store</title></head><body>'
    '<script id="__NEXT_DATA__" type="application/json">{"props": {"items": 3}}</script>'
    '</body></html>'
)


@pytest.fixture
def scraper_with(build_orchestrator):
    """Build a Scraper on top of a scripted orchestrator."""
    created = []

    def _build(outcomes, **kwargs):
        orchestrator, transport = build_orchestrator(outcomes, **kwargs)
        scraper = Scraper(orchestrator=orchestrator)
        created.append(scraper)
        return scraper, transport

    yield _build

    for scraper in created:
        scraper.close()


class TestScraperFacade:
    """Synchronous calls through the background event loop."""

    def test_sticky_session_carries_cookies(self, scraper_with, response_factory):
        scraper, transport = scraper_with([
            response_factory(headers={"content-type": "text/html", "set-cookie": "cf_clearance=tok; Path=/"}),
            response_factory(body="second"),
        ])

        first = scraper.get("https://example.com/")
        second = scraper.post("https://example.com/cart", json={"sku": 1})

        assert first.ok and second.text == "second"
        first_call, second_call = transport.calls
        assert first_call["fingerprint"] is second_call["fingerprint"]
        assert second_call["spec"].cookies == {"cf_clearance": "tok"}
        assert second_call["spec"].method.value == "POST"
        assert second_call["spec"].json == {"sku": 1}

    def test_challenge_rotates_identity_then_succeeds(self, scraper_with, response_factory):
        scraper, transport = scraper_with([
            response_factory(503, "Checking your browser...", headers={"cf-ray": "8a1b-AMS"}),
            response_factory(body="welcome"),
        ])

        response = scraper.get("https://example.com/")

        assert response.text == "welcome"
        first, second = transport.calls
        assert first["fingerprint"].name != second["fingerprint"].name
        assert second["spec"].headers["User-Agent"] == second["fingerprint"].user_agent

    def test_expired_session_is_replaced(self, scraper_with, response_factory, clock):
        scraper, _ = scraper_with([response_factory(), response_factory()])

        scraper.get("https://example.com/")
        first_id = scraper.session_id
        clock.advance(1801)
        scraper.get("https://example.com/")

        assert scraper.session_id != first_id
        assert first_id not in scraper.orchestrator.sessions

    def test_batch_shares_sticky_session(self, scraper_with, response_factory):
        scraper, transport = scraper_with([response_factory(), response_factory(status_code=404)])

        result = scraper.batch_request(["https://example.com/a", "https://example.com/b"],
                                       concurrency=1, shared_session=True, headers={"X-Batch": "1"})

        assert [item.response.status_code for item in result.items] == [200, 404]
        assert len(scraper.orchestrator.sessions) == 1
        assert scraper.session_id in scraper.orchestrator.sessions
        assert all(call["spec"].headers["X-Batch"] == "1" for call in transport.calls)

    def test_script_data_and_html(self, scraper_with, response_factory):
        scraper, _ = scraper_with([response_factory(body=NEXT_PAGE), response_factory(body=NEXT_PAGE)])

        assert scraper.request_script_data("https://example.com/") == {"props": {"items": 3}}
        _, document = scraper.request_html("https://example.com/")
        assert document.title == "Store"

    def test_errors_propagate_to_caller(self, scraper_with, response_factory):
        scraper, _ = scraper_with([response_factory(403, "<div class='g-recaptcha'>captcha</div>")])

        with pytest.raises(CloudflareError):
            scraper.get("https://example.com/")

    def test_closed_scraper_rejects_calls(self, scraper_with):
        scraper, transport = scraper_with([])
        scraper.close()

        assert transport.closed is True
        with pytest.raises(RuntimeError):
            scraper.get("https://example.com/")


def curl_stdout(head: str, body: str, trailer: str) -> bytes:
    return f"{head}\r\n\r\n{body}\n{WRITE_OUT_MARKER}{trailer}".encode("utf-8")


def fake_process(returncode=0, stdout=b"", stderr=b""):
    process = Mock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


@pytest.mark.asyncio
class TestCurlImpersonateFlow:
    """Orchestrator, curl-impersonate transport and output decoder together."""

    @pytest.fixture
    def orchestrator(self, catalog, sleep, clock, test_logger):
        return RequestOrchestrator(
            transport=CurlImpersonateTransport(),
            decoder=CurlOutputDecoder(),
            catalog=catalog,
            sleep=sleep,
            clock=clock,
            logger=test_logger,
        )

    async def test_successful_request(self, orchestrator):
        stdout = curl_stdout(
            "HTTP/1.1 301 Moved Permanently\r\nLocation: https://example.com/home\r\n\r\n"
            "HTTP/2 200\r\ncontent-type: text/html\r\nset-cookie: sid=abc; Path=/",
            "<html><body>home</body></html>",
            "200|2|30|0.250|https://example.com/home",
        )
        spawn = AsyncMock(return_value=fake_process(stdout=stdout))

        with patch("asyncio.create_subprocess_exec", spawn):
            response = await orchestrator.get("https://example.com/")

        assert response.status_code == 200
        assert response.url == "https://example.com/home"
        assert response.http_version == "2"
        assert response.body == "<html><body>home</body></html>"
        assert response.proxy_used is None
        session = next(iter(orchestrator.sessions._sessions.values()))
        assert session.cookies == {"sid": "abc"}
        assert "--ciphers" in spawn.call_args.args

    async def test_transient_failures_exhaust_retries(self, orchestrator, sleep):
        spawn = AsyncMock(side_effect=[
            fake_process(returncode=6, stderr=b"curl: (6) Could not resolve host: example.com")
            for _ in range(3)
        ])

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(MaxRetriesExceededError) as exc_info:
                await orchestrator.get("https://example.com/")

        assert len(exc_info.value.attempts) == 3
        assert isinstance(exc_info.value.last_error, TransportError)
        assert sleep.delays == [1.0, 2.0]
