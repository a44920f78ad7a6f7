"""
Unit tests for decoding curl output and curl_cffi responses.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from curl_scraper.errors import ResponseDecodeError
from curl_scraper.http.response import CurlCffiResponseDecoder, CurlOutputDecoder
from curl_scraper.http.transport import RawTransferResult, WRITE_OUT_MARKER


def curl_output(head_and_body: str, trailer: str = "200|2|11|0.421|https://example.com/") -> str:
    return f"{head_and_body}\n{WRITE_OUT_MARKER}{trailer}"


@pytest.fixture
def decoder():
    return CurlOutputDecoder()


class TestCurlOutputDecoder:
    """Parsing of ``curl -i -w`` output."""

    def test_simple_response(self, decoder):
        stdout = curl_output(
            "HTTP/2 200\r\ncontent-type: text/html\r\nSet-Cookie: a=1\r\nset-cookie: b=2\r\n\r\nhello world"
        )

        response = decoder.decode(RawTransferResult(url="https://example.com/", stdout=stdout))

        assert response.status_code == 200
        assert response.status_text == "OK"
        assert response.headers["content-type"] == "text/html"
        assert response.headers["set-cookie"] == "a=1, b=2"
        assert response.body == "hello world"
        assert response.size == 11
        assert response.response_time == pytest.approx(0.421)
        assert response.http_version == "2"

    def test_skips_proxy_connect_and_redirect_blocks(self, decoder):
        stdout = curl_output(
            "HTTP/1.1 200 Connection established\r\n\r\n"
            "HTTP/1.1 301 Moved Permanently\r\nLocation: https://example.com/new\r\n\r\n"
            "HTTP/1.1 200 Fine\r\nContent-Type: application/json\r\n\r\n{\"ok\": true}",
            trailer="200|1.1|12|0.9|https://example.com/new",
        )

        response = decoder.decode(RawTransferResult(url="https://example.com/", stdout=stdout))

        assert response.status_text == "Fine"
        assert "location" not in response.headers
        assert response.json() == {"ok": True}
        assert response.url == "https://example.com/new"

    def test_interim_continue_block(self, decoder):
        stdout = curl_output("HTTP/1.1 100 Continue\n\nHTTP/1.1 201 Created\nX-Id: 7\n\ncreated",
                             trailer="201|1.1|7|0.1|https://example.com/items")

        response = decoder.decode(RawTransferResult(url="https://example.com/items", stdout=stdout))

        assert response.status_code == 201
        assert response.headers == {"x-id": "7"}
        assert response.body == "created"

    def test_body_containing_blank_lines(self, decoder):
        stdout = curl_output("HTTP/2 200\r\n\r\nline one\r\n\r\nline two")
        response = decoder.decode(RawTransferResult(url="https://example.com/", stdout=stdout))
        assert response.body == "line one\r\n\r\nline two"

    def test_body_starting_with_status_line_text(self, decoder):
        stdout = curl_output("HTTP/2 200\r\ncontent-type: text/plain\r\n\r\n"
                             "HTTP/1.1 is a protocol\n\nIt has verbs.",
                             trailer="200|2|37|0.2|https://example.com/doc.txt")

        response = decoder.decode(RawTransferResult(url="https://example.com/doc.txt", stdout=stdout))

        assert response.headers == {"content-type": "text/plain"}
        assert response.body == "HTTP/1.1 is a protocol\n\nIt has verbs."

    def test_error_page_starting_with_status_line_text(self, decoder):
        stdout = curl_output("HTTP/1.1 404 Not Found\r\n\r\nHTTP/1.1 404: nothing here",
                             trailer="404|1.1|26|0.1|https://example.com/gone")

        response = decoder.decode(RawTransferResult(url="https://example.com/gone", stdout=stdout))

        assert response.status_text == "Not Found"
        assert response.body == "HTTP/1.1 404: nothing here"

    def test_missing_trailer(self, decoder):
        with pytest.raises(ResponseDecodeError):
            decoder.decode(RawTransferResult(url="https://example.com/", stdout="HTTP/2 200\r\n\r\n"))

    def test_malformed_trailer(self, decoder):
        stdout = curl_output("HTTP/2 200\r\n\r\n", trailer="200|2")
        with pytest.raises(ResponseDecodeError):
            decoder.decode(RawTransferResult(url="https://example.com/", stdout=stdout))

    def test_no_response(self, decoder):
        stdout = curl_output("", trailer="000|0|0|0.0|https://example.com/")
        with pytest.raises(ResponseDecodeError):
            decoder.decode(RawTransferResult(url="https://example.com/", stdout=stdout))


class TestCurlCffiResponseDecoder:
    def test_decodes_native_response(self):
        headers = Mock()
        headers.multi_items.return_value = [("Content-Type", "text/html"), ("Set-Cookie", "a=1"),
                                            ("Set-Cookie", "b=2")]
        native = Mock(status_code=404, reason="", headers=headers, text="missing", content=b"missing",
                      url="https://example.com/x", elapsed=timedelta(milliseconds=250), http_version=2)

        response = CurlCffiResponseDecoder().decode(
            RawTransferResult(url="https://example.com/x", backend="curl_cffi", native=native)
        )

        assert response.status_code == 404
        assert response.status_text == "Not Found"
        assert response.headers["set-cookie"] == "a=1, b=2"
        assert response.response_time == pytest.approx(0.25)
        assert response.size == 7

    def test_requires_native_response(self):
        with pytest.raises(ResponseDecodeError):
            CurlCffiResponseDecoder().decode(RawTransferResult(url="https://example.com/"))
