"""Decoding of raw transfer output into ``HttpResponse`` objects."""

import logging
from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Dict, List, Optional, Tuple

from ..errors import ResponseDecodeError
from ..models import HttpResponse
from .transport import RawTransferResult, WRITE_OUT_MARKER

logger = logging.getLogger(__name__)


def status_text_for(status_code: int, reason: Optional[str] = None) -> str:
    """Reason phrase from the status line, else the standard phrase for the code."""
    if reason:
        return reason
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def join_headers(pairs: List[Tuple[str, str]]) -> Dict[str, str]:
    """Lower-case header names and join repeated headers with ``", "``."""
    headers: Dict[str, str] = {}
    for name, value in pairs:
        key = name.strip().lower()
        if key in headers:
            headers[key] = f"{headers[key]}, {value}"
        else:
            headers[key] = value
    return headers


class ResponseDecoder(ABC):
    """Boundary turning a ``RawTransferResult`` into an ``HttpResponse``."""

    @abstractmethod
    def decode(self, raw: RawTransferResult) -> HttpResponse:
        """Decode or raise ``ResponseDecodeError``."""


class CurlOutputDecoder(ResponseDecoder):
    """
    Decodes ``curl -i -w ...`` output.

    With ``-i`` curl prints every header block it receives: proxy CONNECT
    replies, ``1xx`` interim responses and each redirect hop. Only the last
    block describes the returned body.
    """

    def decode(self, raw: RawTransferResult) -> HttpResponse:
        output, marker, trailer = raw.stdout.rpartition("\n" + WRITE_OUT_MARKER)
        if not marker:
            raise ResponseDecodeError(f"Missing transfer summary in curl output for {raw.url}")

        status_code, http_version, size, elapsed, effective_url = self._parse_trailer(trailer, raw.url)
        reason, header_pairs, body = self._split_final_block(output, raw.url)

        return HttpResponse(
            status_code=status_code,
            status_text=status_text_for(status_code, reason),
            headers=join_headers(header_pairs),
            body=body,
            url=effective_url or raw.url,
            response_time=elapsed,
            size=size,
            http_version=http_version,
        )

    def _parse_trailer(self, trailer: str, url: str) -> Tuple[int, str, int, float, str]:
        parts = trailer.strip().split("|", 4)
        if len(parts) != 5:
            raise ResponseDecodeError(f"Malformed transfer summary for {url}: {trailer!r}")
        code, http_version, size, elapsed, effective_url = parts
        try:
            status_code = int(code)
            size_bytes = int(float(size))
            seconds = float(elapsed)
        except ValueError as e:
            raise ResponseDecodeError(f"Malformed transfer summary for {url}: {trailer!r}") from e
        if status_code == 0:
            raise ResponseDecodeError(f"No HTTP response received from {url}")
        return status_code, http_version, size_bytes, seconds, effective_url

    def _split_final_block(self, output: str, url: str) -> Tuple[Optional[str], List[Tuple[str, str]], str]:
        if not output.startswith("HTTP/"):
            raise ResponseDecodeError(f"No HTTP header block in curl output for {url}")

        block, remaining = self._split_block(output)
        status, reason, header_pairs = self._parse_block(block)
        # A body may itself begin with "HTTP/"; only interim blocks are followed by another one
        while remaining.startswith("HTTP/") and self._is_interim(status, reason, header_pairs):
            block, remaining = self._split_block(remaining)
            status, reason, header_pairs = self._parse_block(block)

        return reason, header_pairs, remaining

    @staticmethod
    def _parse_block(block: str) -> Tuple[Optional[int], Optional[str], List[Tuple[str, str]]]:
        lines = [line.rstrip("\r") for line in block.split("\n")]
        status_line = lines[0].split(" ", 2)
        try:
            status = int(status_line[1]) if len(status_line) > 1 else None
        except ValueError:
            status = None
        reason = status_line[2].strip() if len(status_line) > 2 else None

        header_pairs = []
        for line in lines[1:]:
            if ":" not in line:
                continue
            name, value = line.split(":", 1)
            header_pairs.append((name, value.strip()))
        return status, reason, header_pairs

    @staticmethod
    def _is_interim(status: Optional[int], reason: Optional[str],
                    header_pairs: List[Tuple[str, str]]) -> bool:
        """Whether a header block is a CONNECT reply, a 1xx or a followed redirect."""
        if status is None:
            return False
        if 100 <= status < 200:
            return True
        if reason and reason.lower() == "connection established":
            return True
        if 300 <= status < 400:
            return any(name.strip().lower() == "location" for name, _ in header_pairs)
        return False

    @staticmethod
    def _split_block(text: str) -> Tuple[str, str]:
        """Split one header block from the text that follows it."""
        candidates = [(text.find(sep), sep) for sep in ("\r\n\r\n", "\n\n")]
        found = [(index, sep) for index, sep in candidates if index != -1]
        if not found:
            return text, ""
        index, sep = min(found)
        return text[:index], text[index + len(sep):]


class CurlCffiResponseDecoder(ResponseDecoder):
    """Decodes a curl_cffi ``Response`` carried in ``RawTransferResult.native``."""

    def decode(self, raw: RawTransferResult) -> HttpResponse:
        response = raw.native
        if response is None:
            raise ResponseDecodeError(f"No curl_cffi response attached for {raw.url}")

        headers = response.headers
        if hasattr(headers, "multi_items"):
            pairs = list(headers.multi_items())
        else:
            pairs = list(headers.items())

        elapsed = getattr(response, "elapsed", 0.0) or 0.0
        if hasattr(elapsed, "total_seconds"):
            elapsed = elapsed.total_seconds()

        content = response.content or b""
        http_version = getattr(response, "http_version", None)

        return HttpResponse(
            status_code=response.status_code,
            status_text=status_text_for(response.status_code, getattr(response, "reason", None)),
            headers=join_headers(pairs),
            body=response.text,
            url=str(response.url or raw.url),
            response_time=float(elapsed),
            size=len(content),
            http_version=str(http_version) if http_version is not None else None,
        )


__all__ = [
    "ResponseDecoder",
    "CurlOutputDecoder",
    "CurlCffiResponseDecoder",
    "status_text_for",
    "join_headers",
]
