"""HTTP transport layer.

Transports, response decoders and cookie helpers.
"""

from .transport import (
    RawTransferResult,
    Transport,
    CurlImpersonateTransport,
    CurlCffiTransport,
    merge_headers,
)
from .response import ResponseDecoder, CurlOutputDecoder, CurlCffiResponseDecoder
from .cookies import parse_set_cookie, build_cookie_header, parse_cookie_header

__all__ = [
    "RawTransferResult",
    "Transport",
    "CurlImpersonateTransport",
    "CurlCffiTransport",
    "merge_headers",
    "ResponseDecoder",
    "CurlOutputDecoder",
    "CurlCffiResponseDecoder",
    "parse_set_cookie",
    "build_cookie_header",
    "parse_cookie_header",
]
