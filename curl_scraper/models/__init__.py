"""Data models for curl_scraper.

Requests, responses, proxies and retry diagnostics shared by the transport,
session and orchestration layers.
"""

from .proxy import ProxyConfig, PROXY_PROTOCOLS
from .request import HttpMethod, RequestSpec, RetryAttempt
from .response import HttpResponse
from .batch import BatchItem, BatchResult

__all__ = [
    "ProxyConfig",
    "PROXY_PROTOCOLS",
    "HttpMethod",
    "RequestSpec",
    "RetryAttempt",
    "HttpResponse",
    "BatchItem",
    "BatchResult",
]
