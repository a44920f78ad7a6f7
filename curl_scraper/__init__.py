"""Browser-impersonating HTTP client built on curl-impersonate.

Fetches URLs with the TLS/HTTP2 fingerprints of real browsers and layers on
top of the external tool:
- persistent sessions (cookies, fingerprint, proxy)
- proxy rotation with failure tracking
- request pacing and concurrent batch fetching
- retry with identity rotation when a block or challenge page is detected
- HTML and embedded script-data extraction
"""

# Simple synchronous interface
from .scraper import (
    Scraper,
    create_scraper,
    get,
    post,
)

# Async orchestration
from .orchestrator import RequestOrchestrator

from .config import (
    ScraperConfig,
    SessionSettings,
    CloudflareSettings,
    ProxyRotationSettings,
    TransportSettings,
    RateLimitSettings,
)

from .models import (
    HttpMethod,
    HttpResponse,
    ProxyConfig,
    RequestSpec,
    RetryAttempt,
    BatchItem,
    BatchResult,
)

from .browser import Fingerprint, FingerprintCatalog, catalog_from_binaries, default_catalog
from .rate_limit import RequestRateLimiter
from .tls import TLSParameters
from .proxy import ProxyPool, RotationStrategy
from .session import Session, SessionStore
from .challenge import ChallengeClassifier, HeuristicChallengeClassifier
from .extract import HtmlExtractor, ParsedDocument, HtmlElement
from .http import (
    Transport,
    CurlImpersonateTransport,
    CurlCffiTransport,
    RawTransferResult,
    ResponseDecoder,
    CurlOutputDecoder,
    CurlCffiResponseDecoder,
)

from .errors import (
    ScraperError,
    TransportError,
    ResponseDecodeError,
    CloudflareError,
    ChallengeKind,
    ProxyError,
    ProxyErrorKind,
    MaxRetriesExceededError,
    SessionExpiredError,
    FingerprintNotFoundError,
    HtmlParseError,
)

__version__ = "1.0.0"

__all__ = [
    "Scraper",
    "create_scraper",
    "get",
    "post",
    "RequestOrchestrator",
    "ScraperConfig",
    "SessionSettings",
    "CloudflareSettings",
    "ProxyRotationSettings",
    "TransportSettings",
    "RateLimitSettings",
    "HttpMethod",
    "HttpResponse",
    "ProxyConfig",
    "RequestSpec",
    "RetryAttempt",
    "BatchItem",
    "BatchResult",
    "Fingerprint",
    "FingerprintCatalog",
    "default_catalog",
    "catalog_from_binaries",
    "RequestRateLimiter",
    "TLSParameters",
    "ProxyPool",
    "RotationStrategy",
    "Session",
    "SessionStore",
    "ChallengeClassifier",
    "HeuristicChallengeClassifier",
    "HtmlExtractor",
    "ParsedDocument",
    "HtmlElement",
    "Transport",
    "CurlImpersonateTransport",
    "CurlCffiTransport",
    "RawTransferResult",
    "ResponseDecoder",
    "CurlOutputDecoder",
    "CurlCffiResponseDecoder",
    "ScraperError",
    "TransportError",
    "ResponseDecodeError",
    "CloudflareError",
    "ChallengeKind",
    "ProxyError",
    "ProxyErrorKind",
    "MaxRetriesExceededError",
    "SessionExpiredError",
    "FingerprintNotFoundError",
    "HtmlParseError",
    "__version__",
]
