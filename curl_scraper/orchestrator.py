"""Request orchestration: the retry and identity-rotation state machine.

Each attempt picks a fingerprint and proxy from the session, runs the
transport, decodes and classifies the response, then either returns it or
decides between rotating identity, switching proxy, backing off, or raising.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from .browser.binaries import catalog_from_binaries
from .browser.fingerprint import FingerprintCatalog, default_catalog
from .challenge.detector import ChallengeClassifier, HeuristicChallengeClassifier
from .config import ScraperConfig
from .errors import (
    CloudflareError,
    MaxRetriesExceededError,
    ProxyError,
    ResponseDecodeError,
    ScraperError,
    TransportError,
)
from .extract import DEFAULT_SCRIPT_ID, HtmlExtractor, ParsedDocument
from .http.cookies import merge_cookies, parse_set_cookie
from .http.response import CurlCffiResponseDecoder, CurlOutputDecoder, ResponseDecoder
from .http.transport import CurlCffiTransport, CurlImpersonateTransport, Transport, merge_headers
from .models import (
    BatchItem,
    BatchResult,
    HttpMethod,
    HttpResponse,
    ProxyConfig,
    RequestSpec,
    RetryAttempt,
)
from .proxy import ProxyPool
from .rate_limit import RequestRateLimiter
from .session import Session, SessionStore

module_logger = logging.getLogger(__name__)

# Substrings that attribute a failure to the proxy in use
PROXY_ERROR_KEYWORDS = (
    "connection refused",
    "timeout",
    "dns",
    "authentication",
    "socks",
    "proxy error",
)


def build_transport(config: ScraperConfig) -> Tuple[Transport, ResponseDecoder]:
    """Create the transport and matching decoder selected by the configuration."""
    settings = config.transport
    if settings.backend == "curl_cffi":
        return (
            CurlCffiTransport(
                default_timeout=settings.default_timeout,
                default_max_redirects=settings.default_max_redirects,
                default_verify_ssl=settings.default_verify_ssl,
            ),
            CurlCffiResponseDecoder(),
        )
    return (
        CurlImpersonateTransport(
            binary=settings.binary,
            binaries_path=settings.binaries_path,
            default_timeout=settings.default_timeout,
            default_max_redirects=settings.default_max_redirects,
            default_verify_ssl=settings.default_verify_ssl,
        ),
        CurlOutputDecoder(),
    )


def build_catalog(config: ScraperConfig) -> FingerprintCatalog:
    """Built-in profiles, plus discovered wrappers when the configuration asks for them."""
    settings = config.transport
    if settings.discover_binaries and settings.backend == "curl-impersonate":
        return catalog_from_binaries(settings.binaries_path, include_defaults=True)
    return default_catalog()


class RequestOrchestrator:
    """
    Drives requests through sessions, proxies and retries.

    All collaborators are injectable. ``sleep`` and ``clock`` default to
    ``asyncio.sleep`` and ``time.time``; ``logger`` defaults to this module's
    logger. The rate limiter paces every attempt, retries included.
    """

    def __init__(self, config: Optional[ScraperConfig] = None,
                 transport: Optional[Transport] = None,
                 decoder: Optional[ResponseDecoder] = None,
                 classifier: Optional[ChallengeClassifier] = None,
                 catalog: Optional[FingerprintCatalog] = None,
                 proxy_pool: Optional[ProxyPool] = None,
                 sessions: Optional[SessionStore] = None,
                 extractor: Optional[HtmlExtractor] = None,
                 logger: Optional[logging.Logger] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time,
                 rate_limiter: Optional[RequestRateLimiter] = None):
        self.config = config or ScraperConfig()
        self.logger = logger or module_logger
        self._sleep = sleep
        self._clock = clock

        if transport is None:
            transport, default_decoder = build_transport(self.config)
            decoder = decoder or default_decoder
        self.transport = transport
        self.decoder = decoder or CurlOutputDecoder()

        self.classifier = classifier or HeuristicChallengeClassifier(
            enabled=self.config.cloudflare.enabled,
            js_challenge=self.config.cloudflare.js_challenge,
        )

        rotation = self.config.proxy_rotation
        if proxy_pool is None:
            proxy_pool = ProxyPool(
                rotation.proxies,
                strategy=rotation.strategy,
                max_failures=rotation.max_failures,
                cooldown_time=rotation.cooldown_time,
                clock=clock,
            )
        self.proxy_pool = proxy_pool
        self.catalog = catalog if catalog is not None else build_catalog(self.config)
        if sessions is None:
            sessions = SessionStore(
                self.catalog,
                settings=self.config.session,
                proxy_pool=self.proxy_pool,
                rotate_proxies=rotation.enabled,
                fingerprint_rotation=self.config.cloudflare.fingerprint_rotation,
                clock=clock,
            )
        self.sessions = sessions
        self.extractor = extractor or HtmlExtractor()
        self.rate_limiter = rate_limiter or RequestRateLimiter.from_settings(
            self.config.rate_limiting, clock=clock, sleep=sleep
        )

    async def __aenter__(self) -> "RequestOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def request(self, url: str, options: Optional[RequestSpec] = None,
                      session_id: Optional[str] = None, **kwargs: Any) -> HttpResponse:
        """Perform a request with retries, identity rotation and proxy failover."""
        if options is not None and kwargs:
            raise TypeError("Pass either a RequestSpec or keyword options, not both")
        spec = options or RequestSpec.from_kwargs(**kwargs)

        session = self.sessions.get(session_id)
        max_attempts = self.config.session.max_retries
        attempts = []
        challenge_rotations = 0

        for attempt in range(1, max_attempts + 1):
            session.last_used = self._clock()
            session.request_count += 1

            proxy = self._select_proxy(session, spec)
            attempt_spec = self._prepare_spec(spec, session, proxy)
            self.logger.debug("Attempt %d/%d %s %s with %s via %s", attempt, max_attempts,
                              attempt_spec.method.value, url, session.fingerprint.name,
                              proxy.url if proxy else "direct connection")

            await self.rate_limiter.acquire()
            try:
                raw = await self.transport.execute(url, attempt_spec, session.fingerprint)
                response = self.decoder.decode(raw)
                challenge = self.classifier.classify(response)
                if challenge is not None:
                    raise challenge
            except (ScraperError, OSError) as error:
                session.error_count += 1
                attempts.append(RetryAttempt(attempt=attempt, error=error, timestamp=self._clock()))

                if isinstance(error, CloudflareError):
                    self.logger.warning("Attempt %d for %s blocked: %s", attempt, url, error)
                    if not self._should_retry_challenge(error, challenge_rotations):
                        raise
                    challenge_rotations += 1
                    self.sessions.rotate(session, rotate_proxy=False)
                    continue

                if proxy is not None and self._is_proxy_error(error):
                    proxy_error = ProxyError.from_error(error, proxy)
                    self.logger.warning("Proxy %s failed on attempt %d: %s", proxy.url, attempt, error)
                    if not self.config.proxy_rotation.auto_switch:
                        raise proxy_error from error
                    self.proxy_pool.mark_failed(proxy)
                    self.sessions.rotate(session, rotate_proxy=False)
                    continue

                if isinstance(error, TransportError) and not error.retryable:
                    raise

                self.logger.debug("Attempt %d for %s failed: %s", attempt, url, error)
                if attempt < max_attempts:
                    await self._sleep(self.config.retry_delay * attempt)
                continue

            cookies = parse_set_cookie(response.header("set-cookie"))
            if cookies:
                self.logger.debug("Storing %d cookies in session %s", len(cookies), session.id)
                session.update_cookies(cookies)
            return dataclasses.replace(response, proxy_used=proxy)

        self.logger.warning("Giving up on %s after %d attempts", url, len(attempts))
        raise MaxRetriesExceededError(attempts)

    def _select_proxy(self, session: Session, spec: RequestSpec) -> Optional[ProxyConfig]:
        if self.config.proxy_rotation.enabled:
            proxy = self.proxy_pool.next()
            if proxy is not None:
                session.proxy = proxy
                return proxy
            # Pool exhausted: drop the pooled proxy so the session does not keep a dead one
            session.proxy = None
            return spec.proxy
        return spec.proxy or session.proxy

    def _prepare_spec(self, spec: RequestSpec, session: Session,
                      proxy: Optional[ProxyConfig]) -> RequestSpec:
        return dataclasses.replace(
            spec,
            headers=merge_headers({"User-Agent": session.user_agent}, spec.headers),
            cookies=merge_cookies(session.cookies, spec.cookies),
            proxy=proxy,
        )

    def _should_retry_challenge(self, error: CloudflareError, rotations: int) -> bool:
        return (
            error.retryable
            and self.config.cloudflare.auto_retry
            and self.config.session.rotate_on_error
            and rotations < self.config.cloudflare.max_retries
        )

    @staticmethod
    def _is_proxy_error(error: BaseException) -> bool:
        message = str(error).lower()
        return any(keyword in message for keyword in PROXY_ERROR_KEYWORDS)

    async def get(self, url: str, session_id: Optional[str] = None, **kwargs: Any) -> HttpResponse:
        return await self.request(url, session_id=session_id, method=HttpMethod.GET, **kwargs)

    async def post(self, url: str, data: Optional[str] = None, json: Any = None,
                   session_id: Optional[str] = None, **kwargs: Any) -> HttpResponse:
        return await self.request(url, session_id=session_id, method=HttpMethod.POST,
                                  body=data, json=json, **kwargs)

    async def request_json(self, url: str, options: Optional[RequestSpec] = None,
                           session_id: Optional[str] = None, **kwargs: Any) -> Tuple[HttpResponse, Any]:
        response = await self.request(url, options, session_id, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise ResponseDecodeError(f"Response from {response.url} is not valid JSON: {e}") from e
        return response, data

    async def request_html(self, url: str, options: Optional[RequestSpec] = None,
                           session_id: Optional[str] = None,
                           **kwargs: Any) -> Tuple[HttpResponse, ParsedDocument]:
        response = await self.request(url, options, session_id, **kwargs)
        return response, self.extractor.parse(response)

    async def request_script_data(self, url: str, script_id: str = DEFAULT_SCRIPT_ID,
                                  options: Optional[RequestSpec] = None,
                                  session_id: Optional[str] = None, **kwargs: Any) -> Any:
        _, document = await self.request_html(url, options, session_id, **kwargs)
        return document.get_script_data(script_id)

    async def batch_request(self, urls: Iterable[str], options: Optional[RequestSpec] = None,
                            session_id: Optional[str] = None,
                            concurrency: Optional[int] = None) -> BatchResult:
        """
        Request many URLs with at most ``concurrency`` in flight.

        Each URL gets its own session unless ``session_id`` is given. Errors
        are collected per URL rather than raised; results keep input order.
        """
        urls = list(urls)
        limit = concurrency if concurrency is not None else self.config.rate_limiting.max_concurrent_requests
        if limit < 1:
            raise ValueError("concurrency must be at least 1")
        semaphore = asyncio.Semaphore(limit)
        started = self._clock()

        async def run(url: str) -> BatchItem:
            async with semaphore:
                item_started = self._clock()
                try:
                    response = await self.request(url, options, session_id)
                except ScraperError as error:
                    self.logger.warning("Batch request for %s failed: %s", url, error.code)
                    return BatchItem(url, error=error, duration=self._clock() - item_started)
                return BatchItem(url, response=response, duration=self._clock() - item_started)

        items = await asyncio.gather(*(run(url) for url in urls))
        result = BatchResult(items=list(items), duration=self._clock() - started)
        self.logger.info("Batch finished: %d/%d succeeded", result.successful_requests,
                         result.total_requests)
        return result

    def session_stats(self) -> Dict[str, int]:
        return self.sessions.stats()


__all__ = ["RequestOrchestrator", "build_transport", "build_catalog", "PROXY_ERROR_KEYWORDS"]
