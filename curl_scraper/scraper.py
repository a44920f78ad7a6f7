"""
Scraper - synchronous interface over the async orchestrator.

Every call is funnelled onto one background event loop, so the session store
and proxy pool keep a single writer. A scraper keeps one sticky session,
like ``requests.Session``.

Example usage:
    import curl_scraper

    scraper = curl_scraper.create_scraper()
    response = scraper.get("https://example.com")
    print(response.text)
"""

import asyncio
import threading
from typing import Any, Iterable, Optional, Tuple

from .config import ScraperConfig
from .extract import DEFAULT_SCRIPT_ID, ParsedDocument
from .models import BatchResult, HttpResponse, RequestSpec
from .orchestrator import RequestOrchestrator


class Scraper:
    """Synchronous scraper bound to a background event loop."""

    def __init__(self, config: Optional[ScraperConfig] = None,
                 orchestrator: Optional[RequestOrchestrator] = None,
                 session_id: Optional[str] = None):
        self.config = config or (orchestrator.config if orchestrator else ScraperConfig())
        self._orchestrator = orchestrator
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._is_closed = False
        self.session_id = session_id

        self._start_event_loop()

    def _start_event_loop(self) -> None:
        """Start the event loop in a background thread."""
        ready = threading.Event()

        def run_loop():
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            ready.set()
            self._loop.run_forever()
            self._loop.close()

        self._thread = threading.Thread(target=run_loop, name="curl-scraper-loop", daemon=True)
        self._thread.start()
        ready.wait()

    @property
    def orchestrator(self) -> RequestOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = RequestOrchestrator(self.config)
        return self._orchestrator

    def _run(self, coro) -> Any:
        if self._is_closed:
            coro.close()
            raise RuntimeError("Scraper has been closed")
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def _bind_session(self) -> str:
        """Resolve the sticky session, replacing it when it expired or vanished."""
        session = self.orchestrator.sessions.get(self.session_id)
        self.session_id = session.id
        return session.id

    async def _in_session(self, call, url: str, *args: Any, **kwargs: Any) -> Any:
        return await call(url, *args, session_id=self._bind_session(), **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> HttpResponse:
        """Perform an HTTP request."""
        return self._run(self._in_session(self.orchestrator.request, url, method=method, **kwargs))

    def get(self, url: str, **kwargs: Any) -> HttpResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, data: Optional[str] = None, json: Any = None, **kwargs: Any) -> HttpResponse:
        if data is not None:
            kwargs["body"] = data
        if json is not None:
            kwargs["json"] = json
        return self.request("POST", url, **kwargs)

    def put(self, url: str, data: Optional[str] = None, json: Any = None, **kwargs: Any) -> HttpResponse:
        if data is not None:
            kwargs["body"] = data
        if json is not None:
            kwargs["json"] = json
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> HttpResponse:
        return self.request("DELETE", url, **kwargs)

    def request_json(self, url: str, **kwargs: Any) -> Tuple[HttpResponse, Any]:
        return self._run(self._in_session(self.orchestrator.request_json, url, **kwargs))

    def request_html(self, url: str, **kwargs: Any) -> Tuple[HttpResponse, ParsedDocument]:
        return self._run(self._in_session(self.orchestrator.request_html, url, **kwargs))

    def request_script_data(self, url: str, script_id: str = DEFAULT_SCRIPT_ID, **kwargs: Any) -> Any:
        return self._run(self._in_session(
            self.orchestrator.request_script_data, url, script_id, **kwargs))

    def batch_request(self, urls: Iterable[str], concurrency: Optional[int] = None,
                      shared_session: bool = False, **kwargs: Any) -> BatchResult:
        """Fetch several URLs concurrently; with ``shared_session`` they reuse this scraper's session."""
        options = RequestSpec.from_kwargs(**kwargs) if kwargs else None

        async def run():
            session_id = self._bind_session() if shared_session else None
            return await self.orchestrator.batch_request(urls, options, session_id, concurrency)

        return self._run(run())

    def close(self) -> None:
        """Close the transport and stop the background loop."""
        if self._is_closed:
            return

        if self._orchestrator is not None:
            asyncio.run_coroutine_threadsafe(self._orchestrator.close(), self._loop).result()
        self._is_closed = True

        self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)

    def __enter__(self) -> "Scraper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_scraper(config: Optional[ScraperConfig] = None, **kwargs: Any) -> Scraper:
    """
    Create a Scraper instance.

    Args:
        config: Optional ScraperConfig for advanced configuration
        **kwargs: Configuration sections passed to ``ScraperConfig.from_dict``
            when no config object is given

    Returns:
        Scraper instance ready for use
    """
    if config is None:
        config = ScraperConfig.from_dict(kwargs) if kwargs else ScraperConfig()
    return Scraper(config)


# Convenience functions for one-off requests
def get(url: str, **kwargs: Any) -> HttpResponse:
    """Perform a GET request (convenience function)."""
    with create_scraper() as scraper:
        return scraper.get(url, **kwargs)


def post(url: str, data: Optional[str] = None, json: Any = None, **kwargs: Any) -> HttpResponse:
    """Perform a POST request (convenience function)."""
    with create_scraper() as scraper:
        return scraper.post(url, data=data, json=json, **kwargs)


__all__ = ["Scraper", "create_scraper", "get", "post"]
