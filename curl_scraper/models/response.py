"""HttpResponse model."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .proxy import ProxyConfig


@dataclass(frozen=True)
class HttpResponse:
    """
    A decoded HTTP response.

    Header names are lower-case; repeated headers are joined with ``", "``.
    ``response_time`` is in seconds and ``size`` in bytes as reported by the
    transport.
    """

    status_code: int
    status_text: str
    headers: Dict[str, str]
    body: str
    url: str
    response_time: float = 0.0
    size: int = 0
    http_version: Optional[str] = None
    proxy_used: Optional[ProxyConfig] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def text(self) -> str:
        return self.body

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def json(self) -> Any:
        """Decode the body as JSON, raising ``ValueError`` on malformed input."""
        return json.loads(self.body)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "url": self.url,
            "response_time": self.response_time,
            "size": self.size,
            "http_version": self.http_version,
            "proxy_used": self.proxy_used.url if self.proxy_used else None,
        }
