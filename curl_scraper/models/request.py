"""Request models.

``RequestSpec`` describes one logical request; it is transient and never
persisted. ``RetryAttempt`` records a failed attempt for diagnostics.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .proxy import ProxyConfig


class HttpMethod(Enum):
    """HTTP method enumeration."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass
class RequestSpec:
    """
    Options for a single request.

    At most one of ``body``, ``json`` and ``form_data`` may be set. ``None``
    for ``timeout``, ``max_redirects`` or ``verify_ssl`` means the transport
    default applies.
    """

    method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = field(default_factory=dict)

    # Payload (mutually exclusive)
    body: Optional[str] = None
    json: Any = None
    form_data: Optional[Dict[str, str]] = None

    cookies: Dict[str, str] = field(default_factory=dict)

    timeout: Optional[float] = None  # seconds
    follow_redirects: bool = True
    max_redirects: Optional[int] = None
    verify_ssl: Optional[bool] = None

    proxy: Optional[ProxyConfig] = None

    def __post_init__(self):
        """Validate request options after initialization."""
        if isinstance(self.method, str):
            try:
                self.method = HttpMethod(self.method.upper())
            except ValueError as e:
                raise ValueError(f"Unsupported HTTP method: {self.method}") from e

        payloads = [name for name, value in (
            ("body", self.body), ("json", self.json), ("form_data", self.form_data)
        ) if value is not None]
        if len(payloads) > 1:
            raise ValueError(f"Only one of body, json and form_data may be set (got {', '.join(payloads)})")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_redirects is not None and self.max_redirects < 0:
            raise ValueError("max_redirects must be non-negative")
        if self.proxy is not None and not isinstance(self.proxy, ProxyConfig):
            if isinstance(self.proxy, str):
                self.proxy = ProxyConfig.from_url(self.proxy)
            else:
                raise TypeError("proxy must be a ProxyConfig or proxy URL")

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> "RequestSpec":
        """Build a spec from keyword options, accepting ``data`` as an alias of ``body``."""
        if "data" in kwargs:
            kwargs["body"] = kwargs.pop("data")
        unknown = set(kwargs) - set(cls.__dataclass_fields__)
        if unknown:
            raise TypeError(f"Unknown request options: {', '.join(sorted(unknown))}")
        return cls(**kwargs)


@dataclass
class RetryAttempt:
    """One failed attempt of a request."""
    attempt: int
    error: BaseException
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "error": str(self.error),
            "code": getattr(self.error, "code", type(self.error).__name__),
            "timestamp": self.timestamp,
        }
