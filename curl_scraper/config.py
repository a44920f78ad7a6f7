"""Configuration for the scraper.

Dataclass settings grouped by concern, validated on construction. Durations
are in seconds. ``ScraperConfig.from_dict`` accepts snake_case keys as well
as the camelCase spellings used by existing JSON configuration files
(``maxAge``, ``proxyRotation``...).
"""

import json
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import ProxyConfig
from .proxy import RotationStrategy

TRANSPORT_BACKENDS = ("curl-impersonate", "curl_cffi")


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_snake_case(key): value for key, value in data.items()}


def _build(cls, data: Optional[Dict[str, Any]]):
    if data is None:
        return cls()
    normalized = _normalize_keys(data)
    known = {f.name for f in fields(cls)}
    unknown = set(normalized) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} options: {', '.join(sorted(unknown))}")
    return cls(**normalized)


@dataclass
class SessionSettings:
    """Session lifecycle settings."""
    enabled: bool = True
    max_age: Optional[float] = 1800.0  # None disables expiry
    auto_rotate: bool = True  # reserved
    rotate_on_error: bool = True
    max_retries: int = 3
    # Raise SessionExpiredError for an expired id instead of replacing it
    strict_expiry: bool = False

    def __post_init__(self):
        if self.max_age is not None and self.max_age <= 0:
            raise ValueError("max_age must be positive or None")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")


@dataclass
class CloudflareSettings:
    """Block and challenge handling settings."""
    enabled: bool = True
    auto_retry: bool = True
    max_retries: int = 3
    challenge_timeout: float = 30.0  # reserved
    js_challenge: bool = True
    captcha_challenge: bool = False  # reserved, no solver
    fingerprint_rotation: bool = True

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.challenge_timeout <= 0:
            raise ValueError("challenge_timeout must be positive")


@dataclass
class ProxyRotationSettings:
    """Proxy pool settings."""
    enabled: bool = False
    proxies: List[ProxyConfig] = field(default_factory=list)
    auto_switch: bool = True
    max_failures: int = 3
    cooldown_time: float = 5.0  # reserved
    strategy: str = RotationStrategy.ROUND_ROBIN.value

    def __post_init__(self):
        self.proxies = [self._coerce_proxy(proxy) for proxy in self.proxies]
        if isinstance(self.strategy, RotationStrategy):
            self.strategy = self.strategy.value
        try:
            RotationStrategy(self.strategy)
        except ValueError as e:
            raise ValueError(f"Unknown proxy rotation strategy: {self.strategy}") from e
        if self.max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        if self.cooldown_time < 0:
            raise ValueError("cooldown_time must be non-negative")

    @staticmethod
    def _coerce_proxy(proxy: Union[ProxyConfig, str, Dict[str, Any]]) -> ProxyConfig:
        if isinstance(proxy, ProxyConfig):
            return proxy
        if isinstance(proxy, str):
            return ProxyConfig.from_url(proxy)
        if isinstance(proxy, dict):
            return ProxyConfig.from_dict(_normalize_keys(proxy))
        raise TypeError(f"Unsupported proxy specification: {proxy!r}")


@dataclass
class RateLimitSettings:
    """Pacing and fan-out settings."""
    enabled: bool = False
    delay_between_requests: float = 0.0
    requests_per_second: Optional[float] = None
    requests_per_minute: Optional[float] = None
    adaptive_delay: bool = False  # reserved
    max_concurrent_requests: int = 4  # batch fan-out

    def __post_init__(self):
        if self.delay_between_requests < 0:
            raise ValueError("delay_between_requests must be non-negative")
        for name in ("requests_per_second", "requests_per_minute"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive or None")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

    @property
    def min_interval(self) -> float:
        """Smallest gap between two request starts implied by these settings."""
        if not self.enabled:
            return 0.0
        intervals = [self.delay_between_requests]
        if self.requests_per_second:
            intervals.append(1.0 / self.requests_per_second)
        if self.requests_per_minute:
            intervals.append(60.0 / self.requests_per_minute)
        return max(intervals)


@dataclass
class TransportSettings:
    """Transport backend settings."""
    backend: str = "curl-impersonate"
    binary: str = "curl-impersonate"
    binaries_path: Optional[str] = None
    default_timeout: float = 30.0
    default_max_redirects: int = 5
    default_verify_ssl: bool = True
    # Add a fingerprint for every curl_* wrapper found in binaries_path
    discover_binaries: bool = False

    def __post_init__(self):
        if self.backend not in TRANSPORT_BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(TRANSPORT_BACKENDS)}")
        if self.default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        if self.default_max_redirects < 0:
            raise ValueError("default_max_redirects must be non-negative")
        if self.discover_binaries and not self.binaries_path:
            raise ValueError("discover_binaries requires binaries_path")


@dataclass
class ScraperConfig:
    """Top-level configuration."""
    session: SessionSettings = field(default_factory=SessionSettings)
    cloudflare: CloudflareSettings = field(default_factory=CloudflareSettings)
    proxy_rotation: ProxyRotationSettings = field(default_factory=ProxyRotationSettings)
    transport: TransportSettings = field(default_factory=TransportSettings)
    rate_limiting: RateLimitSettings = field(default_factory=RateLimitSettings)
    retry_delay: float = 1.0  # linear backoff base, seconds

    def __post_init__(self):
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScraperConfig":
        normalized = _normalize_keys(data)
        sections = {
            "session": SessionSettings,
            "cloudflare": CloudflareSettings,
            "proxy_rotation": ProxyRotationSettings,
            "transport": TransportSettings,
            "rate_limiting": RateLimitSettings,
        }
        unknown = set(normalized) - set(sections) - {"retry_delay"}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        kwargs: Dict[str, Any] = {
            name: _build(section_cls, normalized.get(name))
            for name, section_cls in sections.items()
        }
        if "retry_delay" in normalized:
            kwargs["retry_delay"] = float(normalized["retry_delay"])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScraperConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": vars(self.session).copy(),
            "cloudflare": vars(self.cloudflare).copy(),
            "proxy_rotation": {
                **vars(self.proxy_rotation),
                "proxies": [proxy.url for proxy in self.proxy_rotation.proxies],
            },
            "transport": vars(self.transport).copy(),
            "rate_limiting": vars(self.rate_limiting).copy(),
            "retry_delay": self.retry_delay,
        }


__all__ = [
    "SessionSettings",
    "CloudflareSettings",
    "ProxyRotationSettings",
    "TransportSettings",
    "RateLimitSettings",
    "ScraperConfig",
    "TRANSPORT_BACKENDS",
]
