"""Batch request results."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .response import HttpResponse


def _final_error(error: Optional[BaseException]) -> Optional[BaseException]:
    # Unwrap retry exhaustion to the error of its last attempt
    last = getattr(error, "last_error", None)
    return last if last is not None else error


@dataclass
class BatchItem:
    """Outcome of one URL in a batch: a response or the error that ended it."""
    url: str
    response: Optional[HttpResponse] = None
    error: Optional[BaseException] = None
    duration: float = 0.0  # seconds

    @property
    def success(self) -> bool:
        return self.error is None and self.response is not None

    @property
    def challenged(self) -> bool:
        return str(getattr(_final_error(self.error), "code", "")).startswith("CF_")

    @property
    def proxy_failed(self) -> bool:
        return bool(getattr(_final_error(self.error), "proxy_failed", False))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "success": self.success,
            "status_code": self.response.status_code if self.response else None,
            "error": self.error.to_dict() if hasattr(self.error, "to_dict") else (
                str(self.error) if self.error is not None else None),
            "duration": self.duration,
        }


@dataclass
class BatchResult:
    """Per-URL outcomes of a batch, in input order, with aggregate counts."""
    items: List[BatchItem] = field(default_factory=list)
    duration: float = 0.0

    @property
    def total_requests(self) -> int:
        return len(self.items)

    @property
    def successful_requests(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed_requests(self) -> int:
        return self.total_requests - self.successful_requests

    @property
    def cloudflare_challenges(self) -> int:
        return sum(1 for item in self.items if item.challenged)

    @property
    def proxy_failures(self) -> int:
        return sum(1 for item in self.items if item.proxy_failed)

    @property
    def average_response_time(self) -> float:
        if not self.items:
            return 0.0
        return sum(item.duration for item in self.items) / len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "cloudflare_challenges": self.cloudflare_challenges,
            "proxy_failures": self.proxy_failures,
            "average_response_time": self.average_response_time,
            "duration": self.duration,
            "results": [item.to_dict() for item in self.items],
        }
