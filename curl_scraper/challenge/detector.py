"""Block and challenge page detection.

Classification is heuristic: a status code commonly used by bot mitigation,
a vendor header or a telltale phrase in the body flags the response. No
challenge is ever solved here; the orchestrator decides whether to rotate
identity and retry.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..errors import ChallengeKind, CloudflareError
from ..models import HttpResponse

logger = logging.getLogger(__name__)

CHALLENGE_STATUS_CODES = frozenset({403, 429, 503})

CHALLENGE_HEADER_INDICATORS: Tuple[str, ...] = (
    "cloudflare",
    "cf-ray",
    "cf-cache-status",
    "cf-request-id",
    "challenge-platform",
    "cf-browser-verification",
)

CHALLENGE_BODY_INDICATORS: Tuple[str, ...] = (
    "cloudflare",
    "checking your browser",
    "ddos protection",
    "please wait while we verify",
    "challenge-form",
)


class ChallengeClassifier(ABC):
    """Decides whether a response is a block or challenge page."""

    @abstractmethod
    def classify(self, response: HttpResponse) -> Optional[CloudflareError]:
        """Return the error describing the challenge, or ``None`` for a normal response."""


class HeuristicChallengeClassifier(ChallengeClassifier):
    """
    Status/header/body heuristics for Cloudflare style challenges.

    The vendor headers are present on every response served through the
    CDN, so any proxied site is flagged as well; callers who need finer
    control should plug in their own classifier.
    """

    def __init__(self, enabled: bool = True, js_challenge: bool = True):
        self.enabled = enabled
        self.js_challenge = js_challenge

    def is_challenge(self, response: HttpResponse) -> bool:
        if response.status_code in CHALLENGE_STATUS_CODES:
            return True
        for name in response.headers:
            lowered = name.lower()
            if any(indicator in lowered for indicator in CHALLENGE_HEADER_INDICATORS):
                return True
        body = response.body.lower()
        return any(indicator in body for indicator in CHALLENGE_BODY_INDICATORS)

    def classify(self, response: HttpResponse) -> Optional[CloudflareError]:
        if not self.enabled or not self.is_challenge(response):
            return None

        body = response.body.lower()
        ray_id = response.header("cf-ray")
        suffix = f" (Ray ID: {ray_id})" if ray_id else ""

        if "captcha" in body:
            kind, retryable, message = ChallengeKind.CAPTCHA, False, "CAPTCHA challenge detected"
        elif "javascript" in body or "js challenge" in body:
            kind, retryable, message = (ChallengeKind.JS_CHALLENGE, self.js_challenge,
                                        "JavaScript challenge detected")
        elif response.status_code == 403:
            kind, retryable, message = ChallengeKind.BANNED, True, "Access denied by Cloudflare"
        else:
            kind, retryable, message = ChallengeKind.CHALLENGE, True, "Cloudflare challenge detected"

        logger.debug("Classified response from %s as %s", response.url, kind.value)
        return CloudflareError(
            f"{message}{suffix}",
            kind=kind,
            response=response,
            retryable=retryable,
            ray_id=ray_id,
        )


__all__ = [
    "ChallengeClassifier",
    "HeuristicChallengeClassifier",
    "CHALLENGE_STATUS_CODES",
    "CHALLENGE_HEADER_INDICATORS",
    "CHALLENGE_BODY_INDICATORS",
]
