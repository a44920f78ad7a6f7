"""TLS fingerprint parameters."""

from .fingerprint import TLSParameters

__all__ = ["TLSParameters"]
