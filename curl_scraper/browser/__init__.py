"""Browser identities used for impersonation."""

from .fingerprint import Fingerprint, FingerprintCatalog, DEFAULT_FINGERPRINTS, default_catalog
from .binaries import BinaryTarget, catalog_from_binaries, discover_fingerprints, parse_binary_name

__all__ = [
    "Fingerprint",
    "FingerprintCatalog",
    "DEFAULT_FINGERPRINTS",
    "default_catalog",
    "BinaryTarget",
    "catalog_from_binaries",
    "discover_fingerprints",
    "parse_binary_name",
]
