"""Browser fingerprint profiles and the catalog they are selected from.

A fingerprint bundles the request headers a browser sends with the TLS/HTTP2
parameters of its handshake. The catalog is read-only once built.
"""

import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..tls.fingerprint import TLSParameters


@dataclass(frozen=True)
class Fingerprint:
    """A complete, immutable browser identity."""

    name: str
    display_name: str
    browser: str  # chrome, firefox, safari, edge
    version: str
    platform: str  # desktop, mobile
    os: str  # windows, macos, linux, android, ios
    headers: Dict[str, str] = field(hash=False)
    tls: TLSParameters = field(hash=False)

    # curl_cffi impersonation target (e.g. "chrome136")
    impersonate: Optional[str] = None
    # Dedicated curl-impersonate wrapper script (e.g. "curl_chrome136")
    binary_name: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("name must not be empty")
        if not any(key.lower() == "user-agent" for key in self.headers):
            raise ValueError(f"Fingerprint {self.name} has no User-Agent header")

    @property
    def user_agent(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "user-agent":
                return value
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "browser": self.browser,
            "version": self.version,
            "platform": self.platform,
            "os": self.os,
            "headers": dict(self.headers),
            "tls": self.tls.to_dict(),
            "impersonate": self.impersonate,
            "binary_name": self.binary_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fingerprint":
        return cls(
            name=data["name"],
            display_name=data.get("display_name", data.get("displayName", data["name"])),
            browser=data["browser"],
            version=str(data["version"]),
            platform=data.get("platform", "desktop"),
            os=data["os"],
            headers=dict(data["headers"]),
            tls=TLSParameters.from_dict(data["tls"]),
            impersonate=data.get("impersonate"),
            binary_name=data.get("binary_name", data.get("binaryName")),
        )


class FingerprintCatalog:
    """
    Ordered, read-only collection of fingerprints keyed by name.

    Lookups by name fall back to a case-insensitive match on either the key
    or the display name.
    """

    def __init__(self, fingerprints: Iterable[Fingerprint], rng: Optional[random.Random] = None):
        self._fingerprints: Dict[str, Fingerprint] = {}
        for fingerprint in fingerprints:
            if fingerprint.name in self._fingerprints:
                raise ValueError(f"Duplicate fingerprint name: {fingerprint.name}")
            self._fingerprints[fingerprint.name] = fingerprint
        if not self._fingerprints:
            raise ValueError("A fingerprint catalog needs at least one entry")
        self._rng = rng or random.Random()

    def get(self, name: str) -> Optional[Fingerprint]:
        fingerprint = self._fingerprints.get(name)
        if fingerprint is not None:
            return fingerprint
        lowered = name.lower()
        for candidate in self._fingerprints.values():
            if candidate.name.lower() == lowered or candidate.display_name.lower() == lowered:
                return candidate
        return None

    def list(self) -> List[str]:
        return list(self._fingerprints)

    def find_all(self, browser: str, version: Optional[str] = None,
                 os: Optional[str] = None) -> List[Fingerprint]:
        """All fingerprints matching the browser and optional version/os, in catalog order."""
        return [
            fp for fp in self._fingerprints.values()
            if fp.browser == browser
            and (version is None or fp.version == version)
            and (os is None or fp.os == os)
        ]

    def find(self, browser: str, version: Optional[str] = None,
             os: Optional[str] = None) -> Optional[Fingerprint]:
        matches = self.find_all(browser, version, os)
        return matches[0] if matches else None

    def random(self, exclude: Optional[Fingerprint] = None) -> Fingerprint:
        """Pick a fingerprint uniformly, avoiding ``exclude`` when another entry exists."""
        candidates = list(self._fingerprints.values())
        if exclude is not None and len(candidates) > 1:
            candidates = [fp for fp in candidates if fp.name != exclude.name] or candidates
        return self._rng.choice(candidates)

    def __len__(self) -> int:
        return len(self._fingerprints)

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(self._fingerprints.values())

    def __contains__(self, name: object) -> bool:
        return name in self._fingerprints


_CHROME_ACCEPT = ("text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
                  "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7")
_CHROME_CIPHERS = ("TLS_AES_128_GCM_SHA256:TLS_AES_256_GCM_SHA384:TLS_CHACHA20_POLY1305_SHA256:"
                   "ECDHE-ECDSA-AES128-GCM-SHA256:ECDHE-RSA-AES128-GCM-SHA256:"
                   "ECDHE-ECDSA-AES256-GCM-SHA384:ECDHE-RSA-AES256-GCM-SHA384:"
                   "ECDHE-ECDSA-CHACHA20-POLY1305:ECDHE-RSA-CHACHA20-POLY1305:"
                   "ECDHE-RSA-AES128-SHA:ECDHE-RSA-AES256-SHA:AES128-GCM-SHA256:"
                   "AES256-GCM-SHA384:AES128-SHA:AES256-SHA")
_GENERIC_SEC_CH_UA = '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"'


def _navigation_headers(user_agent: str, accept: str, accept_language: str,
                        accept_encoding: str, sec_ch_ua: str, sec_ch_ua_platform: str,
                        sec_ch_ua_mobile: str = "?0", **extra: str) -> Dict[str, str]:
    headers = {
        "User-Agent": user_agent,
        "Accept": accept,
        "Accept-Language": accept_language,
        "Accept-Encoding": accept_encoding,
        "sec-ch-ua": sec_ch_ua,
        "sec-ch-ua-mobile": sec_ch_ua_mobile,
        "sec-ch-ua-platform": sec_ch_ua_platform,
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-User": "?1",
        "Sec-Fetch-Dest": "document",
        "Priority": "u=0, i",
    }
    headers.update(extra)
    return headers


def _chrome_tls(curves: str, new_alps_codepoint: bool) -> TLSParameters:
    return TLSParameters(
        ciphers=_CHROME_CIPHERS,
        curves=curves,
        http2_settings="1:65536;2:0;4:6291456;6:262144",
        http2_window_update=15663105,
        http2_stream_weight=256,
        http2_stream_exclusive=1,
        ech_grease=True,
        tlsv12=True,
        alps=True,
        tls_permute_extensions=True,
        cert_compression="brotli",
        tls_grease=True,
        tls_use_new_alps_codepoint=new_alps_codepoint,
        tls_signed_cert_timestamps=True,
    )


def _build_default_fingerprints() -> List[Fingerprint]:
    chrome131_android = Fingerprint(
        name="chrome131-android",
        display_name="Chrome 131 Android",
        browser="chrome",
        version="131",
        platform="mobile",
        os="android",
        headers=_navigation_headers(
            "Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Mobile Safari/537.36",
            _CHROME_ACCEPT, "en-US,en;q=0.9", "gzip, deflate, br, zstd",
            '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
            '"Android"',
        ),
        tls=_chrome_tls("X25519:P-256:P-384", new_alps_codepoint=False),
        impersonate="chrome131_android",
    )

    firefox135_macos = Fingerprint(
        name="firefox135-macos",
        display_name="Firefox 135 macOS",
        browser="firefox",
        version="135",
        platform="desktop",
        os="macos",
        headers=_navigation_headers(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:135.0) Gecko/20100101 Firefox/135.0",
            "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "en-US,en;q=0.5", "gzip, deflate, br, zstd", _GENERIC_SEC_CH_UA, '"macOS"',
            TE="trailers",
        ),
        tls=TLSParameters(
            ciphers=("TLS_AES_128_GCM_SHA256:TLS_CHACHA20_POLY1305_SHA256:TLS_AES_256_GCM_SHA384:"
                     "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256:TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256:"
                     "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256:"
                     "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256:"
                     "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384:TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384:"
                     "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA:TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA:"
                     "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA:TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA:"
                     "TLS_RSA_WITH_AES_128_GCM_SHA256:TLS_RSA_WITH_AES_256_GCM_SHA384:"
                     "TLS_RSA_WITH_AES_128_CBC_SHA:TLS_RSA_WITH_AES_256_CBC_SHA"),
            curves="X25519MLKEM768:X25519:P-256:P-384:P-521:ffdhe2048:ffdhe3072",
            http2_settings="1:65536;2:0;4:131072;5:16384",
            http2_window_update=12517377,
            http2_stream_weight=42,
            http2_stream_exclusive=0,
            ech_grease=True,
            tlsv12=True,
            alps=False,
            tls_permute_extensions=False,
            cert_compression="zlib,brotli,zstd",
            tls_grease=False,
            tls_use_new_alps_codepoint=False,
            tls_signed_cert_timestamps=True,
            signature_hashes=("ecdsa_secp256r1_sha256:ecdsa_secp384r1_sha384:ecdsa_secp521r1_sha512:"
                              "rsa_pss_rsae_sha256:rsa_pss_rsae_sha384:rsa_pss_rsae_sha512:"
                              "rsa_pkcs1_sha256:rsa_pkcs1_sha384:rsa_pkcs1_sha512:"
                              "ecdsa_sha1:rsa_pkcs1_sha1"),
            tls_extension_order="0-23-65281-10-11-35-16-5-34-18-51-43-13-45-28-27-65037",
            tls_delegated_credentials=("ecdsa_secp256r1_sha256:ecdsa_secp384r1_sha384:"
                                       "ecdsa_secp521r1_sha512:ecdsa_sha1"),
            tls_record_size_limit=4001,
            tls_key_shares_limit=3,
            http2_pseudo_headers_order="mpas",
        ),
        impersonate="firefox135",
    )

    safari184_macos = Fingerprint(
        name="safari184-macos",
        display_name="Safari 18.4 macOS",
        browser="safari",
        version="184",
        platform="desktop",
        os="macos",
        headers=_navigation_headers(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/18.4 Safari/605.1.15",
            "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "en-US,en;q=0.9", "gzip, deflate, br", _GENERIC_SEC_CH_UA, '"macOS"',
        ),
        tls=TLSParameters(
            ciphers=("TLS_AES_128_GCM_SHA256:TLS_AES_256_GCM_SHA384:TLS_CHACHA20_POLY1305_SHA256:"
                     "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384:TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256:"
                     "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256:"
                     "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384:TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256:"
                     "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256:"
                     "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA:TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA:"
                     "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA:TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA:"
                     "TLS_RSA_WITH_AES_256_GCM_SHA384:TLS_RSA_WITH_AES_128_GCM_SHA256:"
                     "TLS_RSA_WITH_AES_256_CBC_SHA:TLS_RSA_WITH_AES_128_CBC_SHA:"
                     "TLS_ECDHE_ECDSA_WITH_3DES_EDE_CBC_SHA:TLS_ECDHE_RSA_WITH_3DES_EDE_CBC_SHA:"
                     "TLS_RSA_WITH_3DES_EDE_CBC_SHA"),
            curves="X25519:P-256:P-384:P-521",
            signature_hashes=("ecdsa_secp256r1_sha256:rsa_pss_rsae_sha256:rsa_pkcs1_sha256:"
                              "ecdsa_secp384r1_sha384:rsa_pss_rsae_sha384:rsa_pss_rsae_sha384:"
                              "rsa_pkcs1_sha384:rsa_pss_rsae_sha512:rsa_pkcs1_sha512:rsa_pkcs1_sha1"),
            http2_settings="2:0;3:100;4:2097152;9:1",
            http2_pseudo_headers_order="msap",
            http2_window_update=10420225,
            http2_stream_weight=256,
            http2_stream_exclusive=0,
            ech_grease=False,
            tlsv12=False,
            alps=False,
            tls_permute_extensions=False,
            cert_compression="zlib",
            tls_grease=True,
            tls_use_new_alps_codepoint=False,
            tls_signed_cert_timestamps=True,
            tlsv10=True,
            no_tls_session_ticket=True,
        ),
        impersonate="safari184",
    )

    chrome136_macos = Fingerprint(
        name="chrome136-macos",
        display_name="Chrome 136 macOS",
        browser="chrome",
        version="136",
        platform="desktop",
        os="macos",
        headers=_navigation_headers(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/136.0.0.0 Safari/537.36",
            _CHROME_ACCEPT, "en-US,en;q=0.9", "gzip, deflate, br, zstd",
            '"Chromium";v="136", "Google Chrome";v="136", "Not.A/Brand";v="99"',
            '"macOS"',
        ),
        tls=_chrome_tls("X25519MLKEM768:X25519:P-256:P-384", new_alps_codepoint=True),
        impersonate="chrome136",
    )

    chrome131_windows = Fingerprint(
        name="chrome131-windows",
        display_name="Chrome 131 Windows",
        browser="chrome",
        version="131",
        platform="desktop",
        os="windows",
        headers=_navigation_headers(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36",
            _CHROME_ACCEPT, "en-US,en;q=0.9", "gzip, deflate, br, zstd",
            '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
            '"Windows"',
        ),
        tls=_chrome_tls("X25519MLKEM768:X25519:P-256:P-384", new_alps_codepoint=False),
        impersonate="chrome131",
    )

    return [chrome131_android, firefox135_macos, safari184_macos, chrome136_macos, chrome131_windows]


DEFAULT_FINGERPRINTS: List[Fingerprint] = _build_default_fingerprints()


def default_catalog(rng: Optional[random.Random] = None) -> FingerprintCatalog:
    """Catalog of the built-in browser profiles."""
    return FingerprintCatalog(DEFAULT_FINGERPRINTS, rng=rng)


__all__ = [
    "Fingerprint",
    "FingerprintCatalog",
    "DEFAULT_FINGERPRINTS",
    "default_catalog",
]
