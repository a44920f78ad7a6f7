"""TLS and HTTP/2 handshake parameters for browser impersonation.

Each field maps onto a curl-impersonate command-line option so that the
external process reproduces the ClientHello and HTTP/2 preface of the target
browser.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TLSParameters:
    """
    Complete TLS/HTTP2 fingerprint of one browser build.

    String values use the colon separated syntax curl-impersonate accepts
    (``--ciphers``, ``--curves``, ``--signature-hashes``...).
    """

    # Cipher suites and groups (in preference order)
    ciphers: str
    curves: str

    # HTTP/2 preface
    http2_settings: str
    http2_window_update: int
    http2_stream_weight: int
    http2_stream_exclusive: int

    # ClientHello flags
    ech_grease: bool = False
    tlsv12: bool = True
    alps: bool = False
    tls_permute_extensions: bool = False
    cert_compression: Optional[str] = None
    tls_grease: bool = False
    tls_use_new_alps_codepoint: bool = False
    tls_signed_cert_timestamps: bool = False

    # Optional extension tuning
    signature_hashes: Optional[str] = None
    tls_extension_order: Optional[str] = None
    tls_delegated_credentials: Optional[str] = None
    tls_record_size_limit: Optional[int] = None
    tls_key_shares_limit: Optional[int] = None
    http2_pseudo_headers_order: Optional[str] = None
    tlsv10: bool = False
    no_tls_session_ticket: bool = False

    def __post_init__(self):
        if not self.ciphers:
            raise ValueError("ciphers must not be empty")
        if not self.curves:
            raise ValueError("curves must not be empty")
        if self.http2_window_update < 0:
            raise ValueError("http2_window_update must be non-negative")
        if not 1 <= self.http2_stream_weight <= 256:
            raise ValueError("http2_stream_weight must be between 1 and 256")
        if self.http2_stream_exclusive not in (0, 1):
            raise ValueError("http2_stream_exclusive must be 0 or 1")

    def to_curl_args(self) -> List[str]:
        """Render the parameters as curl-impersonate options."""
        args = [
            "--ciphers", self.ciphers,
            "--curves", self.curves,
            "--http2",
            "--http2-settings", self.http2_settings,
            "--http2-window-update", str(self.http2_window_update),
            "--http2-stream-weight", str(self.http2_stream_weight),
            "--http2-stream-exclusive", str(self.http2_stream_exclusive),
        ]

        if self.http2_pseudo_headers_order:
            args += ["--http2-pseudo-headers-order", self.http2_pseudo_headers_order]
        if self.signature_hashes:
            args += ["--signature-hashes", self.signature_hashes]
        if self.cert_compression:
            args += ["--cert-compression", self.cert_compression]
        if self.tls_extension_order:
            args += ["--tls-extension-order", self.tls_extension_order]
        if self.tls_delegated_credentials:
            args += ["--tls-delegated-credentials", self.tls_delegated_credentials]
        if self.tls_record_size_limit is not None:
            args += ["--tls-record-size-limit", str(self.tls_record_size_limit)]
        if self.tls_key_shares_limit is not None:
            args += ["--tls-key-shares-limit", str(self.tls_key_shares_limit)]

        flags = (
            (self.ech_grease, ["--ech", "grease"]),
            (self.tlsv10, ["--tlsv1.0"]),
            (self.tlsv12 and not self.tlsv10, ["--tlsv1.2"]),
            (self.alps, ["--alps"]),
            (self.tls_permute_extensions, ["--tls-permute-extensions"]),
            (self.tls_grease, ["--tls-grease"]),
            (self.tls_use_new_alps_codepoint, ["--tls-use-new-alps-codepoint"]),
            (self.tls_signed_cert_timestamps, ["--tls-signed-cert-timestamps"]),
            (self.no_tls_session_ticket, ["--no-tls-session-ticket"]),
        )
        for enabled, option in flags:
            if enabled:
                args += option

        return args

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TLSParameters":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


__all__ = ["TLSParameters"]
