"""Error taxonomy for the impersonating client.

Every error raised by the package derives from ``ScraperError`` and exposes
``code``, ``retryable`` and ``proxy_failed`` so callers can decide their own
outer retry policy. The orchestrator dispatches on these classes with
``isinstance``; string codes are informational only.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CurlCodeInfo:
    """Description of a native curl exit code."""
    name: str
    description: str
    retryable: bool


# libcurl CURLcode values as returned through the curl exit status.
CURL_ERROR_CODES: Dict[int, CurlCodeInfo] = {
    1: CurlCodeInfo("UNSUPPORTED_PROTOCOL", "Unsupported protocol", False),
    2: CurlCodeInfo("FAILED_INIT", "Failed initialization", False),
    3: CurlCodeInfo("URL_MALFORMAT", "URL malformed", False),
    4: CurlCodeInfo("NOT_BUILT_IN", "Feature not built in", False),
    5: CurlCodeInfo("COULDNT_RESOLVE_PROXY", "Could not resolve proxy", True),
    6: CurlCodeInfo("COULDNT_RESOLVE_HOST", "Could not resolve host", True),
    7: CurlCodeInfo("COULDNT_CONNECT", "Failed to connect to host or proxy", True),
    8: CurlCodeInfo("WEIRD_SERVER_REPLY", "Weird server reply", True),
    9: CurlCodeInfo("REMOTE_ACCESS_DENIED", "Access denied to remote resource", False),
    10: CurlCodeInfo("FTP_ACCEPT_FAILED", "FTP accept failed", True),
    11: CurlCodeInfo("FTP_WEIRD_PASS_REPLY", "FTP weird PASS reply", False),
    12: CurlCodeInfo("FTP_ACCEPT_TIMEOUT", "FTP accept timeout", True),
    13: CurlCodeInfo("FTP_WEIRD_PASV_REPLY", "FTP weird PASV reply", True),
    14: CurlCodeInfo("FTP_WEIRD_227_FORMAT", "FTP weird 227 format", True),
    15: CurlCodeInfo("FTP_CANT_GET_HOST", "FTP can't get host", True),
    16: CurlCodeInfo("HTTP2", "Error in the HTTP/2 framing layer", True),
    17: CurlCodeInfo("FTP_COULDNT_SET_TYPE", "FTP couldn't set file type", False),
    18: CurlCodeInfo("PARTIAL_FILE", "Transferred a partial file", True),
    19: CurlCodeInfo("FTP_COULDNT_RETR_FILE", "FTP couldn't retrieve file", False),
    21: CurlCodeInfo("QUOTE_ERROR", "Quote command returned error", False),
    22: CurlCodeInfo("HTTP_RETURNED_ERROR", "HTTP server returned an error", True),
    23: CurlCodeInfo("WRITE_ERROR", "Failed writing received data", False),
    25: CurlCodeInfo("UPLOAD_FAILED", "Upload failed", True),
    26: CurlCodeInfo("READ_ERROR", "Failed to open/read local data", False),
    27: CurlCodeInfo("OUT_OF_MEMORY", "Out of memory", False),
    28: CurlCodeInfo("OPERATION_TIMEDOUT", "Operation timeout", True),
    30: CurlCodeInfo("FTP_PORT_FAILED", "FTP PORT command failed", True),
    31: CurlCodeInfo("FTP_COULDNT_USE_REST", "FTP REST command failed", False),
    33: CurlCodeInfo("RANGE_ERROR", "Requested range was not delivered", False),
    34: CurlCodeInfo("HTTP_POST_ERROR", "Internal HTTP POST error", False),
    35: CurlCodeInfo("SSL_CONNECT_ERROR", "SSL connect error", True),
    36: CurlCodeInfo("BAD_DOWNLOAD_RESUME", "Couldn't resume download", False),
    37: CurlCodeInfo("FILE_COULDNT_READ_FILE", "Couldn't read a file:// file", False),
    38: CurlCodeInfo("LDAP_CANNOT_BIND", "LDAP cannot bind", False),
    39: CurlCodeInfo("LDAP_SEARCH_FAILED", "LDAP search failed", False),
    41: CurlCodeInfo("FUNCTION_NOT_FOUND", "A required function was not found", False),
    42: CurlCodeInfo("ABORTED_BY_CALLBACK", "Operation was aborted by an application callback", False),
    43: CurlCodeInfo("BAD_FUNCTION_ARGUMENT", "A libcurl function was given a bad argument", False),
    45: CurlCodeInfo("INTERFACE_FAILED", "Failed binding local connection end", False),
    47: CurlCodeInfo("TOO_MANY_REDIRECTS", "Number of redirects hit maximum amount", False),
    48: CurlCodeInfo("UNKNOWN_OPTION", "An unknown option was passed in to libcurl", False),
    49: CurlCodeInfo("SETOPT_OPTION_SYNTAX", "Malformed option provided in a setopt", False),
    52: CurlCodeInfo("GOT_NOTHING", "Server returned nothing (no headers, no data)", True),
    53: CurlCodeInfo("SSL_ENGINE_NOTFOUND", "SSL crypto engine not found", False),
    54: CurlCodeInfo("SSL_ENGINE_SETFAILED", "Can not set SSL crypto engine as default", False),
    55: CurlCodeInfo("SEND_ERROR", "Failed sending data to the peer", True),
    56: CurlCodeInfo("RECV_ERROR", "Failure when receiving data from the peer", True),
    58: CurlCodeInfo("SSL_CERTPROBLEM", "Problem with the local SSL certificate", False),
    59: CurlCodeInfo("SSL_CIPHER", "Couldn't use specified SSL cipher", False),
    60: CurlCodeInfo("PEER_FAILED_VERIFICATION", "SSL peer certificate or SSH remote key was not OK", False),
    61: CurlCodeInfo("BAD_CONTENT_ENCODING", "Unrecognized or bad HTTP Content or Transfer-Encoding", False),
    63: CurlCodeInfo("FILESIZE_EXCEEDED", "Maximum file size exceeded", False),
    64: CurlCodeInfo("USE_SSL_FAILED", "Requested SSL level failed", False),
    65: CurlCodeInfo("SEND_FAIL_REWIND", "Send failed since rewinding of the data stream failed", False),
    66: CurlCodeInfo("SSL_ENGINE_INITFAILED", "Failed to initialise SSL crypto engine", False),
    67: CurlCodeInfo("LOGIN_DENIED", "Login denied", False),
    68: CurlCodeInfo("TFTP_NOTFOUND", "TFTP file not found", False),
    69: CurlCodeInfo("TFTP_PERM", "TFTP access violation", False),
    70: CurlCodeInfo("REMOTE_DISK_FULL", "Disk full or allocation exceeded", False),
    71: CurlCodeInfo("TFTP_ILLEGAL", "Illegal TFTP operation", False),
    72: CurlCodeInfo("TFTP_UNKNOWNID", "Unknown TFTP transfer ID", False),
    73: CurlCodeInfo("REMOTE_FILE_EXISTS", "Remote file already exists", False),
    74: CurlCodeInfo("TFTP_NOSUCHUSER", "No such TFTP user", False),
    77: CurlCodeInfo("SSL_CACERT_BADFILE", "Problem with the SSL CA cert (path? access rights?)", False),
    78: CurlCodeInfo("REMOTE_FILE_NOT_FOUND", "Remote file not found", False),
    79: CurlCodeInfo("SSH", "Error in the SSH layer", True),
    80: CurlCodeInfo("SSL_SHUTDOWN_FAILED", "Failed to shut down the SSL connection", True),
    81: CurlCodeInfo("AGAIN", "Socket not ready for send/recv", True),
    82: CurlCodeInfo("SSL_CRL_BADFILE", "Failed to load CRL file", False),
    83: CurlCodeInfo("SSL_ISSUER_ERROR", "Issuer check against peer certificate failed", False),
    84: CurlCodeInfo("FTP_PRET_FAILED", "FTP PRET command failed", False),
    85: CurlCodeInfo("RTSP_CSEQ_ERROR", "RTSP CSeq mismatch or invalid CSeq", True),
    86: CurlCodeInfo("RTSP_SESSION_ERROR", "RTSP session error", True),
    87: CurlCodeInfo("FTP_BAD_FILE_LIST", "Unable to parse FTP file list", False),
    88: CurlCodeInfo("CHUNK_FAILED", "Chunk callback failed", False),
    89: CurlCodeInfo("NO_CONNECTION_AVAILABLE", "The max connection limit is reached", True),
    90: CurlCodeInfo("SSL_PINNEDPUBKEYNOTMATCH", "SSL public key does not match pinned public key", False),
    91: CurlCodeInfo("SSL_INVALIDCERTSTATUS", "SSL server certificate status verification FAILED", False),
    92: CurlCodeInfo("HTTP2_STREAM", "Stream error in the HTTP/2 framing layer", True),
    93: CurlCodeInfo("RECURSIVE_API_CALL", "API function called from within callback", False),
    94: CurlCodeInfo("AUTH_ERROR", "An authentication function returned an error", False),
    95: CurlCodeInfo("HTTP3", "HTTP/3 error", True),
    96: CurlCodeInfo("QUIC_CONNECT_ERROR", "QUIC connection error", True),
    97: CurlCodeInfo("PROXY", "Proxy handshake error", True),
    98: CurlCodeInfo("SSL_CLIENTCERT", "SSL Client Certificate required", False),
    99: CurlCodeInfo("UNRECOVERABLE_POLL", "Unrecoverable error in select/poll", False),
    100: CurlCodeInfo("TOO_LARGE", "A value or data field grew larger than allowed", False),
    101: CurlCodeInfo("ECH_REQUIRED", "ECH tried but failed", False),
}

# Codes that point at the proxy whenever one is configured.
PROXY_CURL_CODES = frozenset({5, 7, 28, 97})
# Codes that point at the proxy even without looking at the request.
PROXY_ONLY_CURL_CODES = frozenset({5, 97})

UNKNOWN_CURL_CODE = CurlCodeInfo("UNKNOWN", "Unknown curl error", True)


def describe_curl_code(code: int) -> CurlCodeInfo:
    """Look up a native curl code, falling back to a retryable unknown entry."""
    return CURL_ERROR_CODES.get(code, UNKNOWN_CURL_CODE)


def is_proxy_failure(code: Optional[int], message: str, proxy_in_use: bool) -> bool:
    """Decide whether a transport failure is attributable to the proxy."""
    if code in PROXY_ONLY_CURL_CODES:
        return True
    if proxy_in_use and code in PROXY_CURL_CODES:
        return True
    lowered = message.lower()
    return "proxy" in lowered or "socks" in lowered


class ScraperError(Exception):
    """Base class for every error raised by curl_scraper."""

    code = "SCRAPER_ERROR"
    retryable = False
    proxy_failed = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": str(self),
            "retryable": self.retryable,
            "proxy_failed": self.proxy_failed,
        }


class TransportError(ScraperError):
    """Native-process level failure (DNS, connect, TLS, timeout...)."""

    def __init__(self, message: str, native_code: Optional[int] = None,
                 native_code_name: Optional[str] = None, description: Optional[str] = None,
                 retryable: bool = True, proxy_failed: bool = False, stderr: str = ""):
        super().__init__(message)
        self.native_code = native_code
        self.native_code_name = native_code_name or "UNKNOWN"
        self.description = description
        self.retryable = retryable
        self.proxy_failed = proxy_failed
        self.stderr = stderr

    @property
    def code(self) -> str:
        return f"CURL_{self.native_code_name}"

    @classmethod
    def from_curl_code(cls, native_code: int, stderr: str = "",
                       proxy_in_use: bool = False) -> "TransportError":
        """Build an error from a curl exit status and its stderr output."""
        info = describe_curl_code(native_code)
        detail = stderr.strip()
        message = f"curl failed with code {native_code} ({info.name}: {info.description})"
        if detail:
            message = f"{message}: {detail}"
        return cls(
            message,
            native_code=native_code,
            native_code_name=info.name,
            description=info.description,
            retryable=info.retryable,
            proxy_failed=is_proxy_failure(native_code, detail, proxy_in_use),
            stderr=stderr,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "native_code": self.native_code,
            "native_code_name": self.native_code_name,
            "description": self.description,
        })
        return result


class ResponseDecodeError(ScraperError):
    """Transport output or response payload could not be decoded."""

    code = "DECODE_ERROR"
    retryable = True


class ChallengeKind(Enum):
    """Kinds of bot-mitigation responses."""
    CHALLENGE = "challenge"
    BANNED = "banned"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    JS_CHALLENGE = "js_challenge"
    CAPTCHA = "captcha"


class CloudflareError(ScraperError):
    """A response was classified as a block or challenge page."""

    def __init__(self, message: str, kind: ChallengeKind = ChallengeKind.CHALLENGE,
                 response: Any = None, retryable: bool = True, ray_id: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.response = response
        self.retryable = retryable
        self.ray_id = ray_id

    @property
    def code(self) -> str:
        return f"CF_{self.kind.name}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind.value
        result["ray_id"] = self.ray_id
        if self.response is not None:
            result["status_code"] = self.response.status_code
        return result


class ProxyErrorKind(Enum):
    """Kinds of proxy failures."""
    REFUSED = "refused"
    TIMEOUT = "timeout"
    AUTH_FAILED = "auth_failed"
    DNS_ERROR = "dns_error"
    CONNECTION_ERROR = "connection_error"


class ProxyError(ScraperError):
    """A failure attributed to the proxy in use."""

    proxy_failed = True

    def __init__(self, message: str, kind: ProxyErrorKind = ProxyErrorKind.CONNECTION_ERROR,
                 proxy: Any = None, retryable: bool = True):
        super().__init__(message)
        self.kind = kind
        self.proxy = proxy
        self.retryable = retryable

    @property
    def code(self) -> str:
        return f"PROXY_{self.kind.name}"

    @classmethod
    def from_error(cls, error: BaseException, proxy: Any = None) -> "ProxyError":
        """Derive a proxy error from the message of a lower-level failure."""
        message = str(error).lower()
        if "connection refused" in message:
            return cls("Proxy connection refused", ProxyErrorKind.REFUSED, proxy)
        if "timeout" in message or "timed out" in message:
            return cls("Proxy connection timeout", ProxyErrorKind.TIMEOUT, proxy)
        if "authentication" in message:
            return cls("Proxy authentication failed", ProxyErrorKind.AUTH_FAILED, proxy)
        if "dns" in message or "resolve" in message:
            return cls("Proxy DNS resolution failed", ProxyErrorKind.DNS_ERROR, proxy)
        return cls("Proxy connection error", ProxyErrorKind.CONNECTION_ERROR, proxy)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind.value
        result["proxy"] = self.proxy.url if self.proxy is not None else None
        return result


class MaxRetriesExceededError(ScraperError):
    """Terminal error raised when every attempt of a request failed."""

    code = "MAX_RETRIES_EXCEEDED"

    def __init__(self, attempts: List[Any]):
        self.attempts = list(attempts)
        super().__init__(self._format_message())

    @property
    def last_error(self) -> Optional[BaseException]:
        return self.attempts[-1].error if self.attempts else None

    def _format_message(self) -> str:
        details = []
        for record in self.attempts:
            timestamp = datetime.fromtimestamp(record.timestamp).isoformat()
            code = getattr(record.error, "code", type(record.error).__name__)
            details.append(f"Attempt {record.attempt} ({timestamp}) [{code}]: {record.error}")
        return (f"Max retries exceeded ({len(self.attempts)} attempts).\n\n"
                "Error details:\n" + "\n".join(details))

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = [record.to_dict() for record in self.attempts]
        return result


class SessionExpiredError(ScraperError):
    """An expired session was requested while strict expiry is enabled."""

    code = "SESSION_EXPIRED"


class FingerprintNotFoundError(ScraperError):
    """A fingerprint name did not resolve in the catalog."""

    code = "FINGERPRINT_NOT_FOUND"


class HtmlParseError(ScraperError):
    """A response could not be treated as an HTML document."""

    code = "NOT_HTML"


__all__: Tuple[str, ...] = (
    "CURL_ERROR_CODES",
    "PROXY_CURL_CODES",
    "CurlCodeInfo",
    "describe_curl_code",
    "is_proxy_failure",
    "ScraperError",
    "TransportError",
    "ResponseDecodeError",
    "ChallengeKind",
    "CloudflareError",
    "ProxyErrorKind",
    "ProxyError",
    "MaxRetriesExceededError",
    "SessionExpiredError",
    "FingerprintNotFoundError",
    "HtmlParseError",
)
