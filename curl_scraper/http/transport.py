"""Transports that perform a single HTTP exchange for a browser fingerprint.

``CurlImpersonateTransport`` spawns a curl-impersonate process per request;
``CurlCffiTransport`` drives the same engine in-process through curl_cffi.
Both surface native failures as ``TransportError`` carrying the curl code.
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from curl_cffi import CurlError, CurlMime
from curl_cffi.requests import AsyncSession

from ..browser.fingerprint import Fingerprint
from ..errors import TransportError
from ..models import HttpMethod, RequestSpec
from .cookies import build_cookie_header

logger = logging.getLogger(__name__)

WRITE_OUT_MARKER = "__CURL_WRITE_OUT__"
WRITE_OUT_FORMAT = (
    "\n" + WRITE_OUT_MARKER
    + "%{http_code}|%{http_version}|%{size_download}|%{time_total}|%{url_effective}"
)

# Extra time granted to the process beyond --max-time before it is killed
PROCESS_GRACE_PERIOD = 5.0


@dataclass
class RawTransferResult:
    """Undecoded output of one transfer."""
    url: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    backend: str = "curl-impersonate"
    # Backend response object when the transfer ran in-process
    native: Any = None


def merge_headers(base: Dict[str, str], overrides: Dict[str, str]) -> Dict[str, str]:
    """Overlay ``overrides`` on ``base`` comparing header names case-insensitively."""
    merged = dict(base)
    for name, value in overrides.items():
        for existing in [key for key in merged if key.lower() == name.lower()]:
            del merged[existing]
        merged[name] = value
    return merged


def has_header(headers: Dict[str, str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


class Transport(ABC):
    """Boundary to the component that puts bytes on the wire."""

    name = "transport"

    @abstractmethod
    async def execute(self, url: str, spec: RequestSpec,
                      fingerprint: Fingerprint) -> RawTransferResult:
        """Perform one transfer or raise ``TransportError``."""

    async def close(self) -> None:
        """Release backend resources."""


class CurlImpersonateTransport(Transport):
    """Runs the curl-impersonate binary as a subprocess."""

    name = "curl-impersonate"

    def __init__(self, binary: str = "curl-impersonate", binaries_path: Optional[str] = None,
                 default_timeout: float = 30.0, default_max_redirects: int = 5,
                 default_verify_ssl: bool = True):
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        if default_max_redirects < 0:
            raise ValueError("default_max_redirects must be non-negative")
        self.binary = binary
        self.binaries_path = binaries_path
        self.default_timeout = default_timeout
        self.default_max_redirects = default_max_redirects
        self.default_verify_ssl = default_verify_ssl

    def resolve_executable(self, fingerprint: Fingerprint) -> Tuple[str, bool]:
        """Return the executable and whether TLS flags must be passed explicitly."""
        if fingerprint.binary_name:
            if self.binaries_path:
                return os.path.join(self.binaries_path, fingerprint.binary_name), False
            return fingerprint.binary_name, False
        if self.binaries_path and not os.path.isabs(self.binary):
            return os.path.join(self.binaries_path, self.binary), True
        return self.binary, True

    def build_args(self, url: str, spec: RequestSpec, fingerprint: Fingerprint,
                   include_tls: bool = True) -> List[str]:
        """Build the curl argument vector (without the executable)."""
        args = ["-s", "-i", "--compressed", "-w", WRITE_OUT_FORMAT]

        if spec.method is HttpMethod.HEAD:
            args.append("-I")
        elif spec.method is not HttpMethod.GET:
            args += ["-X", spec.method.value]

        headers = merge_headers(fingerprint.headers, spec.headers)
        if spec.json is not None and not has_header(headers, "Content-Type"):
            headers["Content-Type"] = "application/json"
        if spec.cookies and not has_header(headers, "Cookie"):
            headers["Cookie"] = build_cookie_header(spec.cookies)
        for name, value in headers.items():
            args += ["-H", f"{name}: {value}"]

        if spec.body is not None:
            args += ["--data-raw", spec.body]
        elif spec.json is not None:
            args += ["--data-raw", json.dumps(spec.json)]
        elif spec.form_data is not None:
            for key, value in spec.form_data.items():
                args += ["-F", f"{key}={value}"]

        timeout = spec.timeout if spec.timeout is not None else self.default_timeout
        args += ["--max-time", _format_seconds(timeout)]

        if spec.follow_redirects:
            max_redirects = spec.max_redirects if spec.max_redirects is not None else self.default_max_redirects
            args += ["-L", "--max-redirs", str(max_redirects)]

        verify = spec.verify_ssl if spec.verify_ssl is not None else self.default_verify_ssl
        if not verify:
            args.append("-k")

        if spec.proxy is not None:
            args += ["-x", spec.proxy.url]

        if include_tls:
            args += fingerprint.tls.to_curl_args()

        args.append(url)
        return args

    async def execute(self, url: str, spec: RequestSpec,
                      fingerprint: Fingerprint) -> RawTransferResult:
        executable, include_tls = self.resolve_executable(fingerprint)
        args = self.build_args(url, spec, fingerprint, include_tls=include_tls)
        timeout = spec.timeout if spec.timeout is not None else self.default_timeout
        logger.debug("Running %s with %d arguments for %s", executable, len(args), url)

        try:
            process = await asyncio.create_subprocess_exec(
                executable, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(
                f"Failed to start {executable}: {e}",
                native_code_name="SPAWN_FAILED",
                description="Could not start the curl-impersonate process",
                retryable=False,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout + PROCESS_GRACE_PERIOD
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise TransportError.from_curl_code(
                28, "process killed after exceeding its time limit",
                proxy_in_use=spec.proxy is not None,
            )

        stdout_text = stdout.decode("utf-8", errors="replace")
        stderr_text = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            error = TransportError.from_curl_code(
                process.returncode, stderr_text, proxy_in_use=spec.proxy is not None
            )
            logger.debug("curl exited with %s for %s: %s", process.returncode, url, error)
            raise error

        return RawTransferResult(
            url=url,
            stdout=stdout_text,
            stderr=stderr_text,
            exit_code=process.returncode,
            backend=self.name,
        )


class CurlCffiTransport(Transport):
    """In-process transport using curl_cffi's impersonation targets."""

    name = "curl_cffi"

    def __init__(self, default_timeout: float = 30.0, default_max_redirects: int = 5,
                 default_verify_ssl: bool = True):
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self.default_timeout = default_timeout
        self.default_max_redirects = default_max_redirects
        self.default_verify_ssl = default_verify_ssl
        self._session: Optional[AsyncSession] = None

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            self._session = AsyncSession()
        return self._session

    def build_request_kwargs(self, spec: RequestSpec, fingerprint: Fingerprint) -> Dict[str, Any]:
        """Translate a spec into ``AsyncSession.request`` keyword arguments."""
        kwargs: Dict[str, Any] = {
            "headers": merge_headers(fingerprint.headers, spec.headers),
            "timeout": spec.timeout if spec.timeout is not None else self.default_timeout,
            "allow_redirects": spec.follow_redirects,
            "max_redirects": (spec.max_redirects if spec.max_redirects is not None
                              else self.default_max_redirects),
            "verify": spec.verify_ssl if spec.verify_ssl is not None else self.default_verify_ssl,
            "impersonate": fingerprint.impersonate,
        }
        if spec.cookies:
            kwargs["cookies"] = dict(spec.cookies)
        if spec.body is not None:
            kwargs["data"] = spec.body
        elif spec.json is not None:
            kwargs["json"] = spec.json
        if spec.proxy is not None:
            kwargs["proxy"] = spec.proxy.url
        return kwargs

    async def execute(self, url: str, spec: RequestSpec,
                      fingerprint: Fingerprint) -> RawTransferResult:
        if not fingerprint.impersonate:
            raise TransportError(
                f"Fingerprint {fingerprint.name} has no curl_cffi impersonation target",
                native_code_name="UNSUPPORTED_FINGERPRINT",
                description="Fingerprint cannot be used with the curl_cffi backend",
                retryable=False,
            )

        kwargs = self.build_request_kwargs(spec, fingerprint)
        multipart = None
        if spec.form_data is not None:
            multipart = CurlMime()
            for key, value in spec.form_data.items():
                multipart.addpart(name=key, data=str(value).encode("utf-8"))
            kwargs["multipart"] = multipart

        try:
            response = await self._get_session().request(spec.method.value, url, **kwargs)
        except CurlError as e:
            code = int(getattr(e, "code", 0) or 0)
            logger.debug("curl_cffi request to %s failed with code %s", url, code)
            raise TransportError.from_curl_code(code, str(e), proxy_in_use=spec.proxy is not None) from e
        finally:
            if multipart is not None:
                multipart.close()

        return RawTransferResult(url=url, backend=self.name, native=response)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


def _format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


__all__ = [
    "RawTransferResult",
    "Transport",
    "CurlImpersonateTransport",
    "CurlCffiTransport",
    "WRITE_OUT_MARKER",
    "WRITE_OUT_FORMAT",
    "merge_headers",
]
