"""Fingerprints derived from installed curl-impersonate wrapper scripts.

curl-impersonate ships one wrapper per browser build (``curl_chrome116``,
``curl_safari17_2_ios``, ``curl_ff133``...). Each wrapper already passes the
browser's TLS flags, so a discovered fingerprint only has to carry the
matching request headers and the script name.
"""

import logging
import os
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .fingerprint import (
    DEFAULT_FINGERPRINTS,
    Fingerprint,
    FingerprintCatalog,
    _CHROME_ACCEPT,
    _navigation_headers,
)

logger = logging.getLogger(__name__)

BINARY_PREFIX = "curl_"

_BROWSER_ALIASES = {"ff": "firefox"}
_KNOWN_BROWSERS = ("chrome", "firefox", "safari", "edge", "tor")
# Built-in profile family whose TLS parameters describe each browser
_TLS_FAMILY = {"chrome": "chrome", "edge": "chrome", "firefox": "firefox", "tor": "firefox",
               "safari": "safari"}
_SEC_CH_UA_PLATFORM = {"windows": '"Windows"', "macos": '"macOS"', "ios": '"iOS"',
                       "android": '"Android"', "linux": '"Linux"'}
_DOCUMENT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_OS_LABELS = {"windows": "Windows", "macos": "macOS", "ios": "iOS", "android": "Android",
              "linux": "Linux"}


@dataclass(frozen=True)
class BinaryTarget:
    """Browser identity encoded in a wrapper script name."""
    binary_name: str
    browser: str
    version: str  # as written in the file name, e.g. "99_android" or "17_2_ios"
    os: str
    platform: str

    @property
    def name(self) -> str:
        return f"{self.browser}{self.version}"

    @property
    def release(self) -> str:
        """Dotted browser release without platform suffixes ("17_2_ios" -> "17.2")."""
        match = re.match(r"\d+(?:[._]\d+)*", self.version)
        return match.group(0).replace("_", ".") if match else self.version

    @property
    def major(self) -> str:
        return self.release.split(".")[0]


def _chrome_os(version: str) -> str:
    for os_name in ("android", "ios", "macos", "linux"):
        if os_name in version:
            return os_name
    return "windows"


def parse_binary_name(filename: str) -> Optional[BinaryTarget]:
    """Map a wrapper file name to a browser target, or ``None`` if it is not one."""
    if not filename.startswith(BINARY_PREFIX):
        return None
    rest = filename[len(BINARY_PREFIX):]
    match = re.match(r"([a-z]+)(\d.*)?$", rest)
    if match is None:
        return None
    browser = _BROWSER_ALIASES.get(match.group(1), match.group(1))
    version = match.group(2) or ""
    if browser not in _KNOWN_BROWSERS or not version:
        return None

    if browser == "chrome":
        os_name = _chrome_os(version)
    elif browser == "safari":
        os_name = "ios" if "ios" in version else "macos"
    elif browser == "edge":
        os_name = "windows"
    else:
        os_name = "macos"
    platform = "mobile" if os_name in ("android", "ios") else "desktop"
    return BinaryTarget(filename, browser, version, os_name, platform)


def user_agent_for(target: BinaryTarget) -> str:
    release, major = target.release, target.major
    if target.browser in ("chrome", "edge"):
        if target.os == "android":
            base = ("Mozilla/5.0 (Linux; Android 12; SM-G991B) AppleWebKit/537.36 "
                    f"(KHTML, like Gecko) Chrome/{major}.0.0.0 Mobile Safari/537.36")
        elif target.os == "ios":
            return ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
                    f"(KHTML, like Gecko) CriOS/{major}.0.0.0 Mobile/15E148 Safari/604.1")
        else:
            system = {
                "macos": "Macintosh; Intel Mac OS X 10_15_7",
                "linux": "X11; Linux x86_64",
            }.get(target.os, "Windows NT 10.0; Win64; x64")
            base = (f"Mozilla/5.0 ({system}) AppleWebKit/537.36 (KHTML, like Gecko) "
                    f"Chrome/{major}.0.0.0 Safari/537.36")
        return f"{base} Edg/{major}.0.0.0" if target.browser == "edge" else base
    if target.browser == "safari":
        if target.os == "ios":
            return ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
                    f"(KHTML, like Gecko) Version/{release} Mobile/15E148 Safari/604.1")
        return ("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
                f"(KHTML, like Gecko) Version/{release} Safari/605.1.15")
    # Firefox and Tor Browser
    return f"Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:{major}.0) Gecko/20100101 Firefox/{major}.0"


def _headers_for(target: BinaryTarget) -> Dict[str, str]:
    platform_hint = _SEC_CH_UA_PLATFORM[target.os]
    mobile_hint = "?1" if target.platform == "mobile" else "?0"
    if target.browser in ("chrome", "edge"):
        brand = "Microsoft Edge" if target.browser == "edge" else "Google Chrome"
        sec_ch_ua = f'"Chromium";v="{target.major}", "{brand}";v="{target.major}", "Not_A Brand";v="24"'
        return _navigation_headers(user_agent_for(target), _CHROME_ACCEPT, "en-US,en;q=0.9",
                                   "gzip, deflate, br", sec_ch_ua, platform_hint, mobile_hint)
    return _navigation_headers(
        user_agent_for(target), _DOCUMENT_ACCEPT, "en-US,en;q=0.9", "gzip, deflate, br",
        f'"Not_A Brand";v="8", "{target.browser.capitalize()}";v="{target.major}"',
        platform_hint, mobile_hint,
    )


def fingerprint_for_binary(target: BinaryTarget) -> Fingerprint:
    family = _TLS_FAMILY[target.browser]
    template = next(fp for fp in DEFAULT_FINGERPRINTS if fp.browser == family)
    browser_label = "Tor Browser" if target.browser == "tor" else target.browser.capitalize()
    return Fingerprint(
        name=target.name,
        display_name=f"{browser_label} {target.release} {_OS_LABELS[target.os]}",
        browser=target.browser,
        version=target.release,
        platform=target.platform,
        os=target.os,
        headers=_headers_for(target),
        tls=template.tls,
        binary_name=target.binary_name,
    )


def discover_binaries(path: Union[str, os.PathLike]) -> List[BinaryTarget]:
    """Wrapper scripts found directly in ``path``, sorted by file name.

    A missing or unreadable directory yields an empty list.
    """
    try:
        entries = sorted(os.listdir(path))
    except OSError as e:
        logger.warning("Could not discover binaries in %s: %s", path, e)
        return []

    targets = []
    for entry in entries:
        if not os.path.isfile(os.path.join(path, entry)):
            continue
        target = parse_binary_name(entry)
        if target is None:
            if entry.startswith(BINARY_PREFIX):
                logger.debug("Ignoring unrecognized wrapper %s", entry)
            continue
        targets.append(target)
    logger.info("Discovered %d curl-impersonate wrappers in %s", len(targets), path)
    return targets


def discover_fingerprints(path: Union[str, os.PathLike]) -> List[Fingerprint]:
    return [fingerprint_for_binary(target) for target in discover_binaries(path)]


def catalog_from_binaries(path: Union[str, os.PathLike], rng: Optional[random.Random] = None,
                          include_defaults: bool = False) -> FingerprintCatalog:
    """Catalog of the wrappers installed in ``path``.

    With ``include_defaults`` the built-in profiles are kept and discovered
    entries are appended; otherwise an empty directory raises ``ValueError``.
    """
    fingerprints = list(DEFAULT_FINGERPRINTS) if include_defaults else []
    taken = {fp.name for fp in fingerprints}
    for fingerprint in discover_fingerprints(path):
        if fingerprint.name not in taken:
            fingerprints.append(fingerprint)
            taken.add(fingerprint.name)
    return FingerprintCatalog(fingerprints, rng=rng)


__all__ = [
    "BinaryTarget",
    "parse_binary_name",
    "user_agent_for",
    "fingerprint_for_binary",
    "discover_binaries",
    "discover_fingerprints",
    "catalog_from_binaries",
]
