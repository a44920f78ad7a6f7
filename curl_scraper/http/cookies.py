"""Cookie parsing for session persistence.

Sessions keep a flat name -> value map; cookie attributes (domain, path,
expiry) are not tracked. Repeated ``Set-Cookie`` headers arrive joined with
``", "`` by the response decoder, so splitting has to survive commas inside
``Expires`` dates.
"""

import re
from typing import Dict, List, Mapping, Optional

# A comma starts a new cookie only when followed by a "name=" token
_COOKIE_SPLIT = re.compile(r",\s*(?=[^;,=\s]+=)")


def split_set_cookie_header(header: str) -> List[str]:
    """Split a joined Set-Cookie header into individual cookie strings."""
    return [part.strip() for part in _COOKIE_SPLIT.split(header) if part.strip()]


def parse_set_cookie(header: Optional[str]) -> Dict[str, str]:
    """Extract name/value pairs from a (possibly joined) Set-Cookie header.

    Attributes after the first ``;`` are ignored. Entries with an empty name
    or value are skipped. Later cookies with the same name win.
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies

    for cookie_str in split_set_cookie_header(header):
        name_value = cookie_str.split(";", 1)[0]
        if "=" not in name_value:
            continue
        name, value = name_value.split("=", 1)
        name = name.strip()
        value = value.strip().strip('"')
        if name and value:
            cookies[name] = value

    return cookies


def parse_cookie_header(cookie_header: str) -> Dict[str, str]:
    """Parse a request Cookie header into name-value pairs."""
    cookies: Dict[str, str] = {}
    if not cookie_header:
        return cookies

    for part in cookie_header.split(";"):
        part = part.strip()
        if "=" in part:
            name, value = part.split("=", 1)
            cookies[name.strip()] = value.strip()

    return cookies


def build_cookie_header(cookies: Mapping[str, str]) -> str:
    """Render cookies as a request Cookie header value."""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def merge_cookies(*sources: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Merge cookie maps left to right; later sources win."""
    merged: Dict[str, str] = {}
    for source in sources:
        if source:
            merged.update(source)
    return merged


__all__ = [
    "split_set_cookie_header",
    "parse_set_cookie",
    "parse_cookie_header",
    "build_cookie_header",
    "merge_cookies",
]
