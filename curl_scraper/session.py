"""Session persistence: cookies, fingerprint and proxy kept across requests.

Sessions live in memory inside a ``SessionStore`` and can be serialized to
plain JSON-compatible dictionaries for persistence between runs.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .browser.fingerprint import Fingerprint, FingerprintCatalog
from .config import SessionSettings
from .errors import SessionExpiredError
from .models import ProxyConfig
from .proxy import ProxyPool

logger = logging.getLogger(__name__)

# camelCase spellings accepted by ``SessionStore.restore``
_STATE_ALIASES = {
    "userAgent": "user_agent",
    "createdAt": "created_at",
    "lastUsed": "last_used",
    "requestCount": "request_count",
    "errorCount": "error_count",
}


@dataclass
class Session:
    """Per-identity state reused across requests."""
    id: str
    fingerprint: Fingerprint
    user_agent: str
    cookies: Dict[str, str] = field(default_factory=dict)
    proxy: Optional[ProxyConfig] = None

    created_at: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    request_count: int = 0
    error_count: int = 0

    def update_cookies(self, cookies: Dict[str, str]) -> None:
        """Merge cookies into the session; last write wins."""
        self.cookies.update(cookies)


class SessionStore:
    """
    Creates, resolves, rotates and persists sessions.

    ``rotate_proxies`` controls whether rotation draws a new proxy from the
    pool. ``fingerprint_rotation`` controls whether rotation switches the
    fingerprint.
    """

    def __init__(self, catalog: FingerprintCatalog,
                 settings: Optional[SessionSettings] = None,
                 proxy_pool: Optional[ProxyPool] = None,
                 rotate_proxies: bool = False,
                 fingerprint_rotation: bool = True,
                 clock: Callable[[], float] = time.time):
        self.catalog = catalog
        self.settings = settings or SessionSettings()
        self.proxy_pool = proxy_pool
        self.rotate_proxies = rotate_proxies
        self.fingerprint_rotation = fingerprint_rotation
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def create(self, fingerprint: Optional[Fingerprint] = None) -> Session:
        fingerprint = fingerprint or self.catalog.random()
        now = self._clock()
        session = Session(
            id=str(uuid.uuid4()),
            fingerprint=fingerprint,
            user_agent=fingerprint.user_agent,
            created_at=now,
            last_used=now,
        )
        self._sessions[session.id] = session
        logger.info("Created session %s with fingerprint %s", session.id, fingerprint.name)
        return session

    def get(self, session_id: Optional[str] = None, force_new: bool = False) -> Session:
        """Resolve a session id to a live session.

        A fresh session is created when ``force_new`` is set, sessions are
        disabled, or the id is unknown. An expired id is dropped and replaced
        by a fresh session, unless ``strict_expiry`` is set, in which case
        ``SessionExpiredError`` is raised.
        """
        if force_new or not self.settings.enabled or session_id is None:
            return self.create()

        session = self._sessions.get(session_id)
        if session is None:
            return self.create()

        if self.is_expired(session):
            self.remove(session_id)
            if self.settings.strict_expiry:
                raise SessionExpiredError(f"Session {session_id} has expired")
            logger.info("Session %s expired, replacing it", session_id)
            return self.create()

        session.last_used = self._clock()
        return session

    def is_expired(self, session: Session) -> bool:
        if self.settings.max_age is None:
            return False
        return self._clock() - session.created_at > self.settings.max_age

    def rotate(self, session: Session, rotate_proxy: bool = True) -> Session:
        """Give a session a new identity in place, keeping its id and cookies."""
        if self.fingerprint_rotation:
            session.fingerprint = self.catalog.random(exclude=session.fingerprint)
            session.user_agent = session.fingerprint.user_agent

        if rotate_proxy and self.rotate_proxies and self.proxy_pool is not None:
            session.proxy = self.proxy_pool.next()

        session.error_count = 0
        logger.info("Rotated session %s to fingerprint %s", session.id, session.fingerprint.name)
        return session

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def clean_expired(self) -> int:
        expired = [sid for sid, session in self._sessions.items() if self.is_expired(session)]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("Removed %d expired sessions", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        expired = sum(1 for session in self._sessions.values() if self.is_expired(session))
        return {
            "total": len(self._sessions),
            "active": len(self._sessions) - expired,
            "expired": expired,
        }

    def serialize(self, session_id: Optional[str] = None) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Snapshot one session, or all of them when no id is given."""
        if session_id is None:
            return [self._serialize_session(session) for session in self._sessions.values()]
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return self._serialize_session(session)

    def _serialize_session(self, session: Session) -> Dict[str, Any]:
        return {
            "id": session.id,
            "cookies": dict(session.cookies),
            "user_agent": session.user_agent,
            "fingerprint": session.fingerprint.to_dict(),
            "proxy": session.proxy.to_dict() if session.proxy else None,
            "created_at": session.created_at,
            "last_used": session.last_used,
            "request_count": session.request_count,
            "error_count": session.error_count,
        }

    def restore(self, state: Dict[str, Any]) -> Session:
        """Rebuild a session from ``serialize`` output, replacing any with the same id."""
        state = {_STATE_ALIASES.get(key, key): value for key, value in state.items()}
        if not state.get("id"):
            raise ValueError("Session state requires an id")

        fingerprint = self._restore_fingerprint(state.get("fingerprint"))
        proxy = self._restore_proxy(state.get("proxy"))
        now = self._clock()

        session = Session(
            id=str(state["id"]),
            fingerprint=fingerprint,
            user_agent=state.get("user_agent") or fingerprint.user_agent,
            cookies=dict(state.get("cookies") or {}),
            proxy=proxy,
            created_at=float(state.get("created_at", now)),
            last_used=float(state.get("last_used", now)),
            request_count=int(state.get("request_count", 0)),
            error_count=int(state.get("error_count", 0)),
        )
        self._sessions[session.id] = session
        return session

    def _restore_fingerprint(self, data: Any) -> Fingerprint:
        if data is None:
            return self.catalog.random()
        name = data if isinstance(data, str) else data.get("name")
        known = self.catalog.get(name) if name else None
        if known is not None:
            return known
        if isinstance(data, dict):
            return Fingerprint.from_dict(data)
        logger.warning("Unknown fingerprint %s in session state, picking a random one", name)
        return self.catalog.random()

    def _restore_proxy(self, data: Any) -> Optional[ProxyConfig]:
        if not data:
            return None
        proxy = ProxyConfig.from_url(data) if isinstance(data, str) else ProxyConfig.from_dict(data)
        if self.proxy_pool is not None:
            pooled = self.proxy_pool.find(proxy.key)
            if pooled is not None:
                return pooled
        return proxy

    def save(self, path: Union[str, Path], session_id: Optional[str] = None) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.serialize(session_id), f, indent=2)

    def load(self, path: Union[str, Path]) -> List[Session]:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        states = data if isinstance(data, list) else [data]
        return [self.restore(state) for state in states]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


__all__ = ["Session", "SessionStore"]
