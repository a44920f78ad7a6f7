"""Proxy pool with failure tracking and rotation strategies.

The pool is an in-memory structure without locks; it must only be touched
from the event loop that drives the orchestrator.
"""

import logging
import random
import time
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .models import ProxyConfig

logger = logging.getLogger(__name__)


class RotationStrategy(Enum):
    """How ``ProxyPool.next`` picks among healthy proxies."""
    ROUND_ROBIN = "round-robin"
    RANDOM = "random"
    FAILOVER = "failover"


class ProxyPool:
    """
    Ordered set of proxies with per-proxy failure counters.

    A proxy whose ``fail_count`` reaches ``max_failures`` is excluded from
    selection until ``reset_failures`` is called; there is no automatic
    recovery. ``cooldown_time`` is stored for configuration compatibility
    but not enforced.
    """

    def __init__(self, proxies: Iterable[Union[ProxyConfig, str]] = (),
                 strategy: Union[RotationStrategy, str] = RotationStrategy.ROUND_ROBIN,
                 max_failures: int = 3, cooldown_time: float = 5.0,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        if cooldown_time < 0:
            raise ValueError("cooldown_time must be non-negative")

        self.strategy = RotationStrategy(strategy) if isinstance(strategy, str) else strategy
        self.max_failures = max_failures
        self.cooldown_time = cooldown_time
        self._proxies: List[ProxyConfig] = [
            ProxyConfig.from_url(proxy) if isinstance(proxy, str) else proxy
            for proxy in proxies
        ]
        self._cursor = 0
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def available(self) -> List[ProxyConfig]:
        """Proxies still below the failure threshold, in pool order."""
        return [proxy for proxy in self._proxies if proxy.fail_count < self.max_failures]

    def next(self) -> Optional[ProxyConfig]:
        """Select the next healthy proxy, or ``None`` when none is left."""
        eligible = self.available
        if not eligible:
            if self._proxies:
                logger.warning("All %d proxies exceeded %d failures", len(self._proxies), self.max_failures)
            return None

        if self.strategy is RotationStrategy.RANDOM:
            proxy = self._rng.choice(eligible)
        elif self.strategy is RotationStrategy.FAILOVER:
            proxy = eligible[0]
        else:
            # Cursor indexes the filtered list, so skips shift as proxies fail
            proxy = eligible[self._cursor % len(eligible)]
            self._cursor += 1

        proxy.last_used = self._clock()
        return proxy

    def mark_failed(self, proxy: Optional[ProxyConfig]) -> None:
        if proxy is None:
            return
        proxy.fail_count += 1
        logger.warning("Proxy %s:%s failed (%d/%d)", proxy.host, proxy.port,
                       proxy.fail_count, self.max_failures)

    def reset_failures(self, proxy: Optional[ProxyConfig] = None) -> None:
        """Clear the failure counter of one proxy, or of every proxy."""
        targets = [proxy] if proxy is not None else self._proxies
        for target in targets:
            target.fail_count = 0

    def add(self, proxy: Union[ProxyConfig, str]) -> ProxyConfig:
        if isinstance(proxy, str):
            proxy = ProxyConfig.from_url(proxy)
        self._proxies.append(proxy)
        return proxy

    def find(self, key: Tuple[str, str, int]) -> Optional[ProxyConfig]:
        """Pool member with the given ``(protocol, host, port)`` key."""
        for proxy in self._proxies:
            if proxy.key == tuple(key):
                return proxy
        return None

    def __len__(self) -> int:
        return len(self._proxies)

    def __iter__(self) -> Iterator[ProxyConfig]:
        return iter(self._proxies)

    def __contains__(self, proxy: object) -> bool:
        return any(member is proxy for member in self._proxies)


__all__ = ["ProxyPool", "RotationStrategy"]
