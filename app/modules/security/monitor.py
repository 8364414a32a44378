"""
Monitoramento de segurança: eventos e rate limiting em memória

Os eventos ficam num buffer circular (últimos SECURITY_EVENT_BUFFER_SIZE),
não transacional e perdido ao reiniciar o processo. O rate limiting usa
janelas fixas por chave (limits.FixedWindowRateLimiter sobre MemoryStorage).
"""
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    max_attempts: int
    window_seconds: int

    def as_item(self) -> RateLimitItemPerSecond:
        return RateLimitItemPerSecond(self.max_attempts, self.window_seconds)


@dataclass
class SecurityEvent:
    event_type: str
    timestamp: str
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


DEFAULT_RATE_LIMITS = {
    "operations": RateLimit(settings.RATE_LIMIT_OPERATIONS, settings.RATE_LIMIT_OPERATIONS_WINDOW),
}


class SecurityMonitor:
    """Registra eventos de segurança e aplica limites de taxa por chave"""

    def __init__(
        self,
        limits: Optional[Dict[str, RateLimit]] = None,
        buffer_size: int = settings.SECURITY_EVENT_BUFFER_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.limits = limits or dict(DEFAULT_RATE_LIMITS)
        self._clock = clock
        self._lock = threading.Lock()
        self._events: deque = deque(maxlen=buffer_size)
        self._storage = MemoryStorage()
        self._limiter = FixedWindowRateLimiter(self._storage)
        self._blocked: Set[str] = set()

    def record_event(self, event_type: str, **details: Any) -> None:
        """Registra um evento; falhas aqui nunca interrompem o fluxo principal."""
        try:
            timestamp = datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()
            event = SecurityEvent(event_type=event_type, timestamp=timestamp, **details)
            with self._lock:
                self._events.append(event)
            logger.warning(f"[Security Event] {asdict(event)}")
        except Exception as e:
            logger.error(f"Failed to record security event: {e}")

    def check_rate_limit(self, key: str, kind: str = "operations") -> bool:
        """
        Conta uma tentativa para a chave.
        Retorna True quando a chave excedeu o limite e deve ser bloqueada.
        O evento rate_limit_exceeded é registrado uma vez por bloqueio.
        """
        limit = self.limits[kind]
        allowed = self._limiter.hit(limit.as_item(), kind, key)

        with self._lock:
            if allowed:
                self._blocked.discard(key)
                return False
            newly_blocked = key not in self._blocked
            self._blocked.add(key)

        if newly_blocked:
            self.record_event(
                "rate_limit_exceeded",
                metadata={"key": key, "type": kind, "attempts": limit.max_attempts},
            )
        return True

    def get_events(self) -> List[SecurityEvent]:
        with self._lock:
            return list(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._blocked.clear()
        self._storage.reset()


security_monitor = SecurityMonitor()
