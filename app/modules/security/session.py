"""
Sessões de usuário mantidas pelo servidor

Cada usuário autenticado tem um UserSession explícito que concentra:
- O timer de inatividade (expira após SESSION_IDLE_TIMEOUT_MINUTES sem uso)
- As flags de "operação em andamento" usadas para rejeitar chamadas concorrentes

O relógio é injetado para permitir testes determinísticos.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional, Set
from uuid import UUID

from app.core.config import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class UserSession:
    """Estado de sessão de um usuário"""

    def __init__(self, user_id: UUID, idle_timeout: float, clock: Clock = time.monotonic):
        self.user_id = user_id
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()
        self.last_activity = clock()

    def reset_idle_timer(self) -> None:
        self.last_activity = self._clock()

    def idle_seconds(self) -> float:
        return self._clock() - self.last_activity

    def is_expired(self) -> bool:
        return self.idle_seconds() > self.idle_timeout

    def try_begin(self, operation: str) -> bool:
        """
        Marca a operação como em andamento.
        Retorna False (sem enfileirar) se ela já estiver em andamento.
        """
        with self._lock:
            if operation in self._in_flight:
                return False
            self._in_flight.add(operation)
            return True

    def end(self, operation: str) -> None:
        with self._lock:
            self._in_flight.discard(operation)

    def is_busy(self, operation: str) -> bool:
        with self._lock:
            return operation in self._in_flight


class SessionRegistry:
    """Registro em memória das sessões ativas, indexado por user_id"""

    def __init__(self, idle_timeout: float, clock: Clock = time.monotonic):
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[UUID, UserSession] = {}

    def get(self, user_id: UUID) -> Optional[UserSession]:
        with self._lock:
            return self._sessions.get(user_id)

    def get_or_create(self, user_id: UUID) -> UserSession:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = UserSession(user_id, self.idle_timeout, self._clock)
                self._sessions[user_id] = session
                logger.debug(f"Session opened for user {user_id}")
            return session

    def discard(self, user_id: UUID) -> None:
        with self._lock:
            if self._sessions.pop(user_id, None) is not None:
                logger.info(f"Session closed for user {user_id}")

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


session_registry = SessionRegistry(idle_timeout=settings.SESSION_IDLE_TIMEOUT_MINUTES * 60)
