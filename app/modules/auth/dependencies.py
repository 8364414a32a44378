"""
Dependências de autenticação para FastAPI.

A identidade é emitida pelo serviço de autenticação externo; aqui o token
Bearer é apenas verificado e a sessão do usuário (timer de inatividade) é
renovada a cada request.
"""
from typing import Optional
from uuid import UUID
from datetime import datetime, timezone
import logging
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import verify_token
from app.modules.security.session import SessionRegistry, UserSession
from app.modules.security.dependencies import get_session_registry, get_security_monitor
from app.modules.security.monitor import SecurityMonitor

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthDependencies:
    """Dependências de autenticação reutilizáveis."""

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        registry: SessionRegistry = Depends(get_session_registry),
        monitor: SecurityMonitor = Depends(get_security_monitor),
    ) -> AuthContext:
        """
        Obter o contexto de autenticação a partir do token JWT.
        Rejeita sessões expiradas por inatividade.
        """
        if credentials is None or not credentials.credentials:
            raise _unauthorized("Usuário não autenticado. Faça login novamente.")

        try:
            payload = verify_token(credentials.credentials)
            user_id = UUID(str(payload["sub"]))
        except HTTPException:
            monitor.record_event(
                "suspicious_activity",
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
                metadata={"reason": "invalid_token", "path": request.url.path},
            )
            raise
        except ValueError:
            raise _unauthorized("Usuário não autenticado. Faça login novamente.")

        session = registry.get(user_id)
        if session is not None and session.is_expired():
            registry.discard(user_id)
            logger.info(f"Idle session expired for user {user_id}")
            raise _unauthorized("Sessão expirada por inatividade. Faça login novamente.")

        session = registry.get_or_create(user_id)
        session.reset_idle_timer()
        request.state.user_session = session

        expires_at = None
        if payload.get("exp"):
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

        return AuthContext(
            user_id=user_id,
            email=payload.get("email"),
            token_expires_at=expires_at,
        )

    @staticmethod
    def require_operation_quota():
        """
        Dependência que aplica o rate limit de operações por usuário.
        Usada nos endpoints que alteram dados.
        """
        def quota_checker(
            auth_context: AuthContext = Depends(AuthDependencies.get_auth_context),
            monitor: SecurityMonitor = Depends(get_security_monitor),
        ) -> AuthContext:
            if monitor.check_rate_limit(f"{auth_context.user_id}:operations", "operations"):
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail="Muitas tentativas. Aguarde alguns minutos antes de tentar novamente.",
                )
            return auth_context
        return quota_checker


def get_user_session(
    request: Request,
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context),
    registry: SessionRegistry = Depends(get_session_registry),
) -> UserSession:
    """Sessão do usuário autenticado (criada em get_auth_context)."""
    session = getattr(request.state, "user_session", None)
    if session is None:
        session = registry.get_or_create(auth_context.user_id)
    return session


# Instâncias de dependências
get_auth_context = AuthDependencies.get_auth_context
require_operation_quota = AuthDependencies.require_operation_quota
