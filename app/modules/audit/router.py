"""
Router FastAPI do log de auditoria (somente leitura)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import get_auth_context
from app.modules.auth.schemas import AuthContext
from app.modules.audit.models import AuditAction
from app.modules.audit.schemas import AuditLogList, AuditAction as AuditActionSchema
from app.modules.audit.service import AuditLogService

audit_router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])


@audit_router.get("/", response_model=AuditLogList)
def list_audit_logs(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    table_name: Optional[str] = Query(None, description="Filtrar por tabela"),
    record_id: Optional[UUID] = Query(None, description="Filtrar por registro"),
    action: Optional[AuditActionSchema] = Query(None, description="Filtrar por ação"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """
    Listar as entradas de auditoria do usuário autenticado, mais recentes primeiro
    """
    service = AuditLogService(db)
    return service.get_logs(
        user_id=auth_context.user_id,
        limit=limit,
        offset=offset,
        table_name=table_name,
        record_id=record_id,
        action=AuditAction(action.value) if action else None
    )
