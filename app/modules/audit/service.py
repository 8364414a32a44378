"""
Serviço de auditoria (best-effort)

O registro de auditoria acompanha cada mutação de fornecedores, tipos,
bancos e contas. A escrita acontece depois do commit da mutação principal e
qualquer falha aqui é apenas logada: nunca desfaz nem bloqueia a operação
que está sendo auditada. Sem retry e sem buffer (no máximo uma entrega).
"""

import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from app.modules.audit.models import AuditLog, AuditAction

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Converte valores de coluna para tipos serializáveis em JSON."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def snapshot(instance: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Mapa parcial campo -> valor de uma instância."""
    return {name: to_jsonable(getattr(instance, name, None)) for name in fields}


def changed_fields(old: Dict[str, Any], new: Dict[str, Any]) -> tuple:
    """Restringe dois snapshots aos campos que mudaram."""
    keys = [k for k in new if old.get(k) != new.get(k)]
    return {k: old.get(k) for k in keys}, {k: new[k] for k in keys}


class AuditLogger:
    """Escreve entradas imutáveis no log de auditoria"""

    def __init__(self, db: Session, user_id: Optional[UUID]):
        self.db = db
        self.user_id = user_id

    def record(
        self,
        table_name: str,
        record_id: UUID,
        action: Union[AuditAction, str],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Registra uma entrada. Retorna None quando a escrita falha.
        """
        if self.user_id is None:
            logger.error(f"Failed to get user for audit log ({table_name}/{record_id})")
            return None

        try:
            entry = AuditLog(
                user_id=self.user_id,
                table_name=table_name,
                record_id=record_id,
                action=AuditAction(action),
                old_values={k: to_jsonable(v) for k, v in (old_values or {}).items()},
                new_values={k: to_jsonable(v) for k, v in (new_values or {}).items()},
            )
            self._persist(entry)
            return entry
        except Exception as e:
            logger.error(f"Failed to create audit log for {table_name}/{record_id}: {e}")
            try:
                self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"Audit log rollback failed: {rollback_error}")
            return None

    def _persist(self, entry: AuditLog) -> None:
        self.db.add(entry)
        self.db.commit()


class AuditLogService:
    """Consulta do log de auditoria do próprio usuário"""

    def __init__(self, db: Session):
        self.db = db

    def get_logs(
        self,
        user_id: UUID,
        limit: int = 100,
        offset: int = 0,
        table_name: Optional[str] = None,
        record_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
    ) -> Dict[str, Any]:
        query = self.db.query(AuditLog).filter(AuditLog.user_id == user_id)

        if table_name:
            query = query.filter(AuditLog.table_name == table_name)
        if record_id:
            query = query.filter(AuditLog.record_id == record_id)
        if action:
            query = query.filter(AuditLog.action == action)

        total = query.count()
        items = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit).all()

        return {"items": items, "total": total, "limit": limit, "offset": offset}
