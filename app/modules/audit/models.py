"""
Modelo SQLAlchemy do log de auditoria

Registro append-only das alterações de campos (antes/depois) de qualquer
entidade. Nunca é atualizado nem removido pela aplicação.
"""

from app.database.database import Base
from sqlalchemy import Column, String, DateTime, Enum, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from uuid import uuid4
import enum


class AuditAction(str, enum.Enum):
    """Ações auditadas"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_UPDATE = "status_update"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)  # Ator
    table_name = Column(String(100), nullable=False, index=True)
    record_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    action = Column(Enum(AuditAction, values_callable=lambda e: [m.value for m in e]), nullable=False)
    old_values = Column(JSON, nullable=False, default=dict)
    new_values = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
