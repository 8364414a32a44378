from pydantic import BaseModel
from typing import Any, Dict, List
from uuid import UUID
from datetime import datetime
from enum import Enum


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_UPDATE = "status_update"


class AuditLogOut(BaseModel):
    id: UUID
    user_id: UUID
    table_name: str
    record_id: UUID
    action: AuditAction
    old_values: Dict[str, Any]
    new_values: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogList(BaseModel):
    items: List[AuditLogOut]
    total: int
    limit: int
    offset: int
