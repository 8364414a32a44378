"""
Serviços de negócio de Fornecedores e Tipos de Fornecedor

Toda mutação é seguida de um registro de auditoria best-effort, escrito
depois do commit principal.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.common.errors import persistence_error
from app.modules.audit.models import AuditAction
from app.modules.audit.service import AuditLogger, snapshot, changed_fields
from app.modules.suppliers.models import Supplier, SupplierType
from app.modules.suppliers.schemas import (
    SupplierCreate, SupplierUpdate, SupplierList,
    SupplierTypeCreate, SupplierTypeUpdate
)

logger = logging.getLogger(__name__)

SUPPLIER_AUDIT_FIELDS = ("name", "email", "phone", "address", "cnpj", "type_id")


class SupplierTypeService:
    """Serviço para tipos de fornecedor"""

    def __init__(self, db: Session):
        self.db = db

    def list_types(self, user_id: UUID):
        return (
            self.db.query(SupplierType)
            .filter(SupplierType.user_id == user_id)
            .order_by(SupplierType.name)
            .all()
        )

    def get_type(self, type_id: UUID, user_id: UUID) -> SupplierType:
        supplier_type = self.db.query(SupplierType).filter(
            SupplierType.id == type_id,
            SupplierType.user_id == user_id
        ).first()
        if not supplier_type:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tipo de fornecedor não encontrado")
        return supplier_type

    def create_type(self, data: SupplierTypeCreate, user_id: UUID) -> SupplierType:
        try:
            supplier_type = SupplierType(name=data.name, user_id=user_id)
            self.db.add(supplier_type)
            self.db.commit()
            self.db.refresh(supplier_type)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating supplier type: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record(
            "supplier_types", supplier_type.id, AuditAction.CREATE, {}, {"name": supplier_type.name}
        )
        return supplier_type

    def update_type(self, type_id: UUID, data: SupplierTypeUpdate, user_id: UUID) -> SupplierType:
        supplier_type = self.get_type(type_id, user_id)
        old_name = supplier_type.name
        try:
            supplier_type.name = data.name
            self.db.commit()
            self.db.refresh(supplier_type)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating supplier type {type_id}: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record(
            "supplier_types", supplier_type.id, AuditAction.UPDATE, {"name": old_name}, {"name": supplier_type.name}
        )
        return supplier_type

    def delete_type(self, type_id: UUID, user_id: UUID) -> None:
        supplier_type = self.get_type(type_id, user_id)
        old_values = {"name": supplier_type.name}
        try:
            self.db.delete(supplier_type)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting supplier type {type_id}: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record("supplier_types", type_id, AuditAction.DELETE, old_values, {})


class SupplierService:
    """Serviço para fornecedores"""

    def __init__(self, db: Session):
        self.db = db

    def _check_type(self, type_id: Optional[UUID], user_id: UUID) -> None:
        if type_id is not None:
            SupplierTypeService(self.db).get_type(type_id, user_id)

    def get_suppliers(
        self,
        user_id: UUID,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        type_id: Optional[UUID] = None
    ) -> SupplierList:
        """Listar fornecedores ordenados por nome"""
        query = self.db.query(Supplier).filter(Supplier.user_id == user_id)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Supplier.name.ilike(pattern),
                Supplier.email.ilike(pattern),
                Supplier.cnpj.ilike(pattern)
            ))
        if type_id:
            query = query.filter(Supplier.type_id == type_id)

        total = query.count()
        suppliers = query.order_by(Supplier.name).offset(offset).limit(limit).all()

        return SupplierList(items=suppliers, total=total, limit=limit, offset=offset)

    def get_supplier(self, supplier_id: UUID, user_id: UUID) -> Supplier:
        supplier = self.db.query(Supplier).filter(
            Supplier.id == supplier_id,
            Supplier.user_id == user_id
        ).first()
        if not supplier:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fornecedor não encontrado")
        return supplier

    def create_supplier(self, data: SupplierCreate, user_id: UUID) -> Supplier:
        """Criar fornecedor"""
        self._check_type(data.type_id, user_id)
        try:
            supplier = Supplier(user_id=user_id, **data.model_dump())
            self.db.add(supplier)
            self.db.commit()
            self.db.refresh(supplier)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating supplier: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record(
            "suppliers", supplier.id, AuditAction.CREATE, {}, snapshot(supplier, SUPPLIER_AUDIT_FIELDS)
        )
        return supplier

    def update_supplier(self, supplier_id: UUID, data: SupplierUpdate, user_id: UUID) -> Supplier:
        """Atualizar fornecedor (substitui todos os campos editáveis)"""
        supplier = self.get_supplier(supplier_id, user_id)
        self._check_type(data.type_id, user_id)
        old_values = snapshot(supplier, SUPPLIER_AUDIT_FIELDS)

        try:
            for field, value in data.model_dump().items():
                setattr(supplier, field, value)
            self.db.commit()
            self.db.refresh(supplier)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating supplier {supplier_id}: {e}")
            raise persistence_error(e)

        old_changed, new_changed = changed_fields(old_values, snapshot(supplier, SUPPLIER_AUDIT_FIELDS))
        AuditLogger(self.db, user_id).record("suppliers", supplier.id, AuditAction.UPDATE, old_changed, new_changed)
        return supplier

    def delete_supplier(self, supplier_id: UUID, user_id: UUID) -> None:
        """Excluir fornecedor; falha se houver contas vinculadas"""
        supplier = self.get_supplier(supplier_id, user_id)
        old_values = snapshot(supplier, SUPPLIER_AUDIT_FIELDS)
        try:
            self.db.delete(supplier)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting supplier {supplier_id}: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record("suppliers", supplier_id, AuditAction.DELETE, old_values, {})
