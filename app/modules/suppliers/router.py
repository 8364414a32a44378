"""
Routers FastAPI de Fornecedores e Tipos de Fornecedor
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import get_auth_context, require_operation_quota
from app.modules.auth.schemas import AuthContext
from app.modules.suppliers.service import SupplierService, SupplierTypeService
from app.modules.suppliers.schemas import (
    SupplierCreate, SupplierUpdate, SupplierOut, SupplierList,
    SupplierTypeCreate, SupplierTypeUpdate, SupplierTypeOut
)

suppliers_router = APIRouter(prefix="/suppliers", tags=["Suppliers"])
supplier_types_router = APIRouter(prefix="/supplier-types", tags=["Supplier Types"])


# ===== SUPPLIER TYPES =====

@supplier_types_router.get("/", response_model=List[SupplierTypeOut])
def list_supplier_types(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Listar tipos de fornecedor ordenados por nome"""
    return SupplierTypeService(db).list_types(auth_context.user_id)


@supplier_types_router.post("/", response_model=SupplierTypeOut, status_code=status.HTTP_201_CREATED)
def create_supplier_type(
    data: SupplierTypeCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return SupplierTypeService(db).create_type(data, auth_context.user_id)


@supplier_types_router.put("/{type_id}", response_model=SupplierTypeOut)
def update_supplier_type(
    type_id: UUID,
    data: SupplierTypeUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return SupplierTypeService(db).update_type(type_id, data, auth_context.user_id)


@supplier_types_router.delete("/{type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_supplier_type(
    type_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Excluir tipo de fornecedor

    Falha com 409 se ainda houver fornecedores usando o tipo.
    """
    SupplierTypeService(db).delete_type(type_id, auth_context.user_id)


# ===== SUPPLIERS =====

@suppliers_router.get("/", response_model=SupplierList)
def list_suppliers(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Busca por nome, e-mail ou CNPJ"),
    type_id: Optional[UUID] = Query(None, description="Filtrar por tipo"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Listar fornecedores do usuário"""
    return SupplierService(db).get_suppliers(
        user_id=auth_context.user_id,
        limit=limit,
        offset=offset,
        search=search,
        type_id=type_id
    )


@suppliers_router.get("/{supplier_id}", response_model=SupplierOut)
def get_supplier(
    supplier_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    return SupplierService(db).get_supplier(supplier_id, auth_context.user_id)


@suppliers_router.post("/", response_model=SupplierOut, status_code=status.HTTP_201_CREATED)
def create_supplier(
    data: SupplierCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Cadastrar fornecedor

    Telefone e CNPJ são normalizados para os formatos (00)00000-0000 e 00.000.000/0000-00.
    """
    return SupplierService(db).create_supplier(data, auth_context.user_id)


@suppliers_router.put("/{supplier_id}", response_model=SupplierOut)
def update_supplier(
    supplier_id: UUID,
    data: SupplierUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return SupplierService(db).update_supplier(supplier_id, data, auth_context.user_id)


@suppliers_router.delete("/{supplier_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_supplier(
    supplier_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Excluir fornecedor

    Falha com 409 se houver contas vinculadas ao fornecedor.
    """
    SupplierService(db).delete_supplier(supplier_id, auth_context.user_id)
