"""
Router FastAPI de Bancos
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import get_auth_context, require_operation_quota
from app.modules.auth.schemas import AuthContext
from app.modules.banks.service import BankService
from app.modules.banks.schemas import BankCreate, BankUpdate, BankOut, BankList

banks_router = APIRouter(prefix="/banks", tags=["Banks"])


@banks_router.get("/", response_model=BankList)
def list_banks(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Listar bancos ordenados por nome"""
    return BankService(db).get_banks(auth_context.user_id)


@banks_router.get("/{bank_id}", response_model=BankOut)
def get_bank(
    bank_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    return BankService(db).get_bank(bank_id, auth_context.user_id)


@banks_router.post("/", response_model=BankOut, status_code=status.HTTP_201_CREATED)
def create_bank(
    data: BankCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return BankService(db).create_bank(data, auth_context.user_id)


@banks_router.put("/{bank_id}", response_model=BankOut)
def update_bank(
    bank_id: UUID,
    data: BankUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return BankService(db).update_bank(bank_id, data, auth_context.user_id)


@banks_router.delete("/{bank_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bank(
    bank_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Excluir banco

    Falha com 409 se houver contas em cheque vinculadas ao banco.
    """
    BankService(db).delete_bank(bank_id, auth_context.user_id)
