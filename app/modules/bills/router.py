"""
Router FastAPI do módulo de Contas a Pagar (Bills)

Endpoints:
- /bills: criação (única ou parcelada), listagem e filtros
- /bills/summary e /bills/calendar: dashboard e calendário
- /bills/{id}/status: atualização de status com validação de transições
- /bills/{id}/attachments e /bills/{id}/payment-proof: referências ao storage
- /bills/batches/{id}: lote de parcelas
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import get_auth_context, get_user_session, require_operation_quota
from app.modules.auth.schemas import AuthContext
from app.modules.bills.models import BillStatus, PaymentType
from app.modules.bills.service import BillService
from app.modules.bills.status_updater import BillStatusUpdater
from app.modules.bills.schemas import (
    BillCreate, BillCreateResult, BillUpdate, BillStatusUpdate, BillOut, BillDetail, BillList,
    AttachmentCreate, AttachmentOut, PaymentProofUpdate, BillSummary, BillCalendar,
    InstallmentBatchOut
)
from app.modules.security.session import UserSession

bills_router = APIRouter(prefix="/bills", tags=["Bills"])


# ===== CREATE / LIST =====

@bills_router.post("/", response_model=BillCreateResult, status_code=status.HTTP_201_CREATED)
def create_bill(
    data: BillCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Criar conta a pagar

    - **conta**: conta avulsa
    - **boleto** / **cheque**: com `installment_count` > 1 gera N contas "(i/N)"
      com vencimentos mensais, agrupadas em um lote

    `installments` permite ajustar valor, vencimento ou anexo de parcelas específicas.
    """
    return BillService(db).create_bills(data, auth_context.user_id)


@bills_router.get("/", response_model=BillList)
def list_bills(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    status_filter: Optional[BillStatus] = Query(None, alias="status", description="Status derivado"),
    supplier_id: Optional[UUID] = Query(None),
    payment_type: Optional[PaymentType] = Query(None),
    search: Optional[str] = Query(None, description="Busca por descrição ou fornecedor"),
    start_date: Optional[date] = Query(None, description="Vencimento a partir de"),
    end_date: Optional[date] = Query(None, description="Vencimento até"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Listar contas ordenadas por vencimento"""
    return BillService(db).get_bills(
        user_id=auth_context.user_id,
        limit=limit,
        offset=offset,
        status_filter=status_filter,
        supplier_id=supplier_id,
        payment_type=payment_type,
        search=search,
        start_date=start_date,
        end_date=end_date
    )


# ===== DASHBOARD =====

@bills_router.get("/summary", response_model=BillSummary)
def get_bills_summary(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Contagens por status e próximas contas a vencer"""
    return BillService(db).get_summary(auth_context.user_id)


@bills_router.get("/calendar", response_model=BillCalendar)
def get_bills_calendar(
    year: int = Query(..., ge=1900, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    return BillService(db).get_calendar(auth_context.user_id, year, month)


# ===== BATCHES =====

@bills_router.get("/batches/{batch_id}", response_model=InstallmentBatchOut)
def get_batch(
    batch_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    return BillService(db).get_batch(batch_id, auth_context.user_id)


@bills_router.delete("/batches/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_batch(
    batch_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """Excluir o lote e todas as parcelas"""
    BillService(db).delete_batch(batch_id, auth_context.user_id)


# ===== SINGLE BILL =====

@bills_router.get("/{bill_id}", response_model=BillDetail)
def get_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(get_auth_context)
):
    """Detalhe da conta com anexos e parcelas do mesmo lote"""
    return BillService(db).get_bill(bill_id, auth_context.user_id)


@bills_router.patch("/{bill_id}", response_model=BillOut)
def update_bill(
    bill_id: UUID,
    data: BillUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota()),
    session: UserSession = Depends(get_user_session)
):
    """Editar conta; `status` segue as mesmas regras de /bills/{id}/status"""
    return BillService(db).update_bill(bill_id, data, auth_context.user_id, session)


@bills_router.patch("/{bill_id}/status", response_model=BillOut)
def update_bill_status(
    bill_id: UUID,
    data: BillStatusUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota()),
    session: UserSession = Depends(get_user_session)
):
    """
    Atualizar status

    Transições válidas: pending → paid/overdue, overdue → paid.
    Contas pagas não mudam de status. Uma segunda chamada enquanto a
    primeira está em andamento é rejeitada com 409.
    """
    return BillStatusUpdater(db, session, auth_context).update_status(bill_id, data.status)


@bills_router.put("/{bill_id}/payment-proof", response_model=BillOut)
def set_payment_proof(
    bill_id: UUID,
    data: PaymentProofUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    return BillService(db).set_payment_proof(bill_id, data.payment_proof_path, auth_context.user_id)


@bills_router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    BillService(db).delete_bill(bill_id, auth_context.user_id)


# ===== ATTACHMENTS =====

@bills_router.post("/{bill_id}/attachments", response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
def add_attachment(
    bill_id: UUID,
    data: AttachmentCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    """
    Registrar anexo de uma parcela

    O caminho deve começar com "<user_id>/". O content type é inferido
    pela extensão quando não informado.
    """
    return BillService(db).add_attachment(bill_id, data, auth_context.user_id)


@bills_router.delete("/{bill_id}/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attachment(
    bill_id: UUID,
    attachment_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_operation_quota())
):
    BillService(db).delete_attachment(bill_id, attachment_id, auth_context.user_id)
