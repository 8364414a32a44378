"""
Serviços de negócio do módulo de Contas a Pagar (Bills)

Inclui:
- BillService: criação (única ou parcelada), listagem com status derivado,
  edição, exclusão, anexos por parcela, comprovante de pagamento,
  resumo do dashboard e calendário

Toda mutação é auditada depois do commit principal (best-effort).
O status "vencida" é derivado na leitura: uma conta pending com vencimento
anterior a hoje é tratada como overdue nos filtros e contagens.
"""

import calendar
import logging
import posixpath
from collections import OrderedDict
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.common.errors import persistence_error
from app.core.config import settings
from app.modules.audit.models import AuditAction
from app.modules.audit.service import AuditLogger, snapshot, changed_fields
from app.modules.auth.schemas import AuthContext
from app.modules.banks.service import BankService
from app.modules.bills.installments import (
    generate_installments, apply_overrides, installment_drift, installment_description, to_money
)
from app.modules.bills.models import (
    Bill, BillStatus, PaymentType, InstallmentBatch, BillInstallmentAttachment, bind_today_provider
)
from app.modules.bills.schemas import (
    BillUpdate, BillList, BillCreateResult, AttachmentCreate,
    BillSummary, BillCalendar, CalendarDay
)
from app.modules.bills.status_updater import BillStatusUpdater
from app.modules.security.session import UserSession, session_registry
from app.modules.suppliers.models import Supplier
from app.modules.suppliers.service import SupplierService

logger = logging.getLogger(__name__)

BILL_AUDIT_FIELDS = (
    "description", "amount", "due_date", "entry_date", "status", "payment_type",
    "supplier_id", "bank_id", "check_number", "account_holder", "account_number",
    "account_name", "attachment_path", "payment_proof_path", "batch_id", "installment_number",
)
BILL_EDIT_AUDIT_FIELDS = tuple(name for name in BILL_AUDIT_FIELDS if name != "status")
BATCH_AUDIT_FIELDS = ("description", "total_amount", "installment_count", "payment_type")
ATTACHMENT_AUDIT_FIELDS = ("bill_id", "installment_number", "attachment_path", "file_name", "file_type")

CHEQUE_ONLY_FIELDS = ("bank_id", "check_number", "account_holder")

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def infer_content_type(path: str) -> str:
    """Content type a partir da extensão do arquivo"""
    name = posixpath.basename(path)
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if extension in settings.ALLOWED_ATTACHMENT_EXTENSIONS:
        return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)
    return DEFAULT_CONTENT_TYPE


def status_condition(requested: BillStatus, today: date):
    """Condição SQL equivalente ao status derivado"""
    if requested == BillStatus.OVERDUE:
        return or_(
            Bill.status == BillStatus.OVERDUE,
            and_(Bill.status == BillStatus.PENDING, Bill.due_date < today)
        )
    if requested == BillStatus.PENDING:
        return and_(Bill.status == BillStatus.PENDING, Bill.due_date >= today)
    return Bill.status == BillStatus.PAID


class BillService:
    """Serviço para gestão de contas a pagar"""

    def __init__(self, db: Session, today_provider: Callable[[], date] = date.today):
        self.db = db
        self.today_provider = today_provider
        bind_today_provider(db, today_provider)

    # ===== HELPERS =====

    def _check_supplier(self, supplier_id: Optional[UUID], user_id: UUID) -> None:
        if supplier_id is not None:
            SupplierService(self.db).get_supplier(supplier_id, user_id)

    def _check_bank(self, bank_id: Optional[UUID], user_id: UUID) -> None:
        if bank_id is not None:
            BankService(self.db).get_bank(bank_id, user_id)

    def _check_path(self, path: Optional[str], user_id: UUID) -> None:
        """Caminhos do storage devem ficar sob a pasta do próprio usuário"""
        if path is None:
            return
        if not path.startswith(f"{user_id}/") or ".." in path.split("/"):
            logger.warning(f"User {user_id} referenced a foreign storage path: {path}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso negado ao arquivo")

    def _audit(self, user_id: UUID) -> AuditLogger:
        return AuditLogger(self.db, user_id)

    def _attachment(self, bill: Bill, number: int, path: str,
                    file_name: Optional[str], file_type: Optional[str]) -> BillInstallmentAttachment:
        return BillInstallmentAttachment(
            bill=bill,
            installment_number=number,
            attachment_path=path,
            file_name=file_name or posixpath.basename(path),
            file_type=file_type or infer_content_type(path),
        )

    # ===== CREATE =====

    def create_bills(self, data, user_id: UUID) -> BillCreateResult:
        """
        Criar conta única ou parcelada

        - conta: sempre uma parcela
        - boleto/cheque com installment_count > 1: N contas "(i/N)" ligadas a um lote
        """
        payment_type = PaymentType(data.payment_type)
        count = getattr(data, "installment_count", 1)
        overrides = getattr(data, "installments", [])
        bank_id = getattr(data, "bank_id", None)

        self._check_supplier(data.supplier_id, user_id)
        self._check_bank(bank_id, user_id)
        self._check_path(data.attachment_path, user_id)
        for override in overrides:
            self._check_path(override.attachment_path, user_id)

        try:
            installments = apply_overrides(
                generate_installments(data.amount, count, data.due_date), overrides
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        drift = installment_drift(data.amount, installments)
        if drift != 0:
            logger.warning(
                f"Installments of '{data.description}' differ from total {data.amount} by {drift}"
            )

        entry_date = data.entry_date or self.today_provider()
        overrides_by_number = {o.number: o for o in overrides}
        batch = None
        bills: List[Bill] = []

        try:
            if count > 1:
                batch = InstallmentBatch(
                    user_id=user_id,
                    description=data.description,
                    total_amount=data.amount,
                    installment_count=count,
                    payment_type=payment_type,
                )
                self.db.add(batch)

            for installment in installments:
                bill = Bill(
                    user_id=user_id,
                    description=installment_description(data.description, installment.number, count),
                    amount=installment.amount,
                    due_date=installment.due_date,
                    entry_date=entry_date,
                    status=BillStatus.PENDING,
                    payment_type=payment_type,
                    supplier_id=data.supplier_id,
                    bank_id=bank_id,
                    check_number=getattr(data, "check_number", None),
                    account_holder=getattr(data, "account_holder", None),
                    account_number=data.account_number,
                    account_name=data.account_name,
                    attachment_path=data.attachment_path,
                    batch=batch,
                    installment_number=installment.number if batch else None,
                )
                self.db.add(bill)

                override = overrides_by_number.get(installment.number)
                if override and override.attachment_path:
                    self.db.add(self._attachment(
                        bill, installment.number, override.attachment_path,
                        override.file_name, override.file_type
                    ))
                bills.append(bill)

            self.db.commit()
            for bill in bills:
                self.db.refresh(bill)
            if batch:
                self.db.refresh(batch)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating bills: {e}")
            raise persistence_error(e)

        audit = self._audit(user_id)
        if batch:
            audit.record("installment_batches", batch.id, AuditAction.CREATE, {}, snapshot(batch, BATCH_AUDIT_FIELDS))
        for bill in bills:
            audit.record("bills", bill.id, AuditAction.CREATE, {}, snapshot(bill, BILL_AUDIT_FIELDS))

        logger.info(f"Created {len(bills)} bill(s) for user {user_id}")
        return BillCreateResult(batch=batch, bills=bills, drift=drift)

    # ===== READ =====

    def get_bills(
        self,
        user_id: UUID,
        limit: int = 20,
        offset: int = 0,
        status_filter: Optional[BillStatus] = None,
        supplier_id: Optional[UUID] = None,
        payment_type: Optional[PaymentType] = None,
        search: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        batch_id: Optional[UUID] = None,
    ) -> BillList:
        """Listar contas ordenadas por vencimento"""
        query = self.db.query(Bill).filter(Bill.user_id == user_id)

        if status_filter:
            query = query.filter(status_condition(BillStatus(status_filter), self.today_provider()))
        if supplier_id:
            query = query.filter(Bill.supplier_id == supplier_id)
        if payment_type:
            query = query.filter(Bill.payment_type == payment_type)
        if batch_id:
            query = query.filter(Bill.batch_id == batch_id)
        if start_date:
            query = query.filter(Bill.due_date >= start_date)
        if end_date:
            query = query.filter(Bill.due_date <= end_date)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.outerjoin(Supplier, Bill.supplier_id == Supplier.id).filter(or_(
                Bill.description.ilike(pattern),
                Supplier.name.ilike(pattern)
            ))

        total = query.count()
        bills = (
            query.order_by(Bill.due_date, Bill.installment_number, Bill.created_at)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return BillList(items=bills, total=total, limit=limit, offset=offset)

    def get_bill(self, bill_id: UUID, user_id: UUID) -> Bill:
        bill = self.db.query(Bill).filter(Bill.id == bill_id, Bill.user_id == user_id).first()
        if not bill:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conta não encontrada")
        return bill

    def get_batch(self, batch_id: UUID, user_id: UUID) -> InstallmentBatch:
        batch = self.db.query(InstallmentBatch).filter(
            InstallmentBatch.id == batch_id,
            InstallmentBatch.user_id == user_id
        ).first()
        if not batch:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lote de parcelas não encontrado")
        return batch

    # ===== UPDATE =====

    def update_bill(
        self, bill_id: UUID, data: BillUpdate, user_id: UUID, session: Optional[UserSession] = None
    ) -> Bill:
        """
        Editar conta

        Um novo status segue o mesmo caminho de PATCH /bills/{id}/status:
        flag de operação da sessão, validação a partir do status derivado
        (com o vencimento já editado) e auditoria status_update. Campos de
        cheque só são aceitos quando a forma de pagamento final é cheque.
        """
        bill = self.get_bill(bill_id, user_id)
        fields = data.model_dump(exclude_unset=True)

        # Colunas obrigatórias não aceitam null explícito
        for required in ("description", "amount", "due_date", "entry_date", "payment_type", "status"):
            if required in fields and fields[required] is None:
                fields.pop(required)

        requested_status = fields.pop("status", None)
        if requested_status is None:
            return self._save_edit(bill, fields, user_id)

        requested = BillStatus(requested_status)
        updater = BillStatusUpdater(
            self.db,
            session or session_registry.get_or_create(user_id),
            AuthContext(user_id=user_id),
            self.today_provider,
        )
        with updater.in_progress():
            current = updater.check_transition(bill, requested, fields.get("due_date"))
            status_changed = requested != BillStatus(bill.status)
            if status_changed:
                fields["status"] = requested
            bill = self._save_edit(bill, fields, user_id)
            if status_changed:
                updater.record(bill, current, requested)
        return bill

    def _save_edit(self, bill: Bill, fields: dict, user_id: UUID) -> Bill:
        payment_type = PaymentType(fields.get("payment_type", bill.payment_type))

        if payment_type != PaymentType.CHEQUE:
            if any(fields.get(name) is not None for name in CHEQUE_ONLY_FIELDS):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Banco, número do cheque e titular só se aplicam a cheques"
                )
            for name in CHEQUE_ONLY_FIELDS:
                fields[name] = None

        if "supplier_id" in fields:
            self._check_supplier(fields["supplier_id"], user_id)
        if fields.get("bank_id") is not None:
            self._check_bank(fields["bank_id"], user_id)
        if "attachment_path" in fields:
            self._check_path(fields["attachment_path"], user_id)

        old_values = snapshot(bill, BILL_EDIT_AUDIT_FIELDS)
        try:
            for field, value in fields.items():
                setattr(bill, field, value)
            self.db.commit()
            self.db.refresh(bill)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating bill {bill.id}: {e}")
            raise persistence_error(e)

        old_changed, new_changed = changed_fields(old_values, snapshot(bill, BILL_EDIT_AUDIT_FIELDS))
        if new_changed:
            self._audit(user_id).record("bills", bill.id, AuditAction.UPDATE, old_changed, new_changed)
        return bill

    def set_payment_proof(self, bill_id: UUID, path: str, user_id: UUID) -> Bill:
        """Registrar o caminho do comprovante de pagamento"""
        bill = self.get_bill(bill_id, user_id)
        self._check_path(path, user_id)
        old_path = bill.payment_proof_path

        try:
            bill.payment_proof_path = path
            self.db.commit()
            self.db.refresh(bill)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error saving payment proof of bill {bill_id}: {e}")
            raise persistence_error(e)

        self._audit(user_id).record(
            "bills", bill.id, AuditAction.UPDATE,
            {"payment_proof_path": old_path}, {"payment_proof_path": path}
        )
        return bill

    # ===== DELETE =====

    def delete_bill(self, bill_id: UUID, user_id: UUID) -> None:
        """
        Excluir conta (definitivo)

        Se for a última parcela do lote, o lote também é excluído.
        """
        bill = self.get_bill(bill_id, user_id)
        old_values = snapshot(bill, BILL_AUDIT_FIELDS)
        batch = bill.batch
        remove_batch = batch is not None and len(batch.bills) == 1
        batch_values = snapshot(batch, BATCH_AUDIT_FIELDS) if remove_batch else None
        batch_id = batch.id if batch else None

        try:
            if remove_batch:
                self.db.delete(batch)
            else:
                self.db.delete(bill)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting bill {bill_id}: {e}")
            raise persistence_error(e)

        audit = self._audit(user_id)
        audit.record("bills", bill_id, AuditAction.DELETE, old_values, {})
        if remove_batch:
            audit.record("installment_batches", batch_id, AuditAction.DELETE, batch_values, {})

    def delete_batch(self, batch_id: UUID, user_id: UUID) -> None:
        """Excluir o lote e todas as suas parcelas"""
        batch = self.get_batch(batch_id, user_id)
        batch_values = snapshot(batch, BATCH_AUDIT_FIELDS)
        bill_values = {bill.id: snapshot(bill, BILL_AUDIT_FIELDS) for bill in batch.bills}

        try:
            self.db.delete(batch)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting installment batch {batch_id}: {e}")
            raise persistence_error(e)

        audit = self._audit(user_id)
        for bill_id, values in bill_values.items():
            audit.record("bills", bill_id, AuditAction.DELETE, values, {})
        audit.record("installment_batches", batch_id, AuditAction.DELETE, batch_values, {})
        logger.info(f"Deleted installment batch {batch_id} with {len(bill_values)} bill(s)")

    # ===== ATTACHMENTS =====

    def _resolve_installment(self, bill: Bill, number: Optional[int]) -> tuple:
        """Conta e número da parcela alvo de um anexo"""
        if bill.batch is None:
            if number not in (None, 1):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Conta sem parcelamento aceita apenas a parcela 1"
                )
            return bill, 1

        if number is None:
            return bill, bill.installment_number

        for sibling in bill.batch.bills:
            if sibling.installment_number == number:
                return sibling, number
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Parcela {number} não existe (1 a {bill.batch.installment_count})"
        )

    def add_attachment(self, bill_id: UUID, data: AttachmentCreate, user_id: UUID) -> BillInstallmentAttachment:
        """Registrar anexo de uma parcela"""
        bill = self.get_bill(bill_id, user_id)
        self._check_path(data.attachment_path, user_id)
        target, number = self._resolve_installment(bill, data.installment_number)

        try:
            attachment = self._attachment(target, number, data.attachment_path, data.file_name, data.file_type)
            self.db.add(attachment)
            self.db.commit()
            self.db.refresh(attachment)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error adding attachment to bill {bill_id}: {e}")
            raise persistence_error(e)

        self._audit(user_id).record(
            "bill_installment_attachments", attachment.id, AuditAction.CREATE,
            {}, snapshot(attachment, ATTACHMENT_AUDIT_FIELDS)
        )
        return attachment

    def delete_attachment(self, bill_id: UUID, attachment_id: UUID, user_id: UUID) -> None:
        bill = self.get_bill(bill_id, user_id)
        attachment = self.db.query(BillInstallmentAttachment).filter(
            BillInstallmentAttachment.id == attachment_id,
            BillInstallmentAttachment.bill_id == bill.id
        ).first()
        if not attachment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Anexo não encontrado")

        old_values = snapshot(attachment, ATTACHMENT_AUDIT_FIELDS)
        try:
            self.db.delete(attachment)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting attachment {attachment_id}: {e}")
            raise persistence_error(e)

        self._audit(user_id).record(
            "bill_installment_attachments", attachment_id, AuditAction.DELETE, old_values, {}
        )

    # ===== DASHBOARD =====

    def get_summary(self, user_id: UUID) -> BillSummary:
        """Contagens por status derivado e próximas contas a vencer"""
        today = self.today_provider()
        base = self.db.query(Bill).filter(Bill.user_id == user_id)

        def count_and_sum(requested: BillStatus):
            row = (
                self.db.query(func.count(Bill.id), func.coalesce(func.sum(Bill.amount), 0))
                .filter(Bill.user_id == user_id, status_condition(requested, today))
                .one()
            )
            return row[0], to_money(row[1] or 0)

        pending_count, pending_amount = count_and_sum(BillStatus.PENDING)
        overdue_count, overdue_amount = count_and_sum(BillStatus.OVERDUE)
        paid_count, paid_amount = count_and_sum(BillStatus.PAID)

        upcoming = (
            base.filter(
                Bill.status == BillStatus.PENDING,
                Bill.due_date >= today,
                Bill.due_date <= today + timedelta(days=settings.UPCOMING_BILLS_DAYS)
            )
            .order_by(Bill.due_date)
            .limit(settings.UPCOMING_BILLS_LIMIT)
            .all()
        )

        return BillSummary(
            pending_count=pending_count,
            overdue_count=overdue_count,
            paid_count=paid_count,
            total_amount=pending_amount + overdue_amount + paid_amount,
            pending_amount=pending_amount,
            overdue_amount=overdue_amount,
            upcoming=upcoming,
        )

    def get_calendar(self, user_id: UUID, year: int, month: int) -> BillCalendar:
        """Contas do mês agrupadas por dia de vencimento"""
        if not 1 <= month <= 12:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mês inválido")

        first_day = date(year, month, 1)
        last_day = date(year, month, calendar.monthrange(year, month)[1])
        bills = (
            self.db.query(Bill)
            .filter(Bill.user_id == user_id, Bill.due_date >= first_day, Bill.due_date <= last_day)
            .order_by(Bill.due_date, Bill.installment_number, Bill.created_at)
            .all()
        )

        days: Dict[date, List[Bill]] = OrderedDict()
        for bill in bills:
            days.setdefault(bill.due_date, []).append(bill)

        return BillCalendar(
            year=year,
            month=month,
            days=[CalendarDay(day=day, bills=items) for day, items in days.items()]
        )
