"""
Modelos SQLAlchemy para o módulo de Contas a Pagar (Bills)

Entidades:
- Bills: contas a pagar (uma obrigação com vencimento e valor)
- InstallmentBatches: lote que agrupa as parcelas de um boleto/cheque parcelado
- BillInstallmentAttachments: anexos por parcela (comprovantes, boletos)

Status de contas:
- pending: pendente
- overdue: vencida (derivado: pending com vencimento anterior a hoje)
- paid: paga (terminal)

Todas as tabelas incluem user_id (dono dos registros).
"""

from app.database.database import Base
from app.common.mixins import BaseMixin
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship, object_session, Session
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID
from datetime import date
from typing import Callable, Optional
from uuid import uuid4
import enum

# Registra os modelos referenciados por relationship()
from app.modules.suppliers.models import Supplier  # noqa: F401
from app.modules.banks.models import Bank  # noqa: F401


# ===== ENUMS =====

class BillStatus(str, enum.Enum):
    """Status de contas"""
    PENDING = "pending"     # Pendente
    OVERDUE = "overdue"     # Vencida
    PAID = "paid"           # Paga (terminal)


class PaymentType(str, enum.Enum):
    """Formas de pagamento"""
    CONTA = "conta"         # Conta avulsa
    CHEQUE = "cheque"       # Cheque (pode ser parcelado)
    BOLETO = "boleto"       # Boleto (pode ser parcelado)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


TODAY_PROVIDER_KEY = "bills_today_provider"


def bind_today_provider(db: Session, today_provider: Callable[[], date]) -> None:
    """Relógio usado no status apresentado das contas carregadas por `db`"""
    db.info[TODAY_PROVIDER_KEY] = today_provider


# ===== MODELOS =====

class InstallmentBatch(Base, BaseMixin):
    """
    Lote de parcelas

    Agrupa as N contas geradas de uma vez para boleto/cheque parcelado.
    Excluir o lote exclui todas as parcelas.
    """
    __tablename__ = "installment_batches"

    description = Column(String(255), nullable=False)  # Sem o sufixo (i/N)
    total_amount = Column(Numeric(12, 2), nullable=False)
    installment_count = Column(Integer, nullable=False)
    payment_type = Column(Enum(PaymentType, values_callable=_enum_values), nullable=False)

    bills = relationship(
        "Bill",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="Bill.installment_number"
    )


class Bill(Base, BaseMixin):
    """
    Conta a pagar
    """
    __tablename__ = "bills"

    description = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    entry_date = Column(Date, nullable=False, default=date.today)
    status = Column(
        Enum(BillStatus, values_callable=_enum_values),
        nullable=False,
        default=BillStatus.PENDING,
        index=True
    )
    payment_type = Column(Enum(PaymentType, values_callable=_enum_values), nullable=False, default=PaymentType.CONTA)

    supplier_id = Column(UUID(as_uuid=True), ForeignKey("suppliers.id"), nullable=True, index=True)
    bank_id = Column(UUID(as_uuid=True), ForeignKey("banks.id"), nullable=True, index=True)  # Só cheque

    # Dados do cheque / conta
    check_number = Column(String(50), nullable=True)
    account_holder = Column(String(200), nullable=True)
    account_number = Column(String(50), nullable=True)
    account_name = Column(String(200), nullable=True)

    # Referências ao storage externo ("<user_id>/<arquivo>")
    attachment_path = Column(Text, nullable=True)
    payment_proof_path = Column(Text, nullable=True)

    # Parcelamento
    batch_id = Column(UUID(as_uuid=True), ForeignKey("installment_batches.id", ondelete="CASCADE"), nullable=True, index=True)
    installment_number = Column(Integer, nullable=True)  # 1-based; NULL para conta única

    # Relationships (sem back_populates em fornecedor/banco: as FKs barram exclusões)
    supplier = relationship("Supplier")
    bank = relationship("Bank")
    batch = relationship("InstallmentBatch", back_populates="bills")
    attachments = relationship(
        "BillInstallmentAttachment",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillInstallmentAttachment.installment_number"
    )

    def effective_status(self, today: Optional[date] = None) -> BillStatus:
        """Status apresentado: pending vencida aparece como overdue."""
        from app.modules.bills.status import effective_status
        return effective_status(self.status, self.due_date, today or date.today())

    @property
    def display_status(self) -> BillStatus:
        """Status derivado com o relógio da sessão que carregou a conta"""
        session = object_session(self)
        today_provider = session.info.get(TODAY_PROVIDER_KEY) if session is not None else None
        return self.effective_status(today_provider() if today_provider else None)

    @property
    def supplier_name(self) -> Optional[str]:
        return self.supplier.name if self.supplier else None

    @property
    def bank_name(self) -> Optional[str]:
        return self.bank.name if self.bank else None

    @property
    def installment_count(self) -> Optional[int]:
        return self.batch.installment_count if self.batch else None

    @property
    def installments(self) -> list:
        """Parcelas do mesmo lote (incluindo esta), em ordem"""
        return list(self.batch.bills) if self.batch else []


class BillInstallmentAttachment(Base):
    """
    Anexo de uma parcela

    O arquivo fica no storage externo; aqui só o caminho e os metadados.
    """
    __tablename__ = "bill_installment_attachments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    bill_id = Column(UUID(as_uuid=True), ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    attachment_path = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    bill = relationship("Bill", back_populates="attachments")
