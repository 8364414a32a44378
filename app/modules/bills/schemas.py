"""
Esquemas Pydantic para o módulo de Contas a Pagar (Bills)

A criação de contas é uma união discriminada por payment_type:
- conta: conta avulsa, sempre uma parcela
- boleto: pode ser parcelado (installment_count >= 1)
- cheque: pode ser parcelado; aceita banco, número do cheque e titular
"""

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from decimal import Decimal
from typing import Annotated, Optional, List, Literal, Union
from uuid import UUID
from datetime import date, datetime

from app.modules.bills.models import BillStatus, PaymentType
from app.modules.bills.status import get_status_label


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ===== INSTALLMENT SCHEMAS =====

class InstallmentOverride(BaseModel):
    """Ajuste manual de uma parcela gerada (valor, vencimento ou anexo)"""
    number: int = Field(..., ge=1, description="Número da parcela (1-based)")
    amount: Optional[Decimal] = Field(None, gt=0, description="Valor da parcela")
    due_date: Optional[date] = None
    attachment_path: Optional[str] = Field(None, description="Caminho no storage: <user_id>/<arquivo>")
    file_name: Optional[str] = Field(None, max_length=255)
    file_type: Optional[str] = Field(None, max_length=100)

    @field_validator('attachment_path', 'file_name', 'file_type', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


# ===== BILL CREATE SCHEMAS =====

class BillCreateBase(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, description="Valor total (dividido entre as parcelas)")
    due_date: date = Field(..., description="Vencimento (da primeira parcela quando parcelado)")
    entry_date: Optional[date] = Field(None, description="Data de lançamento; padrão hoje")
    supplier_id: Optional[UUID] = None
    account_number: Optional[str] = Field(None, max_length=50)
    account_name: Optional[str] = Field(None, max_length=200)
    attachment_path: Optional[str] = None

    @field_validator('account_number', 'account_name', 'attachment_path', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator('description')
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Descrição é obrigatória')
        return v


class InstallmentPlanMixin(BaseModel):
    installment_count: int = Field(1, ge=1, le=120, description="Quantidade de parcelas")
    installments: List[InstallmentOverride] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_overrides(self):
        numbers = [o.number for o in self.installments]
        if len(numbers) != len(set(numbers)):
            raise ValueError('Cada parcela pode ser ajustada apenas uma vez')
        for number in numbers:
            if number > self.installment_count:
                raise ValueError(f'Parcela {number} não existe (1 a {self.installment_count})')
        return self


class ContaBillCreate(BillCreateBase):
    payment_type: Literal["conta"]


class BoletoBillCreate(BillCreateBase, InstallmentPlanMixin):
    payment_type: Literal["boleto"]


class ChequeBillCreate(BillCreateBase, InstallmentPlanMixin):
    payment_type: Literal["cheque"]
    bank_id: Optional[UUID] = None
    check_number: Optional[str] = Field(None, max_length=50)
    account_holder: Optional[str] = Field(None, max_length=200)

    @field_validator('check_number', 'account_holder', mode='before')
    @classmethod
    def cheque_blank_to_none(cls, v):
        return _blank_to_none(v)


BillCreate = Annotated[
    Union[ContaBillCreate, BoletoBillCreate, ChequeBillCreate],
    Field(discriminator="payment_type")
]


# ===== BILL UPDATE SCHEMAS =====

class BillUpdate(BaseModel):
    """Edição parcial; status passa pelo atualizador de status (validação, flag da sessão e auditoria)"""
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    entry_date: Optional[date] = None
    status: Optional[BillStatus] = None
    payment_type: Optional[PaymentType] = None
    supplier_id: Optional[UUID] = None
    bank_id: Optional[UUID] = None
    check_number: Optional[str] = Field(None, max_length=50)
    account_holder: Optional[str] = Field(None, max_length=200)
    account_number: Optional[str] = Field(None, max_length=50)
    account_name: Optional[str] = Field(None, max_length=200)
    attachment_path: Optional[str] = None

    @field_validator(
        'check_number', 'account_holder', 'account_number', 'account_name', 'attachment_path',
        mode='before'
    )
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class BillStatusUpdate(BaseModel):
    status: BillStatus


class PaymentProofUpdate(BaseModel):
    payment_proof_path: str = Field(..., min_length=1, description="Caminho no storage: <user_id>/<arquivo>")


# ===== ATTACHMENT SCHEMAS =====

class AttachmentCreate(BaseModel):
    installment_number: Optional[int] = Field(
        None, ge=1, description="Parcela do lote; padrão a própria conta"
    )
    attachment_path: str = Field(..., min_length=1)
    file_name: Optional[str] = Field(None, max_length=255)
    file_type: Optional[str] = Field(None, max_length=100)


class AttachmentOut(BaseModel):
    id: UUID
    bill_id: UUID
    installment_number: int
    attachment_path: str
    file_name: str
    file_type: str
    created_at: datetime

    class Config:
        from_attributes = True


# ===== BILL OUTPUT SCHEMAS =====

class BillOut(BaseModel):
    id: UUID
    description: str
    amount: Decimal
    due_date: date
    entry_date: date
    status: BillStatus = Field(..., validation_alias="display_status", description="Status apresentado (vencida derivada)")
    stored_status: BillStatus = Field(..., validation_alias="status", description="Status gravado")
    payment_type: PaymentType
    supplier_id: Optional[UUID] = None
    supplier_name: Optional[str] = None
    bank_id: Optional[UUID] = None
    bank_name: Optional[str] = None
    check_number: Optional[str] = None
    account_holder: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    attachment_path: Optional[str] = None
    payment_proof_path: Optional[str] = None
    batch_id: Optional[UUID] = None
    installment_number: Optional[int] = None
    installment_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def status_label(self) -> str:
        return get_status_label(self.status)

    class Config:
        from_attributes = True


class InstallmentBatchOut(BaseModel):
    id: UUID
    description: str
    total_amount: Decimal
    installment_count: int
    payment_type: PaymentType
    created_at: datetime

    class Config:
        from_attributes = True


class BillDetail(BillOut):
    """Conta com anexos, lote e parcelas irmãs"""
    attachments: List[AttachmentOut] = Field(default_factory=list)
    batch: Optional[InstallmentBatchOut] = None
    installments: List[BillOut] = Field(default_factory=list)


class BillList(BaseModel):
    items: List[BillOut]
    total: int
    limit: int
    offset: int


class BillCreateResult(BaseModel):
    batch: Optional[InstallmentBatchOut] = None
    bills: List[BillOut]
    drift: Decimal = Field(Decimal("0.00"), description="Total menos a soma das parcelas")


# ===== DASHBOARD / CALENDAR =====

class BillSummary(BaseModel):
    pending_count: int
    overdue_count: int
    paid_count: int
    total_amount: Decimal
    pending_amount: Decimal
    overdue_amount: Decimal
    upcoming: List[BillOut]


class CalendarDay(BaseModel):
    day: date
    bills: List[BillOut]


class BillCalendar(BaseModel):
    year: int
    month: int
    days: List[CalendarDay]
