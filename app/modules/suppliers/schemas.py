"""
Esquemas Pydantic para Fornecedores e Tipos de Fornecedor
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.common.validators import (
    validate_brazil_phone, format_brazil_phone, validate_cnpj, format_cnpj
)


# ===== SUPPLIER TYPE SCHEMAS =====

class SupplierTypeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nome do tipo")

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Nome do tipo é obrigatório')
        return v


class SupplierTypeCreate(SupplierTypeBase):
    pass


class SupplierTypeUpdate(SupplierTypeBase):
    pass


class SupplierTypeOut(SupplierTypeBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ===== SUPPLIER SCHEMAS =====

class SupplierBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Nome do fornecedor")
    email: Optional[str] = Field(None, max_length=100, description="E-mail do fornecedor")
    phone: Optional[str] = Field(None, max_length=20, description="Telefone (DDD + número)")
    address: Optional[str] = Field(None, description="Endereço")
    cnpj: Optional[str] = Field(None, max_length=18, description="CNPJ")
    type_id: Optional[UUID] = Field(None, description="Tipo de fornecedor")

    @field_validator('email', 'phone', 'address', 'cnpj', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v:
            # Validação básica de e-mail
            if '@' not in v or '.' not in v:
                raise ValueError('E-mail inválido. Verifique o formato do e-mail.')
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None:
            return v
        if not validate_brazil_phone(v):
            raise ValueError('Telefone deve ter DDD + 8 ou 9 dígitos')
        return format_brazil_phone(v)

    @field_validator('cnpj')
    @classmethod
    def validate_cnpj_field(cls, v):
        if v is None:
            return v
        if not validate_cnpj(v):
            raise ValueError('CNPJ deve conter 14 dígitos')
        return format_cnpj(v)


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(SupplierBase):
    pass


class SupplierOut(SupplierBase):
    id: UUID
    supplier_type: Optional[SupplierTypeOut] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SupplierList(BaseModel):
    items: List[SupplierOut]
    total: int
    limit: int
    offset: int
