from pydantic import BaseModel, Field, field_validator
from typing import List
from uuid import UUID
from datetime import datetime


class BankBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nome do banco")

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Nome do banco é obrigatório')
        return v


class BankCreate(BankBase):
    pass


class BankUpdate(BankBase):
    pass


class BankOut(BankBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BankList(BaseModel):
    items: List[BankOut]
    total: int
