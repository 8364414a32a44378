"""
Serviço de negócio de Bancos
"""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.common.errors import persistence_error
from app.modules.audit.models import AuditAction
from app.modules.audit.service import AuditLogger
from app.modules.banks.models import Bank
from app.modules.banks.schemas import BankCreate, BankUpdate, BankList

logger = logging.getLogger(__name__)


class BankService:
    """Serviço para gestão de bancos"""

    def __init__(self, db: Session):
        self.db = db

    def get_banks(self, user_id: UUID) -> BankList:
        banks = self.db.query(Bank).filter(Bank.user_id == user_id).order_by(Bank.name).all()
        return BankList(items=banks, total=len(banks))

    def get_bank(self, bank_id: UUID, user_id: UUID) -> Bank:
        bank = self.db.query(Bank).filter(Bank.id == bank_id, Bank.user_id == user_id).first()
        if not bank:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Banco não encontrado")
        return bank

    def create_bank(self, data: BankCreate, user_id: UUID) -> Bank:
        try:
            bank = Bank(name=data.name, user_id=user_id)
            self.db.add(bank)
            self.db.commit()
            self.db.refresh(bank)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating bank: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record("banks", bank.id, AuditAction.CREATE, {}, {"name": bank.name})
        return bank

    def update_bank(self, bank_id: UUID, data: BankUpdate, user_id: UUID) -> Bank:
        bank = self.get_bank(bank_id, user_id)
        old_name = bank.name
        try:
            bank.name = data.name
            self.db.commit()
            self.db.refresh(bank)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating bank {bank_id}: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record(
            "banks", bank.id, AuditAction.UPDATE, {"name": old_name}, {"name": bank.name}
        )
        return bank

    def delete_bank(self, bank_id: UUID, user_id: UUID) -> None:
        """Excluir banco; falha se houver cheques vinculados"""
        bank = self.get_bank(bank_id, user_id)
        old_values = {"name": bank.name}
        try:
            self.db.delete(bank)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting bank {bank_id}: {e}")
            raise persistence_error(e)

        AuditLogger(self.db, user_id).record("banks", bank_id, AuditAction.DELETE, old_values, {})
