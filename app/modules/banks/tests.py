"""
Testes de Bancos
"""

import pytest
from datetime import date
from decimal import Decimal

from fastapi import HTTPException

from app.modules.audit.models import AuditLog, AuditAction
from app.modules.banks.schemas import BankCreate, BankUpdate
from app.modules.banks.service import BankService
from app.modules.bills.models import Bill, BillStatus, PaymentType


class TestBankService:
    """Testes do serviço de bancos"""

    def test_banks_are_listed_by_name(self, db_session, user_id):
        service = BankService(db_session)
        service.create_bank(BankCreate(name="Itaú"), user_id)
        service.create_bank(BankCreate(name="Bradesco"), user_id)

        result = service.get_banks(user_id)

        assert [b.name for b in result.items] == ["Bradesco", "Itaú"]
        assert result.total == 2

    def test_update_is_audited(self, db_session, user_id):
        service = BankService(db_session)
        bank = service.create_bank(BankCreate(name="Caixa"), user_id)

        service.update_bank(bank.id, BankUpdate(name="Caixa Econômica"), user_id)

        entry = db_session.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATE).one()
        assert entry.table_name == "banks"
        assert entry.old_values == {"name": "Caixa"}
        assert entry.new_values == {"name": "Caixa Econômica"}

    def test_bank_used_by_cheque_cannot_be_deleted(self, db_session, user_id):
        service = BankService(db_session)
        bank = service.create_bank(BankCreate(name="Santander"), user_id)
        db_session.add(Bill(
            user_id=user_id, description="Cheque", amount=Decimal("50.00"), due_date=date(2024, 2, 1),
            entry_date=date(2024, 1, 1), status=BillStatus.PENDING, payment_type=PaymentType.CHEQUE,
            bank_id=bank.id,
        ))
        db_session.commit()

        with pytest.raises(HTTPException) as exc:
            service.delete_bank(bank.id, user_id)

        assert exc.value.status_code == 409

    def test_blank_name_is_rejected(self):
        with pytest.raises(ValueError):
            BankCreate(name="   ")


class TestBanksAPI:
    """Testes dos endpoints de bancos"""

    def test_create_list_delete(self, client, auth_headers):
        response = client.post("/banks/", json={"name": "Nubank"}, headers=auth_headers)
        assert response.status_code == 201
        bank_id = response.json()["id"]

        assert client.get("/banks/", headers=auth_headers).json()["total"] == 1
        assert client.delete(f"/banks/{bank_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/banks/{bank_id}", headers=auth_headers).status_code == 404
