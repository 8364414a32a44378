"""
Testes do log de auditoria
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.modules.audit.models import AuditLog, AuditAction
from app.modules.audit.service import AuditLogger, AuditLogService, changed_fields, snapshot, to_jsonable
from app.modules.bills.models import BillStatus


class BrokenAuditLogger(AuditLogger):
    def _persist(self, entry):
        raise RuntimeError("connection lost")


class TestAuditHelpers:
    """Testes das funções auxiliares"""

    def test_to_jsonable(self):
        record_id = uuid4()
        assert to_jsonable(Decimal("10.50")) == "10.50"
        assert to_jsonable(date(2024, 1, 15)) == "2024-01-15"
        assert to_jsonable(record_id) == str(record_id)
        assert to_jsonable(BillStatus.PAID) == "paid"
        assert to_jsonable("texto") == "texto"

    def test_changed_fields(self):
        old = {"name": "A", "email": "a@x.com", "phone": None}
        new = {"name": "B", "email": "a@x.com", "phone": "(11)1234-5678"}

        assert changed_fields(old, new) == (
            {"name": "A", "phone": None},
            {"name": "B", "phone": "(11)1234-5678"},
        )

    def test_snapshot(self):
        class Record:
            name = "Banco"
            amount = Decimal("1.00")

        assert snapshot(Record(), ("name", "amount")) == {"name": "Banco", "amount": "1.00"}


class TestAuditLogger:
    """Testes da escrita best-effort"""

    def test_record_persists_entry(self, db_session, user_id):
        record_id = uuid4()

        entry = AuditLogger(db_session, user_id).record(
            "bills", record_id, AuditAction.STATUS_UPDATE, {"status": "pending"}, {"status": "paid"}
        )

        assert entry is not None
        stored = db_session.query(AuditLog).one()
        assert stored.record_id == record_id
        assert stored.user_id == user_id
        assert stored.action == AuditAction.STATUS_UPDATE
        assert stored.new_values == {"status": "paid"}

    def test_failure_is_swallowed(self, db_session, user_id):
        result = BrokenAuditLogger(db_session, user_id).record("bills", uuid4(), "update", {}, {})

        assert result is None
        assert db_session.query(AuditLog).count() == 0

    def test_missing_user_is_not_recorded(self, db_session):
        assert AuditLogger(db_session, None).record("bills", uuid4(), AuditAction.CREATE) is None
        assert db_session.query(AuditLog).count() == 0


class TestAuditLogService:
    """Testes da consulta"""

    def test_logs_are_scoped_and_filtered(self, db_session, user_id):
        logger = AuditLogger(db_session, user_id)
        logger.record("banks", uuid4(), AuditAction.CREATE, {}, {"name": "Itaú"})
        logger.record("suppliers", uuid4(), AuditAction.DELETE, {"name": "X"}, {})
        AuditLogger(db_session, uuid4()).record("banks", uuid4(), AuditAction.CREATE, {}, {"name": "Outro"})

        service = AuditLogService(db_session)

        assert service.get_logs(user_id)["total"] == 2
        banks = service.get_logs(user_id, table_name="banks")
        assert [e.new_values for e in banks["items"]] == [{"name": "Itaú"}]
        assert service.get_logs(user_id, action=AuditAction.DELETE)["total"] == 1

    def test_api_lists_own_entries(self, client, auth_headers):
        client.post("/banks/", json={"name": "Inter"}, headers=auth_headers)

        response = client.get("/audit-logs/", params={"table_name": "banks"}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["action"] == "create"
        assert body["items"][0]["new_values"] == {"name": "Inter"}
