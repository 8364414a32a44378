"""
Testes do módulo de Contas a Pagar

Cobrem:
- Validador de transições de status e status derivado (vencida)
- Gerador de parcelas (divisão, vencimentos mensais, ajustes)
- Atualizador de status (auditoria best-effort, chamadas concorrentes)
- Serviço de contas (lotes, filtros, anexos, dashboard, calendário)
- Endpoints HTTP
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from fastapi import HTTPException

from app.database.database import SessionLocal
from app.modules.audit.models import AuditLog, AuditAction
from app.modules.audit.service import AuditLogger
from app.modules.auth.schemas import AuthContext
from app.modules.bills.installments import (
    Installment, add_months, generate_installments, installment_drift,
    apply_overrides, installment_description
)
from app.modules.bills.models import Bill, BillStatus, PaymentType, InstallmentBatch, BillInstallmentAttachment
from app.modules.bills.schemas import (
    BoletoBillCreate, ChequeBillCreate, ContaBillCreate, InstallmentOverride,
    BillUpdate, AttachmentCreate
)
from app.modules.bills.service import BillService, infer_content_type
from app.modules.bills.status import (
    validate_status_transition, effective_status, get_status_label
)
from app.modules.bills.status_updater import BillStatusUpdater, STATUS_UPDATE_OPERATION
from app.modules.security.session import UserSession, session_registry
from app.modules.suppliers.schemas import SupplierCreate
from app.modules.suppliers.service import SupplierService


TODAY = date.today()


# ===== FIXTURES =====

def make_bill(db, user_id, due_date=None, status=BillStatus.PENDING, amount="150.00", description="Conta de luz"):
    bill = Bill(
        user_id=user_id,
        description=description,
        amount=Decimal(amount),
        due_date=due_date or TODAY + timedelta(days=5),
        entry_date=TODAY,
        status=status,
        payment_type=PaymentType.CONTA,
    )
    db.add(bill)
    db.commit()
    db.refresh(bill)
    return bill


def audit_rows(db, record_id=None):
    query = db.query(AuditLog)
    if record_id is not None:
        query = query.filter(AuditLog.record_id == record_id)
    return query.all()


@pytest.fixture
def user_session(user_id):
    return UserSession(user_id, idle_timeout=600)


@pytest.fixture
def auth_context(user_id):
    return AuthContext(user_id=user_id, email="financeiro@example.com")


class FailingAuditLogger(AuditLogger):
    def _persist(self, entry):
        raise RuntimeError("audit store unavailable")


# ===== STATUS VALIDATOR =====

class TestStatusTransitions:
    """Testes do validador de transições"""

    @pytest.mark.parametrize("current,requested", [
        (BillStatus.PENDING, BillStatus.PAID),
        (BillStatus.PENDING, BillStatus.OVERDUE),
        (BillStatus.OVERDUE, BillStatus.PAID),
    ])
    def test_allowed_transitions(self, current, requested):
        result = validate_status_transition(current, requested)
        assert result.allowed is True
        assert result.reason is None

    @pytest.mark.parametrize("current,requested", [
        (BillStatus.OVERDUE, BillStatus.PENDING),
        (BillStatus.PAID, BillStatus.PENDING),
        (BillStatus.PAID, BillStatus.OVERDUE),
    ])
    def test_denied_transitions(self, current, requested):
        result = validate_status_transition(current, requested)
        assert result.allowed is False
        assert result.reason == f'Cannot change status from "{current.value}" to "{requested.value}"'

    @pytest.mark.parametrize("value", list(BillStatus))
    def test_same_status_is_allowed(self, value):
        assert validate_status_transition(value, value).allowed is True

    def test_accepts_raw_values(self):
        assert validate_status_transition("pending", "paid").allowed is True

    def test_effective_status_marks_past_due_pending_as_overdue(self):
        yesterday = TODAY - timedelta(days=1)
        assert effective_status(BillStatus.PENDING, yesterday, TODAY) == BillStatus.OVERDUE
        assert effective_status(BillStatus.PENDING, TODAY, TODAY) == BillStatus.PENDING
        assert effective_status(BillStatus.PAID, yesterday, TODAY) == BillStatus.PAID

    def test_status_labels(self):
        assert get_status_label(BillStatus.PENDING) == "Pendente"
        assert get_status_label(BillStatus.PAID) == "Paga"
        assert get_status_label(BillStatus.OVERDUE) == "Vencida"


# ===== INSTALLMENT GENERATOR =====

class TestInstallmentGenerator:
    """Testes do gerador de parcelas"""

    def test_even_split_with_monthly_due_dates(self):
        installments = generate_installments(Decimal("1200.00"), 3, date(2024, 1, 15))

        assert [i.number for i in installments] == [1, 2, 3]
        assert [i.amount for i in installments] == [Decimal("400.00")] * 3
        assert [i.due_date for i in installments] == [
            date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)
        ]
        assert installment_drift(Decimal("1200.00"), installments) == Decimal("0.00")

    def test_uneven_split_keeps_rounding_drift(self):
        installments = generate_installments(Decimal("100.00"), 3, date(2024, 1, 10))

        assert [i.amount for i in installments] == [Decimal("33.33")] * 3
        assert installment_drift(Decimal("100.00"), installments) == Decimal("0.01")

    def test_single_installment(self):
        installments = generate_installments(Decimal("89.90"), 1, date(2024, 5, 20))
        assert installments == [Installment(number=1, due_date=date(2024, 5, 20), amount=Decimal("89.90"))]

    def test_end_of_month_is_clamped(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 1, 31), 2) == date(2024, 3, 31)
        assert add_months(date(2024, 11, 15), 2) == date(2025, 1, 15)

    def test_due_dates_follow_first_date_not_previous_clamp(self):
        installments = generate_installments(Decimal("300.00"), 3, date(2024, 1, 31))
        assert [i.due_date for i in installments] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)
        ]

    def test_invalid_count(self):
        with pytest.raises(ValueError):
            generate_installments(Decimal("100.00"), 0, TODAY)

    def test_invalid_total(self):
        with pytest.raises(ValueError):
            generate_installments(Decimal("0"), 2, TODAY)

    def test_total_smaller_than_one_cent_per_installment(self):
        with pytest.raises(ValueError):
            generate_installments(Decimal("0.01"), 3, date(2024, 1, 10))

        assert [i.amount for i in generate_installments(Decimal("0.03"), 3, date(2024, 1, 10))] == [
            Decimal("0.01")
        ] * 3

    def test_override_rounding_to_zero_is_rejected(self):
        installments = generate_installments(Decimal("300.00"), 3, date(2024, 1, 10))
        with pytest.raises(ValueError):
            apply_overrides(installments, [InstallmentOverride(number=2, amount=Decimal("0.004"))])

    def test_overrides_replace_only_target_installment(self):
        installments = generate_installments(Decimal("300.00"), 3, date(2024, 1, 10))
        result = apply_overrides(installments, [
            InstallmentOverride(number=2, amount=Decimal("150.00"), due_date=date(2024, 2, 20))
        ])

        assert result[0] == installments[0]
        assert result[1].amount == Decimal("150.00")
        assert result[1].due_date == date(2024, 2, 20)
        assert result[2] == installments[2]

    def test_override_of_missing_installment(self):
        installments = generate_installments(Decimal("300.00"), 3, date(2024, 1, 10))
        with pytest.raises(ValueError):
            apply_overrides(installments, [InstallmentOverride(number=4, amount=Decimal("1.00"))])

    def test_installment_description(self):
        assert installment_description("Aluguel", 2, 3) == "Aluguel (2/3)"
        assert installment_description("Aluguel", 1, 1) == "Aluguel"


# ===== STATUS UPDATER =====

class TestBillStatusUpdater:
    """Testes do atualizador de status"""

    def test_pending_to_paid_is_persisted_and_audited(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id)

        updated = BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PAID)

        assert updated.status == BillStatus.PAID
        entries = audit_rows(db_session, bill.id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.STATUS_UPDATE
        assert entries[0].table_name == "bills"
        assert entries[0].old_values == {"status": "pending"}
        assert entries[0].new_values == {"status": "paid"}

    def test_paid_bill_cannot_go_back(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, status=BillStatus.PAID)

        with pytest.raises(HTTPException) as exc:
            BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PENDING)

        assert exc.value.status_code == 400
        assert exc.value.detail == 'Cannot change status from "paid" to "pending"'
        db_session.refresh(bill)
        assert bill.status == BillStatus.PAID
        assert audit_rows(db_session) == []

    def test_paid_to_paid_is_a_silent_noop(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, status=BillStatus.PAID)

        updated = BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PAID)

        assert updated.status == BillStatus.PAID
        assert audit_rows(db_session) == []

    def test_past_due_pending_is_treated_as_overdue(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, due_date=TODAY - timedelta(days=3))
        updater = BillStatusUpdater(db_session, user_session, auth_context)

        with pytest.raises(HTTPException) as exc:
            updater.update_status(bill.id, BillStatus.PENDING)
        assert exc.value.status_code == 400
        assert exc.value.detail == 'Cannot change status from "overdue" to "pending"'

        updater.update_status(bill.id, BillStatus.PAID)
        entry = audit_rows(db_session, bill.id)[0]
        assert entry.old_values == {"status": "overdue"}
        assert entry.new_values == {"status": "paid"}

    def test_requesting_overdue_corrects_stored_value(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, due_date=TODAY - timedelta(days=1))

        updated = BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.OVERDUE)

        assert updated.status == BillStatus.OVERDUE

    def test_injected_clock_drives_derived_status(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, due_date=date(2024, 3, 10))
        updater = BillStatusUpdater(
            db_session, user_session, auth_context, today_provider=lambda: date(2024, 3, 1)
        )

        updated = updater.update_status(bill.id, BillStatus.PENDING)

        assert updated.status == BillStatus.PENDING
        assert audit_rows(db_session) == []

    def test_audit_failure_does_not_undo_update(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id)
        updater = BillStatusUpdater(
            db_session, user_session, auth_context,
            audit_logger=FailingAuditLogger(db_session, user_id)
        )

        updated = updater.update_status(bill.id, BillStatus.PAID)

        assert updated.status == BillStatus.PAID
        other = SessionLocal()
        try:
            assert other.query(Bill).filter(Bill.id == bill.id).one().status == BillStatus.PAID
            assert other.query(AuditLog).count() == 0
        finally:
            other.close()

    def test_concurrent_call_is_rejected(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id)
        assert user_session.try_begin(STATUS_UPDATE_OPERATION)

        with pytest.raises(HTTPException) as exc:
            BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PAID)

        assert exc.value.status_code == 409
        db_session.refresh(bill)
        assert bill.status == BillStatus.PENDING
        assert user_session.is_busy(STATUS_UPDATE_OPERATION)

        user_session.end(STATUS_UPDATE_OPERATION)
        BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PAID)
        db_session.refresh(bill)
        assert bill.status == BillStatus.PAID

    def test_busy_flag_is_released_after_failure(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id, status=BillStatus.PAID)

        with pytest.raises(HTTPException):
            BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.OVERDUE)

        assert not user_session.is_busy(STATUS_UPDATE_OPERATION)

    def test_requires_authenticated_user(self, db_session, user_id, user_session):
        bill = make_bill(db_session, user_id)

        with pytest.raises(HTTPException) as exc:
            BillStatusUpdater(db_session, user_session, None).update_status(bill.id, BillStatus.PAID)

        assert exc.value.status_code == 401
        db_session.refresh(bill)
        assert bill.status == BillStatus.PENDING

    def test_other_users_bill_is_not_found(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, uuid4())

        with pytest.raises(HTTPException) as exc:
            BillStatusUpdater(db_session, user_session, auth_context).update_status(bill.id, BillStatus.PAID)

        assert exc.value.status_code == 404

    def test_on_success_receives_updated_bill(self, db_session, user_id, user_session, auth_context):
        bill = make_bill(db_session, user_id)
        seen = []

        BillStatusUpdater(db_session, user_session, auth_context).update_status(
            bill.id, BillStatus.PAID, on_success=seen.append
        )

        assert [b.id for b in seen] == [bill.id]


# ===== BILL SERVICE =====

class TestBillService:
    """Testes do serviço de contas"""

    def test_boleto_batch_creates_suffixed_installments(self, db_session, user_id):
        data = BoletoBillCreate(
            payment_type="boleto",
            description="Notebook",
            amount=Decimal("1200.00"),
            due_date=date(2024, 1, 15),
            installment_count=3,
        )

        result = BillService(db_session).create_bills(data, user_id)

        assert result.batch is not None
        assert result.batch.installment_count == 3
        assert result.drift == Decimal("0.00")
        assert [b.description for b in result.bills] == ["Notebook (1/3)", "Notebook (2/3)", "Notebook (3/3)"]
        assert [b.due_date for b in result.bills] == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)]
        assert all(b.batch_id == result.batch.id for b in result.bills)
        assert [b.installment_number for b in result.bills] == [1, 2, 3]
        # Lote + 3 contas
        assert len(audit_rows(db_session)) == 4

    def test_uneven_batch_reports_drift(self, db_session, user_id):
        data = BoletoBillCreate(
            payment_type="boleto", description="Curso", amount=Decimal("100.00"),
            due_date=TODAY, installment_count=3,
        )

        result = BillService(db_session).create_bills(data, user_id)

        assert result.drift == Decimal("0.01")
        assert sum(b.amount for b in result.bills) == Decimal("99.99")

    def test_single_bill_has_no_batch_or_suffix(self, db_session, user_id):
        data = ContaBillCreate(payment_type="conta", description="Internet", amount=Decimal("99.90"), due_date=TODAY)

        result = BillService(db_session).create_bills(data, user_id)

        assert result.batch is None
        assert len(result.bills) == 1
        bill = result.bills[0]
        assert bill.description == "Internet"
        assert bill.batch_id is None
        assert bill.installment_number is None
        assert bill.entry_date == TODAY
        assert bill.status == BillStatus.PENDING

    def test_cheque_with_overrides_and_attachment(self, db_session, user_id):
        data = ChequeBillCreate(
            payment_type="cheque",
            description="Fornecedor de peças",
            amount=Decimal("300.00"),
            due_date=date(2024, 4, 5),
            installment_count=2,
            check_number="000123",
            account_holder="Oficina Silva",
            installments=[
                InstallmentOverride(number=2, amount=Decimal("120.00"),
                                    attachment_path=f"{user_id}/cheque-2.jpg"),
            ],
        )

        result = BillService(db_session).create_bills(data, user_id)

        first, second = result.bills
        assert first.amount == Decimal("150.00")
        assert second.amount == Decimal("120.00")
        assert result.drift == Decimal("30.00")
        assert second.check_number == "000123"
        attachments = db_session.query(BillInstallmentAttachment).filter(
            BillInstallmentAttachment.bill_id == second.id
        ).all()
        assert len(attachments) == 1
        assert attachments[0].file_type == "image/jpeg"
        assert attachments[0].file_name == "cheque-2.jpg"
        assert attachments[0].installment_number == 2

    def test_foreign_attachment_path_is_forbidden(self, db_session, user_id):
        data = ContaBillCreate(
            payment_type="conta", description="Água", amount=Decimal("80.00"), due_date=TODAY,
            attachment_path=f"{uuid4()}/boleto.pdf",
        )

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).create_bills(data, user_id)

        assert exc.value.status_code == 403
        assert db_session.query(Bill).count() == 0

    def test_supplier_of_other_user_is_rejected(self, db_session, user_id):
        supplier = SupplierService(db_session).create_supplier(SupplierCreate(name="Alheio"), uuid4())
        data = ContaBillCreate(
            payment_type="conta", description="Água", amount=Decimal("80.00"), due_date=TODAY,
            supplier_id=supplier.id,
        )

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).create_bills(data, user_id)

        assert exc.value.status_code == 404

    def test_list_filters_by_derived_status(self, db_session, user_id):
        late = make_bill(db_session, user_id, due_date=TODAY - timedelta(days=2), description="Atrasada")
        upcoming = make_bill(db_session, user_id, due_date=TODAY + timedelta(days=2), description="Em dia")
        make_bill(db_session, user_id, status=BillStatus.PAID, description="Quitada")
        make_bill(db_session, uuid4(), due_date=TODAY - timedelta(days=2), description="Outro usuário")
        service = BillService(db_session)

        overdue = service.get_bills(user_id, status_filter=BillStatus.OVERDUE)
        pending = service.get_bills(user_id, status_filter=BillStatus.PENDING)

        assert [b.id for b in overdue.items] == [late.id]
        assert overdue.items[0].status == BillStatus.OVERDUE
        assert [b.id for b in pending.items] == [upcoming.id]
        assert service.get_bills(user_id).total == 3

    def test_list_search_and_date_range(self, db_session, user_id):
        supplier = SupplierService(db_session).create_supplier(SupplierCreate(name="Eletropaulo"), user_id)
        bill = make_bill(db_session, user_id, due_date=date(2024, 6, 10), description="Energia")
        bill.supplier_id = supplier.id
        db_session.commit()
        make_bill(db_session, user_id, due_date=date(2024, 7, 10), description="Aluguel")
        service = BillService(db_session)

        assert [b.id for b in service.get_bills(user_id, search="eletro").items] == [bill.id]
        in_june = service.get_bills(user_id, start_date=date(2024, 6, 1), end_date=date(2024, 6, 30))
        assert [b.id for b in in_june.items] == [bill.id]

    def test_list_is_ordered_by_due_date(self, db_session, user_id):
        later = make_bill(db_session, user_id, due_date=TODAY + timedelta(days=20))
        sooner = make_bill(db_session, user_id, due_date=TODAY + timedelta(days=1))

        items = BillService(db_session).get_bills(user_id).items

        assert [b.id for b in items] == [sooner.id, later.id]

    def test_update_routes_status_through_validator(self, db_session, user_id):
        bill = make_bill(db_session, user_id, status=BillStatus.PAID)

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).update_bill(bill.id, BillUpdate(status=BillStatus.PENDING), user_id)

        assert exc.value.status_code == 400

    def test_update_records_changed_fields(self, db_session, user_id):
        bill = make_bill(db_session, user_id, amount="150.00")

        BillService(db_session).update_bill(
            bill.id, BillUpdate(amount=Decimal("175.50"), description="Conta de luz"), user_id
        )

        entry = audit_rows(db_session, bill.id)[0]
        assert entry.action == AuditAction.UPDATE
        assert entry.old_values == {"amount": "150.00"}
        assert entry.new_values == {"amount": "175.50"}

    def test_cheque_fields_require_cheque(self, db_session, user_id):
        bill = make_bill(db_session, user_id)

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).update_bill(bill.id, BillUpdate(check_number="123"), user_id)

        assert exc.value.status_code == 400

    def test_sub_cent_installments_are_rejected(self, db_session, user_id):
        data = BoletoBillCreate(
            payment_type="boleto", description="Taxa", amount=Decimal("0.01"),
            due_date=TODAY, installment_count=3,
        )

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).create_bills(data, user_id)

        assert exc.value.status_code == 400
        assert db_session.query(Bill).count() == 0

    def test_update_status_is_audited_as_status_update(self, db_session, user_id, user_session):
        bill = make_bill(db_session, user_id, due_date=TODAY - timedelta(days=3), amount="150.00")

        BillService(db_session).update_bill(
            bill.id, BillUpdate(status=BillStatus.PAID, amount=Decimal("160.00")), user_id, user_session
        )

        db_session.refresh(bill)
        assert bill.status == BillStatus.PAID
        entries = {entry.action: entry for entry in audit_rows(db_session, bill.id)}
        assert set(entries) == {AuditAction.UPDATE, AuditAction.STATUS_UPDATE}
        assert entries[AuditAction.UPDATE].new_values == {"amount": "160.00"}
        assert entries[AuditAction.STATUS_UPDATE].old_values == {"status": "overdue"}
        assert entries[AuditAction.STATUS_UPDATE].new_values == {"status": "paid"}
        assert not user_session.is_busy(STATUS_UPDATE_OPERATION)

    def test_update_with_status_waits_for_running_status_update(self, db_session, user_id, user_session):
        bill = make_bill(db_session, user_id, amount="150.00")
        assert user_session.try_begin(STATUS_UPDATE_OPERATION)

        with pytest.raises(HTTPException) as exc:
            BillService(db_session).update_bill(
                bill.id, BillUpdate(status=BillStatus.PAID, amount=Decimal("99.00")), user_id, user_session
            )

        assert exc.value.status_code == 409
        db_session.refresh(bill)
        assert bill.status == BillStatus.PENDING
        assert bill.amount == Decimal("150.00")
        assert audit_rows(db_session, bill.id) == []

    def test_update_without_status_ignores_status_flag(self, db_session, user_id, user_session):
        bill = make_bill(db_session, user_id)
        assert user_session.try_begin(STATUS_UPDATE_OPERATION)

        BillService(db_session).update_bill(bill.id, BillUpdate(description="Conta de água"), user_id, user_session)

        db_session.refresh(bill)
        assert bill.description == "Conta de água"

    def test_update_status_uses_edited_due_date(self, db_session, user_id, user_session):
        bill = make_bill(db_session, user_id, due_date=TODAY - timedelta(days=3))
        service = BillService(db_session)

        with pytest.raises(HTTPException) as exc:
            service.update_bill(bill.id, BillUpdate(status=BillStatus.PENDING), user_id, user_session)
        assert exc.value.status_code == 400

        updated = service.update_bill(
            bill.id, BillUpdate(status=BillStatus.PENDING, due_date=TODAY + timedelta(days=10)),
            user_id, user_session
        )

        assert updated.due_date == TODAY + timedelta(days=10)
        assert updated.status == BillStatus.PENDING
        assert updated.display_status == BillStatus.PENDING

    def test_displayed_status_follows_injected_clock(self, db_session, user_id):
        bill = make_bill(db_session, user_id, due_date=TODAY + timedelta(days=5))
        service = BillService(db_session, today_provider=lambda: TODAY + timedelta(days=30))

        overdue = service.get_bills(user_id, status_filter=BillStatus.OVERDUE)

        assert [b.id for b in overdue.items] == [bill.id]
        assert overdue.items[0].status == BillStatus.OVERDUE
        assert overdue.items[0].status_label == get_status_label(BillStatus.OVERDUE)
        assert service.get_summary(user_id).overdue_count == 1

    def test_deleting_last_installment_removes_batch(self, db_session, user_id):
        service = BillService(db_session)
        result = service.create_bills(BoletoBillCreate(
            payment_type="boleto", description="TV", amount=Decimal("200.00"),
            due_date=TODAY, installment_count=2,
        ), user_id)
        batch_id = result.batch.id
        first_id, second_id = [b.id for b in result.bills]

        service.delete_bill(first_id, user_id)
        assert db_session.query(InstallmentBatch).filter(InstallmentBatch.id == batch_id).count() == 1

        service.delete_bill(second_id, user_id)
        assert db_session.query(InstallmentBatch).filter(InstallmentBatch.id == batch_id).count() == 0
        assert db_session.query(Bill).count() == 0

    def test_delete_batch_removes_all_installments(self, db_session, user_id):
        service = BillService(db_session)
        result = service.create_bills(BoletoBillCreate(
            payment_type="boleto", description="Geladeira", amount=Decimal("900.00"),
            due_date=TODAY, installment_count=3,
        ), user_id)

        service.delete_batch(result.batch.id, user_id)

        assert db_session.query(Bill).count() == 0
        deletes = [e for e in audit_rows(db_session) if e.action == AuditAction.DELETE]
        assert len(deletes) == 4

    def test_attachment_targets_sibling_installment(self, db_session, user_id):
        service = BillService(db_session)
        result = service.create_bills(BoletoBillCreate(
            payment_type="boleto", description="Sofá", amount=Decimal("600.00"),
            due_date=TODAY, installment_count=3,
        ), user_id)
        first = result.bills[0]

        attachment = service.add_attachment(
            first.id, AttachmentCreate(installment_number=3, attachment_path=f"{user_id}/sofa-3.pdf"), user_id
        )

        assert attachment.bill_id == result.bills[2].id
        assert attachment.installment_number == 3
        assert attachment.file_type == "application/pdf"

        with pytest.raises(HTTPException) as exc:
            service.add_attachment(
                first.id, AttachmentCreate(installment_number=4, attachment_path=f"{user_id}/x.pdf"), user_id
            )
        assert exc.value.status_code == 400

    def test_payment_proof_requires_own_prefix(self, db_session, user_id):
        bill = make_bill(db_session, user_id)
        service = BillService(db_session)

        with pytest.raises(HTTPException) as exc:
            service.set_payment_proof(bill.id, "outro/comprovante.pdf", user_id)
        assert exc.value.status_code == 403

        updated = service.set_payment_proof(bill.id, f"{user_id}/comprovante.pdf", user_id)
        assert updated.payment_proof_path == f"{user_id}/comprovante.pdf"

    def test_summary_counts_derived_statuses(self, db_session, user_id):
        make_bill(db_session, user_id, due_date=TODAY - timedelta(days=1), amount="10.00")
        make_bill(db_session, user_id, due_date=TODAY + timedelta(days=3), amount="20.00")
        make_bill(db_session, user_id, due_date=TODAY + timedelta(days=30), amount="30.00")
        make_bill(db_session, user_id, status=BillStatus.PAID, amount="40.00")

        summary = BillService(db_session).get_summary(user_id)

        assert summary.overdue_count == 1
        assert summary.pending_count == 2
        assert summary.paid_count == 1
        assert summary.total_amount == Decimal("100.00")
        assert [b.due_date for b in summary.upcoming] == [TODAY + timedelta(days=3)]

    def test_calendar_groups_by_due_date(self, db_session, user_id):
        make_bill(db_session, user_id, due_date=date(2024, 2, 10))
        make_bill(db_session, user_id, due_date=date(2024, 2, 10))
        make_bill(db_session, user_id, due_date=date(2024, 2, 29))
        make_bill(db_session, user_id, due_date=date(2024, 3, 1))

        result = BillService(db_session).get_calendar(user_id, 2024, 2)

        assert [d.day for d in result.days] == [date(2024, 2, 10), date(2024, 2, 29)]
        assert [len(d.bills) for d in result.days] == [2, 1]

    def test_infer_content_type(self):
        assert infer_content_type("u/a.PDF") == "application/pdf"
        assert infer_content_type("u/a.jpeg") == "image/jpeg"
        assert infer_content_type("u/a.png") == "image/png"
        assert infer_content_type("u/planilha.xlsx") == "application/octet-stream"
        assert infer_content_type("u/sem-extensao") == "application/octet-stream"


# ===== API =====

class TestBillsAPI:
    """Testes dos endpoints de contas"""

    def test_requires_authentication(self, client):
        response = client.get("/bills/")
        assert response.status_code == 401

    def test_create_pay_and_reject_reopen(self, client, auth_headers):
        response = client.post("/bills/", json={
            "payment_type": "boleto",
            "description": "Impressora",
            "amount": "1200.00",
            "due_date": (TODAY + timedelta(days=1)).isoformat(),
            "installment_count": 3,
        }, headers=auth_headers)
        assert response.status_code == 201
        created = response.json()
        assert len(created["bills"]) == 3
        assert Decimal(created["drift"]) == Decimal("0")
        bill_id = created["bills"][0]["id"]

        response = client.patch(f"/bills/{bill_id}/status", json={"status": "paid"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        assert response.json()["status_label"] == "Paga"

        response = client.patch(f"/bills/{bill_id}/status", json={"status": "pending"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == 'Cannot change status from "paid" to "pending"'

    def test_invalid_payment_type_is_rejected(self, client, auth_headers):
        response = client.post("/bills/", json={
            "payment_type": "pix", "description": "X", "amount": "10.00", "due_date": TODAY.isoformat(),
        }, headers=auth_headers)
        assert response.status_code == 422

    def test_detail_shows_siblings_and_derived_status(self, client, auth_headers):
        created = client.post("/bills/", json={
            "payment_type": "cheque",
            "description": "Reforma",
            "amount": "500.00",
            "due_date": (TODAY - timedelta(days=40)).isoformat(),
            "installment_count": 2,
        }, headers=auth_headers).json()
        bill_id = created["bills"][0]["id"]

        response = client.get(f"/bills/{bill_id}", headers=auth_headers)

        assert response.status_code == 200
        detail = response.json()
        assert detail["status"] == "overdue"
        assert detail["stored_status"] == "pending"
        assert detail["batch"]["installment_count"] == 2
        assert [i["installment_number"] for i in detail["installments"]] == [1, 2]

    def test_other_user_cannot_read_bill(self, client, auth_headers, other_auth_headers):
        created = client.post("/bills/", json={
            "payment_type": "conta", "description": "Gás", "amount": "60.00", "due_date": TODAY.isoformat(),
        }, headers=auth_headers).json()

        response = client.get(f"/bills/{created['bills'][0]['id']}", headers=other_auth_headers)

        assert response.status_code == 404

    def test_list_summary_and_calendar(self, client, auth_headers):
        client.post("/bills/", json={
            "payment_type": "conta", "description": "Condomínio", "amount": "450.00",
            "due_date": (TODAY + timedelta(days=2)).isoformat(),
        }, headers=auth_headers)

        listing = client.get("/bills/", params={"status": "pending"}, headers=auth_headers)
        assert listing.status_code == 200
        assert listing.json()["total"] == 1

        summary = client.get("/bills/summary", headers=auth_headers)
        assert summary.status_code == 200
        assert summary.json()["pending_count"] == 1
        assert len(summary.json()["upcoming"]) == 1

        due = TODAY + timedelta(days=2)
        calendar = client.get("/bills/calendar", params={"year": due.year, "month": due.month}, headers=auth_headers)
        assert calendar.status_code == 200
        assert calendar.json()["days"][0]["day"] == due.isoformat()

    def test_attachment_and_delete_flow(self, client, auth_headers, user_id):
        created = client.post("/bills/", json={
            "payment_type": "conta", "description": "IPTU", "amount": "300.00", "due_date": TODAY.isoformat(),
        }, headers=auth_headers).json()
        bill_id = created["bills"][0]["id"]

        response = client.post(f"/bills/{bill_id}/attachments", json={
            "attachment_path": f"{user_id}/iptu.png",
        }, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["file_type"] == "image/png"

        response = client.post(f"/bills/{bill_id}/attachments", json={
            "attachment_path": "someone-else/iptu.png",
        }, headers=auth_headers)
        assert response.status_code == 403

        assert client.delete(f"/bills/{bill_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/bills/{bill_id}", headers=auth_headers).status_code == 404

    def test_idle_session_expires(self, client, auth_headers, user_id):
        assert client.get("/bills/", headers=auth_headers).status_code == 200
        session = session_registry.get(user_id)
        session.last_activity -= session.idle_timeout + 1

        response = client.get("/bills/", headers=auth_headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Sessão expirada por inatividade. Faça login novamente."

        assert client.get("/bills/", headers=auth_headers).status_code == 200

    def test_edit_with_status_is_rejected_while_status_update_runs(self, client, auth_headers, user_id):
        created = client.post("/bills/", json={
            "payment_type": "conta", "description": "Água", "amount": "80.00", "due_date": TODAY.isoformat(),
        }, headers=auth_headers).json()
        bill_id = created["bills"][0]["id"]
        session = session_registry.get(user_id)
        assert session.try_begin(STATUS_UPDATE_OPERATION)

        assert client.patch(f"/bills/{bill_id}/status", json={"status": "paid"}, headers=auth_headers).status_code == 409
        response = client.patch(f"/bills/{bill_id}", json={"status": "paid"}, headers=auth_headers)
        assert response.status_code == 409

        session.end(STATUS_UPDATE_OPERATION)
        response = client.patch(f"/bills/{bill_id}", json={"status": "paid"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "paid"

        logs = client.get("/audit-logs/", params={"table_name": "bills"}, headers=auth_headers).json()
        actions = [entry["action"] for entry in logs["items"]]
        assert "status_update" in actions
        assert "update" not in actions
