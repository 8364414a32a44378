"""
Testes de Fornecedores e Tipos de Fornecedor

Cobrem normalização de telefone/CNPJ, isolamento por usuário,
bloqueio de exclusão por referência e auditoria.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from fastapi import HTTPException
from pydantic import ValidationError

from app.modules.audit.models import AuditLog, AuditAction
from app.modules.bills.models import Bill, BillStatus, PaymentType
from app.modules.suppliers.schemas import SupplierCreate, SupplierUpdate, SupplierTypeCreate
from app.modules.suppliers.service import SupplierService, SupplierTypeService


# ===== SCHEMAS =====

class TestSupplierSchemas:
    """Testes de validação dos esquemas"""

    def test_phone_and_cnpj_are_formatted(self):
        data = SupplierCreate(name="Distribuidora Sul", phone="11987654321", cnpj="12345678000195")
        assert data.phone == "(11)98765-4321"
        assert data.cnpj == "12.345.678/0001-95"

    def test_blank_optional_fields_become_none(self):
        data = SupplierCreate(name="Papelaria", email="  ", phone="", cnpj="")
        assert data.email is None
        assert data.phone is None
        assert data.cnpj is None

    def test_invalid_phone(self):
        with pytest.raises(ValidationError):
            SupplierCreate(name="X", phone="1234")

    def test_invalid_cnpj(self):
        with pytest.raises(ValidationError):
            SupplierCreate(name="X", cnpj="123")

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            SupplierCreate(name="X", email="sem-arroba")


# ===== SERVICES =====

class TestSupplierService:
    """Testes do serviço de fornecedores"""

    def test_create_and_audit(self, db_session, user_id):
        supplier = SupplierService(db_session).create_supplier(
            SupplierCreate(name="Gráfica Rápida", email="contato@grafica.com"), user_id
        )

        entry = db_session.query(AuditLog).filter(AuditLog.record_id == supplier.id).one()
        assert entry.action == AuditAction.CREATE
        assert entry.table_name == "suppliers"
        assert entry.new_values["name"] == "Gráfica Rápida"

    def test_update_audits_only_changed_fields(self, db_session, user_id):
        service = SupplierService(db_session)
        supplier = service.create_supplier(SupplierCreate(name="Antigo", email="a@b.com"), user_id)

        service.update_supplier(supplier.id, SupplierUpdate(name="Novo", email="a@b.com"), user_id)

        entry = db_session.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATE).one()
        assert entry.old_values == {"name": "Antigo"}
        assert entry.new_values == {"name": "Novo"}

    def test_search_and_type_filter(self, db_session, user_id):
        supplier_type = SupplierTypeService(db_session).create_type(SupplierTypeCreate(name="Serviços"), user_id)
        service = SupplierService(db_session)
        service.create_supplier(SupplierCreate(name="Limpeza Total", type_id=supplier_type.id), user_id)
        service.create_supplier(SupplierCreate(name="Mercado Central"), user_id)
        service.create_supplier(SupplierCreate(name="Limpeza de Outro"), uuid4())

        assert [s.name for s in service.get_suppliers(user_id, search="limpeza").items] == ["Limpeza Total"]
        assert service.get_suppliers(user_id, type_id=supplier_type.id).total == 1
        assert service.get_suppliers(user_id).total == 2

    def test_supplier_with_bills_cannot_be_deleted(self, db_session, user_id):
        service = SupplierService(db_session)
        supplier = service.create_supplier(SupplierCreate(name="Energia SA"), user_id)
        db_session.add(Bill(
            user_id=user_id, description="Luz", amount=Decimal("100.00"), due_date=date(2024, 1, 10),
            entry_date=date(2024, 1, 1), status=BillStatus.PENDING, payment_type=PaymentType.CONTA,
            supplier_id=supplier.id,
        ))
        db_session.commit()

        with pytest.raises(HTTPException) as exc:
            service.delete_supplier(supplier.id, user_id)

        assert exc.value.status_code == 409
        assert exc.value.detail == "Não é possível excluir este item pois está sendo usado."
        assert service.get_supplier(supplier.id, user_id).name == "Energia SA"

    def test_type_in_use_cannot_be_deleted(self, db_session, user_id):
        type_service = SupplierTypeService(db_session)
        supplier_type = type_service.create_type(SupplierTypeCreate(name="Materiais"), user_id)
        SupplierService(db_session).create_supplier(SupplierCreate(name="Loja", type_id=supplier_type.id), user_id)

        with pytest.raises(HTTPException) as exc:
            type_service.delete_type(supplier_type.id, user_id)

        assert exc.value.status_code == 409

    def test_unknown_type_is_rejected(self, db_session, user_id):
        with pytest.raises(HTTPException) as exc:
            SupplierService(db_session).create_supplier(SupplierCreate(name="Loja", type_id=uuid4()), user_id)
        assert exc.value.status_code == 404


# ===== API =====

class TestSuppliersAPI:
    """Testes dos endpoints de fornecedores"""

    def test_crud_flow(self, client, auth_headers):
        response = client.post("/supplier-types/", json={"name": "Serviços"}, headers=auth_headers)
        assert response.status_code == 201
        type_id = response.json()["id"]

        response = client.post("/suppliers/", json={
            "name": "Contabilidade ABC",
            "phone": "(11) 3333-4444",
            "cnpj": "12345678000195",
            "type_id": type_id,
        }, headers=auth_headers)
        assert response.status_code == 201
        supplier = response.json()
        assert supplier["phone"] == "(11)33334-444"
        assert supplier["supplier_type"]["name"] == "Serviços"

        listing = client.get("/suppliers/", headers=auth_headers).json()
        assert listing["total"] == 1

        response = client.delete(f"/suppliers/{supplier['id']}", headers=auth_headers)
        assert response.status_code == 204

        types = client.get("/supplier-types/", headers=auth_headers).json()
        assert [t["name"] for t in types] == ["Serviços"]

    def test_other_user_cannot_see_supplier(self, client, auth_headers, other_auth_headers):
        supplier = client.post("/suppliers/", json={"name": "Privado"}, headers=auth_headers).json()

        response = client.get(f"/suppliers/{supplier['id']}", headers=other_auth_headers)

        assert response.status_code == 404
