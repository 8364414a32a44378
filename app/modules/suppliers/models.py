"""
Modelos SQLAlchemy de Fornecedores e Tipos de Fornecedor

Entidades de referência usadas pelas contas. A exclusão de um fornecedor
(ou tipo) ainda referenciado é barrada pelas FKs do banco, não pela aplicação.
"""

from app.database.database import Base
from app.common.mixins import BaseMixin
from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship


class SupplierType(Base, BaseMixin):
    """Classificação livre de fornecedores (ex.: Energia, Aluguel)"""
    __tablename__ = "supplier_types"

    name = Column(String(100), nullable=False, index=True)


class Supplier(Base, BaseMixin):
    """
    Fornecedores do usuário
    """
    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False, index=True)
    email = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    cnpj = Column(String(18), nullable=True)  # 00.000.000/0000-00
    type_id = Column(UUID(as_uuid=True), ForeignKey("supplier_types.id"), nullable=True, index=True)

    # Sem back_populates: o ORM não deve anular FKs ao excluir o tipo
    supplier_type = relationship("SupplierType")
