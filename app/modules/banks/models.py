"""
Modelo SQLAlchemy de Bancos

Bancos são referenciados pelas contas pagas em cheque.
"""

from app.database.database import Base
from app.common.mixins import BaseMixin
from sqlalchemy import Column, String


class Bank(Base, BaseMixin):
    __tablename__ = "banks"

    name = Column(String(100), nullable=False, index=True)
