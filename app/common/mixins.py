"""
Mixins comuns para os modelos por usuário (dono dos registros)
"""
from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from uuid import uuid4


class OwnerMixin:
    """Mixin que adiciona user_id e garante o isolamento por dono"""

    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BaseMixin(OwnerMixin, TimestampMixin):
    """Combina dono e timestamps para a maioria dos modelos de negócio"""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, index=True)
