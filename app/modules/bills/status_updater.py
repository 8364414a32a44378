"""
Atualização de status de uma conta

Fluxo:
1. Rejeita de imediato se já houver uma atualização em andamento na sessão
2. Exige usuário autenticado
3. Carrega a conta e deriva o status atual (pending vencida conta como overdue)
4. Valida a transição; transições negadas não escrevem nada
5. Persiste o novo status (pedir o status já gravado é um no-op)
6. Registra a auditoria (best-effort: falhas não desfazem a atualização)
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Callable, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.common.errors import persistence_error
from app.modules.audit.models import AuditAction
from app.modules.audit.service import AuditLogger
from app.modules.auth.schemas import AuthContext
from app.modules.bills.models import Bill, BillStatus, bind_today_provider
from app.modules.bills.status import effective_status, validate_status_transition
from app.modules.security.session import UserSession

logger = logging.getLogger(__name__)

STATUS_UPDATE_OPERATION = "bill_status_update"


class BillStatusUpdater:
    """Atualiza o status de contas respeitando as transições permitidas"""

    def __init__(
        self,
        db: Session,
        session: UserSession,
        auth_context: Optional[AuthContext],
        today_provider: Callable[[], date] = date.today,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.db = db
        self.session = session
        self.auth_context = auth_context
        self.today_provider = today_provider
        self.audit_logger = audit_logger
        bind_today_provider(db, today_provider)

    @contextmanager
    def in_progress(self):
        """Flag da operação na sessão do usuário; liberada mesmo em caso de erro"""
        if not self.session.try_begin(STATUS_UPDATE_OPERATION):
            logger.warning(f"Status update already in progress for user {self.session.user_id}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Já existe uma atualização de status em andamento. Aguarde."
            )
        try:
            yield
        finally:
            self.session.end(STATUS_UPDATE_OPERATION)

    def update_status(
        self,
        bill_id: UUID,
        requested: BillStatus,
        on_success: Optional[Callable[[Bill], None]] = None,
    ) -> Bill:
        with self.in_progress():
            bill = self._update(bill_id, BillStatus(requested))

        if on_success:
            on_success(bill)
        return bill

    def _update(self, bill_id: UUID, requested: BillStatus) -> Bill:
        if self.auth_context is None or self.auth_context.user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Usuário não autenticado. Faça login novamente."
            )
        user_id = self.auth_context.user_id

        bill = self.db.query(Bill).filter(Bill.id == bill_id, Bill.user_id == user_id).first()
        if not bill:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conta não encontrada")

        current = self.check_transition(bill, requested)

        if requested == BillStatus(bill.status):
            logger.debug(f"Bill {bill_id} already {requested.value}, nothing to write")
            return bill

        try:
            bill.status = requested
            self.db.commit()
            self.db.refresh(bill)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating status of bill {bill_id}: {e}")
            raise persistence_error(e)

        self.record(bill, current, requested)
        return bill

    def check_transition(self, bill: Bill, requested: BillStatus, due_date: Optional[date] = None) -> BillStatus:
        """
        Deriva o status atual e valida a transição pedida.
        `due_date` substitui o vencimento gravado quando a mesma edição o altera.
        """
        current = effective_status(bill.status, due_date or bill.due_date, self.today_provider())
        transition = validate_status_transition(current, requested)
        if not transition.allowed:
            logger.info(f"Status transition denied for bill {bill.id}: {transition.reason}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=transition.reason)
        return current

    def record(self, bill: Bill, current: BillStatus, requested: BillStatus) -> None:
        audit_logger = self.audit_logger or AuditLogger(self.db, bill.user_id)
        audit_logger.record(
            "bills", bill.id, AuditAction.STATUS_UPDATE,
            {"status": current.value}, {"status": requested.value}
        )
        logger.info(f"Bill {bill.id} status changed: {current.value} -> {requested.value}")
