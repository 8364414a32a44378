"""
Regras de transição de status das contas

Funções puras, sem I/O: podem ser usadas tanto pelo serviço quanto pela
apresentação (listas, calendário, dashboard).
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.modules.bills.models import BillStatus

VALID_TRANSITIONS = {
    BillStatus.PENDING: {BillStatus.PAID, BillStatus.OVERDUE},
    BillStatus.OVERDUE: {BillStatus.PAID},
    BillStatus.PAID: set(),  # Contas pagas não mudam mais de status
}

STATUS_LABELS = {
    BillStatus.PENDING: "Pendente",
    BillStatus.PAID: "Paga",
    BillStatus.OVERDUE: "Vencida",
}


@dataclass(frozen=True)
class StatusTransition:
    current: BillStatus
    requested: BillStatus
    allowed: bool
    reason: Optional[str] = None


def validate_status_transition(current: BillStatus, requested: BillStatus) -> StatusTransition:
    """
    Valida se a transição de status é permitida.
    Pedir o mesmo status é sempre permitido (no-op).
    """
    current = BillStatus(current)
    requested = BillStatus(requested)

    if current == requested:
        return StatusTransition(current, requested, True)

    if requested in VALID_TRANSITIONS.get(current, set()):
        return StatusTransition(current, requested, True)

    return StatusTransition(
        current,
        requested,
        False,
        f'Cannot change status from "{current.value}" to "{requested.value}"'
    )


def effective_status(status: BillStatus, due_date: date, today: date) -> BillStatus:
    """
    Status apresentado ao usuário.
    Uma conta pendente com vencimento anterior a hoje é apresentada como vencida,
    mesmo que o valor gravado ainda seja pending.
    """
    status = BillStatus(status)
    if status == BillStatus.PENDING and due_date < today:
        return BillStatus.OVERDUE
    return status


def get_status_label(status: BillStatus) -> str:
    status = BillStatus(status)
    return STATUS_LABELS.get(status, status.value)
