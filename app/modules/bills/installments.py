"""
Geração de parcelas para boletos e cheques parcelados

O valor total é dividido igualmente entre as parcelas (arredondado em
centavos, sem redistribuir o resto) e os vencimentos avançam mês a mês a
partir do primeiro vencimento.
"""

import calendar
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class Installment:
    number: int  # 1-based
    due_date: date
    amount: Decimal


def to_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def add_months(start: date, months: int) -> date:
    """Soma meses de calendário, limitando o dia ao último dia do mês de destino."""
    month = start.month - 1 + months
    year = start.year + month // 12
    month = month % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def generate_installments(total: Number, count: int, first_due_date: date) -> List[Installment]:
    """
    Gera `count` parcelas de `total / count`, uma por mês.

    A diferença de arredondamento em relação ao total não é corrigida;
    use installment_drift() para medi-la.
    """
    if count < 1:
        raise ValueError("A quantidade de parcelas deve ser pelo menos 1")

    total = Decimal(str(total))
    if total <= 0:
        raise ValueError("O valor total deve ser maior que zero")

    amount = to_money(total / count)
    if amount <= 0:
        raise ValueError(
            f"O valor {to_money(total)} não comporta {count} parcelas de pelo menos R$ 0,01"
        )
    return [
        Installment(number=i + 1, due_date=add_months(first_due_date, i), amount=amount)
        for i in range(count)
    ]


def installment_drift(total: Number, installments: Iterable[Installment]) -> Decimal:
    """Total menos a soma das parcelas (0.00 quando a divisão é exata)."""
    return to_money(total) - sum((i.amount for i in installments), Decimal("0.00"))


def apply_overrides(installments: List[Installment], overrides: Iterable) -> List[Installment]:
    """
    Substitui valor e/ou vencimento das parcelas indicadas.

    Cada override tem `number` (1-based) e opcionalmente `amount` e `due_date`.
    As demais parcelas não são recalculadas.
    """
    by_number = {i.number: i for i in installments}
    seen = set()

    for override in overrides:
        number = override.number
        if number not in by_number:
            raise ValueError(f"Parcela {number} não existe (1 a {len(installments)})")
        if number in seen:
            raise ValueError(f"Parcela {number} informada mais de uma vez")
        seen.add(number)

        amount: Optional[Decimal] = getattr(override, "amount", None)
        due_date: Optional[date] = getattr(override, "due_date", None)
        if amount is not None and to_money(amount) <= 0:
            raise ValueError(f"O valor da parcela {number} deve ser maior que zero")
        current = by_number[number]
        by_number[number] = replace(
            current,
            amount=to_money(amount) if amount is not None else current.amount,
            due_date=due_date or current.due_date,
        )

    return [by_number[i.number] for i in installments]


def installment_description(description: str, number: int, count: int) -> str:
    """Descrição da parcela; contas únicas não recebem sufixo."""
    if count <= 1:
        return description
    return f"{description} ({number}/{count})"
