from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal, ROUND_DOWN
from typing import Iterable, Sequence

from app.models.installment import Installment
from app.schemas.common import InstallmentFrequency, InstallmentStatus
from app.schemas.contract import InstallmentPlanEntry
from app.services.lifecycle_errors import AlreadyPaid, AmendmentConflict, NotFound, ValidationError


TWOPLACES = Decimal("0.01")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_months(frequency: InstallmentFrequency | str) -> int:
    return InstallmentFrequency(frequency).months


def compute_end_date(start_date: date, duration_periods: int, frequency: InstallmentFrequency | str) -> date:
    return _add_months(start_date, duration_periods * period_months(frequency))


def due_date_for(start_date: date, sequence_number: int, frequency: InstallmentFrequency | str) -> date:
    # Offsets are taken from the start date so month-end clamping never accumulates.
    return _add_months(start_date, sequence_number * period_months(frequency))


def _apportion(total: Decimal, slots: int) -> list[Decimal]:
    share = (total / Decimal(slots)).quantize(TWOPLACES, rounding=ROUND_DOWN)
    amounts = [share] * slots
    amounts[-1] = (total - share * (slots - 1)).quantize(TWOPLACES)
    return amounts


def build_installment_plan(
    total: Decimal,
    duration_periods: int,
    start_date: date,
    frequency: InstallmentFrequency | str = InstallmentFrequency.MONTHLY,
) -> list[InstallmentPlanEntry]:
    """Split ``total`` into ``duration_periods`` installments.

    Shares are equal in minor currency units; the rounding remainder is carried
    by the last installment so the amounts always add up to ``total``. The
    k-th installment is due ``k`` periods after ``start_date``.
    """
    total = _as_decimal(total)
    if duration_periods is None or duration_periods <= 0:
        raise ValidationError("duration_periods must be >= 1", {"duration_periods": duration_periods})
    if total <= 0:
        raise ValidationError("total_contract_amount must be positive", {"total_contract_amount": str(total)})
    if total != total.quantize(TWOPLACES):
        raise ValidationError(
            "total_contract_amount must not exceed two decimal places",
            {"total_contract_amount": str(total)},
        )
    if total < TWOPLACES * duration_periods:
        raise ValidationError(
            "total_contract_amount is too small to give every installment a non-zero amount",
            {"total_contract_amount": str(total), "duration_periods": duration_periods},
        )

    amounts = _apportion(total, duration_periods)
    return [
        InstallmentPlanEntry(
            sequence_number=sequence,
            due_date=due_date_for(start_date, sequence, frequency),
            amount=amount,
        )
        for sequence, amount in zip(range(1, duration_periods + 1), amounts)
    ]


def paid_total(installments: Iterable[Installment]) -> Decimal:
    return sum(
        (_as_decimal(item.amount_due) for item in installments if item.status == InstallmentStatus.PAID.value),
        Decimal("0.00"),
    )


def scheduled_total(installments: Iterable[Installment]) -> Decimal:
    return sum((_as_decimal(item.amount_due) for item in installments), Decimal("0.00"))


def plan_amendment(
    installments: Sequence[Installment],
    total: Decimal,
    duration_periods: int,
    start_date: date,
    frequency: InstallmentFrequency | str = InstallmentFrequency.MONTHLY,
) -> list[InstallmentPlanEntry]:
    """Plan the unpaid part of an amended schedule.

    Paid installments are kept as they are. ``total`` minus what was already
    paid is re-apportioned over every sequence slot in ``1..duration_periods``
    that is not paid. Returns only the entries for those unpaid slots.
    """
    total = _as_decimal(total)
    if duration_periods is None or duration_periods <= 0:
        raise ValidationError("duration_periods must be >= 1", {"duration_periods": duration_periods})

    paid = [item for item in installments if item.status == InstallmentStatus.PAID.value]
    already_paid = paid_total(paid)
    if total < already_paid:
        raise AmendmentConflict(
            "New contract total is below the amount already paid",
            {"total_contract_amount": str(total), "paid_amount": str(already_paid)},
        )

    paid_sequences = {item.sequence_number for item in paid}
    dropped = sorted(seq for seq in paid_sequences if seq > duration_periods)
    if dropped:
        raise AmendmentConflict(
            "New duration would drop installments that are already paid",
            {"duration_periods": duration_periods, "paid_sequences": dropped},
        )

    open_slots = [seq for seq in range(1, duration_periods + 1) if seq not in paid_sequences]
    remainder = (total - already_paid).quantize(TWOPLACES)
    if not open_slots:
        if remainder > 0:
            raise AmendmentConflict(
                "No unpaid installment is left to carry the remaining amount",
                {"remaining_amount": str(remainder)},
            )
        return []
    if remainder <= 0:
        raise AmendmentConflict(
            "Nothing is left to apportion across the unpaid installments",
            {"unpaid_sequences": open_slots},
        )
    if remainder < TWOPLACES * len(open_slots):
        raise AmendmentConflict(
            "Remaining amount is too small to give every unpaid installment a non-zero amount",
            {"remaining_amount": str(remainder), "unpaid_sequences": open_slots},
        )

    amounts = _apportion(remainder, len(open_slots))
    return [
        InstallmentPlanEntry(
            sequence_number=sequence,
            due_date=due_date_for(start_date, sequence, frequency),
            amount=amount,
        )
        for sequence, amount in zip(open_slots, amounts)
    ]


def find_installment(installments: Iterable[Installment], sequence_number: int) -> Installment:
    for item in installments:
        if item.sequence_number == sequence_number:
            return item
    raise NotFound(
        f"Installment {sequence_number} does not belong to this contract",
        {"installment_seq": sequence_number},
    )


def mark_paid(
    installments: Iterable[Installment],
    sequence_number: int,
    paid_at: datetime,
    *,
    recorded_by=None,
) -> Installment:
    installment = find_installment(installments, sequence_number)
    if installment.status == InstallmentStatus.PAID.value:
        raise AlreadyPaid(
            f"Installment {sequence_number} is already paid",
            {"installment_seq": sequence_number, "paid_at": installment.paid_at},
        )
    # Paying an overdue installment clears the overdue flag regardless of lateness.
    installment.status = InstallmentStatus.PAID.value
    installment.paid_at = paid_at
    installment.recorded_by = recorded_by
    return installment


def effective_status(installment: Installment, now: datetime) -> InstallmentStatus:
    """Status the installment has at ``now`` without mutating it."""
    status = InstallmentStatus(installment.status)
    if status == InstallmentStatus.PENDING and installment.due_date < now.date():
        return InstallmentStatus.OVERDUE
    return status


def sweep_overdue(installments: Iterable[Installment], now: datetime) -> list[Installment]:
    changed: list[Installment] = []
    for item in installments:
        if effective_status(item, now) != InstallmentStatus(item.status):
            item.status = InstallmentStatus.OVERDUE.value
            changed.append(item)
    return changed
