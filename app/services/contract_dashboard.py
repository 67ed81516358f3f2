from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.contract import Contract
from app.models.investor_interest import InvestorInterest
from app.schemas.common import ContractStatus, InstallmentStatus, InterestStatus
from app.schemas.dashboard import DashboardStats, InstallmentBucket
from app.services import installment_schedule
from app.services.contract_status import (
    IN_FORCE_STATUSES,
    is_administratively_closed,
    resolve_contract_status,
    tracks_overdue,
)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _add(bucket: InstallmentBucket, amount: Decimal) -> None:
    bucket.count += 1
    bucket.amount += amount


def summarize_portfolio(
    contracts: Iterable[Contract],
    now: datetime,
    *,
    expiring_threshold_days: int | None = None,
    interest_status_counts: Mapping[str, int] | None = None,
) -> DashboardStats:
    """Aggregate counters derived from the resolvers at ``now``.

    Stored status fields are ignored; every contract and installment status
    is re-derived, so the numbers match what a recompute would store.
    """
    today = now.date()
    stats = DashboardStats(
        contract_status_counts={status.value: 0 for status in ContractStatus},
        interest_status_counts={status.value: 0 for status in InterestStatus},
    )
    for status, count in (interest_status_counts or {}).items():
        stats.interest_status_counts[status] = int(count)

    for contract in contracts:
        installments = sorted(contract.installments or [], key=lambda item: item.sequence_number)
        status = resolve_contract_status(
            contract, installments, now, expiring_threshold_days=expiring_threshold_days
        )
        stats.total_contracts += 1
        stats.contract_status_counts[status.value] += 1
        if status in IN_FORCE_STATUSES and contract.total_contract_amount is not None:
            stats.total_active_contract_value += _as_decimal(contract.total_contract_amount)

        closed = is_administratively_closed(contract)
        overdue_tracked = tracks_overdue(contract)
        for item in installments:
            amount = _as_decimal(item.amount_due)
            item_status = (
                installment_schedule.effective_status(item, now)
                if overdue_tracked
                else InstallmentStatus(item.status)
            )
            if item_status == InstallmentStatus.PAID:
                paid_at = item.paid_at
                if paid_at is not None and (paid_at.year, paid_at.month) == (today.year, today.month):
                    _add(stats.paid_this_month_installments, amount)
                continue
            if closed:
                continue
            if item_status == InstallmentStatus.OVERDUE:
                _add(stats.overdue_installments, amount)
            else:
                _add(stats.pending_installments, amount)
            if item.due_date == today:
                _add(stats.due_today_installments, amount)

    return stats


async def build_dashboard_stats(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    now: datetime,
) -> DashboardStats:
    contract_stmt = select(Contract).where(Contract.org_id == ctx.org_id)
    contracts = (await db.execute(contract_stmt)).scalars().all()

    interest_stmt = (
        select(InvestorInterest.status, func.count())
        .where(InvestorInterest.org_id == ctx.org_id)
        .group_by(InvestorInterest.status)
    )
    interest_rows = (await db.execute(interest_stmt)).all()
    interest_counts = {row[0]: int(row[1]) for row in interest_rows}

    return summarize_portfolio(contracts, now, interest_status_counts=interest_counts)
