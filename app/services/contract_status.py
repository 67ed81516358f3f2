"""Contract status derivation.

The stored ``Contract.status`` is a cache of :func:`resolve_contract_status`.
Only ``archived`` and ``cancelled`` are set directly, by administrative
commands; every other status is re-derived from the contract terms, its
installment schedule and the current time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from app.core.settings import settings
from app.models.contract import Contract
from app.models.installment import Installment
from app.schemas.common import ADMINISTRATIVE_STATUSES, ContractStatus
from app.services.installment_schedule import compute_end_date


IN_FORCE_STATUSES = frozenset({ContractStatus.ACTIVE, ContractStatus.EXPIRING})

REQUIRED_CONTRACT_FIELDS = (
    "asset_id",
    "investor_id",
    "total_contract_amount",
    "duration_periods",
    "start_date",
)


def missing_contract_fields(contract: Contract) -> list[str]:
    return [name for name in REQUIRED_CONTRACT_FIELDS if getattr(contract, name, None) is None]


def is_administratively_closed(contract: Contract) -> bool:
    return contract.status in {status.value for status in ADMINISTRATIVE_STATUSES}


def resolve_contract_status(
    contract: Contract,
    installments: Sequence[Installment],
    now: datetime,
    *,
    expiring_threshold_days: int | None = None,
) -> ContractStatus:
    """Derive the contract status; first matching rule wins.

    Never mutates ``contract`` or ``installments`` and never raises for a
    valid contract state.
    """
    if is_administratively_closed(contract):
        return ContractStatus(contract.status)

    if missing_contract_fields(contract):
        return ContractStatus.DRAFT

    if not installments or contract.activated_at is None:
        return ContractStatus.INCOMPLETE

    threshold = (
        settings.contract_expiring_threshold_days
        if expiring_threshold_days is None
        else expiring_threshold_days
    )
    end_date = contract.end_date or compute_end_date(
        contract.start_date, contract.duration_periods, contract.installment_frequency
    )
    today = now.date()
    if today > end_date:
        return ContractStatus.EXPIRED
    if (end_date - today).days <= threshold:
        return ContractStatus.EXPIRING
    return ContractStatus.ACTIVE


def tracks_overdue(contract: Contract) -> bool:
    """Installments only fall overdue on activated, open contracts."""
    return contract.activated_at is not None and not is_administratively_closed(contract)
