"""Investor interest review state machine.

    new -> under_review -> approved -> converted
                        -> rejected

``rejected`` and ``converted`` are terminal. A review decision taken on a
``new`` interest passes through ``under_review`` implicitly. These helpers
mutate the interest in memory only; the lifecycle engine owns loading,
versioning, auditing and committing.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from app.models.investor_interest import InvestorInterest
from app.schemas.common import TERMINAL_INTEREST_STATUSES, InterestStatus, ReviewAction
from app.services.lifecycle_errors import AlreadyConverted, InvalidTransition, MissingReason


INTEREST_REFERENCE_PREFIX = "INT"
CONTRACT_CODE_PREFIX = "CNT"

_REVIEWABLE = {InterestStatus.NEW.value, InterestStatus.UNDER_REVIEW.value}


def generate_reference(prefix: str, now: datetime) -> str:
    return f"{prefix}-{now.year}-{uuid.uuid4().hex[:8].upper()}"


def is_terminal(interest: InvestorInterest) -> bool:
    return interest.status in {status.value for status in TERMINAL_INTEREST_STATUSES}


def _invalid(interest: InvestorInterest, attempted: str) -> InvalidTransition:
    return InvalidTransition(
        f"Cannot {attempted} an interest in status '{interest.status}'",
        {"interest_id": str(interest.id), "status": interest.status, "attempted": attempted},
    )


def begin_review(
    interest: InvestorInterest,
    *,
    reviewer_id,
    now: datetime,
    assigned_to_id=None,
) -> None:
    if interest.status != InterestStatus.NEW.value:
        raise _invalid(interest, "start review of")
    interest.status = InterestStatus.UNDER_REVIEW.value
    interest.assigned_to_id = assigned_to_id or reviewer_id
    interest.updated_at = now


def apply_review(
    interest: InvestorInterest,
    *,
    action: ReviewAction | str,
    reviewer_id,
    now: datetime,
    review_notes: str | None = None,
    rejection_reason: str | None = None,
) -> None:
    decision = ReviewAction(action)
    if interest.status not in _REVIEWABLE:
        raise _invalid(interest, decision.value)

    reason = (rejection_reason or "").strip()
    if decision == ReviewAction.REJECT and not reason:
        raise MissingReason(
            "A rejection reason is required",
            {"interest_id": str(interest.id), "field": "rejection_reason"},
        )

    if interest.status == InterestStatus.NEW.value:
        begin_review(interest, reviewer_id=reviewer_id, now=now, assigned_to_id=interest.assigned_to_id)

    if decision == ReviewAction.APPROVE:
        interest.status = InterestStatus.APPROVED.value
        interest.rejection_reason = None
    else:
        interest.status = InterestStatus.REJECTED.value
        interest.rejection_reason = reason
    interest.reviewed_by = reviewer_id
    interest.reviewed_at = now
    interest.review_notes = review_notes


def ensure_convertible(interest: InvestorInterest) -> None:
    if interest.converted_contract_id is not None or interest.status == InterestStatus.CONVERTED.value:
        raise AlreadyConverted(
            "Interest has already been converted into a contract",
            {
                "interest_id": str(interest.id),
                "contract_id": str(interest.converted_contract_id) if interest.converted_contract_id else None,
            },
        )
    if interest.status != InterestStatus.APPROVED.value:
        raise _invalid(interest, "convert")


def mark_converted(interest: InvestorInterest, contract_id, *, now: datetime) -> None:
    ensure_convertible(interest)
    interest.status = InterestStatus.CONVERTED.value
    interest.converted_contract_id = contract_id
    interest.updated_at = now
