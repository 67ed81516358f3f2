"""Lifecycle commands for investor interests and contracts.

Each command loads one aggregate (two for conversion), validates the
requested transition, applies it, re-derives installment and contract
statuses, stages exactly one audit entry and commits. Any failure rolls the
session back so nothing from the command is persisted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api import deps
from app.core.settings import settings
from app.models.contract import Contract
from app.models.installment import Installment
from app.models.investor_interest import InvestorInterest
from app.schemas.common import (
    CancellationReason,
    ContractStatus,
    InstallmentFrequency,
    InstallmentStatus,
    InterestStatus,
)
from app.schemas.contract import (
    ContractDTO,
    ContractTerms,
    ConversionResult,
    InstallmentDTO,
    InstallmentPlanEntry,
    RecomputeBatchResult,
)
from app.schemas.interest import InterestSubmitRequest
from app.services import installment_schedule, interest_review
from app.services.audit import emit_audit_log, model_snapshot, record_audit_log
from app.services.contract_status import (
    IN_FORCE_STATUSES,
    is_administratively_closed,
    missing_contract_fields,
    resolve_contract_status,
    tracks_overdue,
)
from app.services.lifecycle_errors import (
    AlreadyConverted,
    AuditWriteFailure,
    ConcurrentModification,
    InvalidTransition,
    LifecycleError,
    MissingReason,
    NotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

INTEREST_RESOURCE = "investor_interest"
CONTRACT_RESOURCE = "contract"

_TERM_FIELDS = tuple(name for name in ContractTerms.model_fields)


@dataclass(frozen=True)
class RecomputeOutcome:
    contract: Contract
    changed: bool
    overdue_marked: int = 0


# ---------------------------------------------------------------------------
# Loading, versioning and committing
# ---------------------------------------------------------------------------


async def _load_interest(db: AsyncSession, ctx: deps.TenantContext, interest_id) -> InvestorInterest:
    stmt = select(InvestorInterest).where(
        InvestorInterest.id == interest_id,
        InvestorInterest.org_id == ctx.org_id,
    )
    interest = (await db.execute(stmt)).scalar_one_or_none()
    if interest is None:
        raise NotFound("Investor interest not found", {"interest_id": str(interest_id)})
    return interest


async def _load_contract(db: AsyncSession, ctx: deps.TenantContext, contract_id) -> Contract:
    stmt = select(Contract).where(Contract.id == contract_id, Contract.org_id == ctx.org_id)
    contract = (await db.execute(stmt)).scalar_one_or_none()
    if contract is None:
        raise NotFound("Contract not found", {"contract_id": str(contract_id)})
    return contract


def _check_version(entity: Any, expected_version: int | None, resource_type: str) -> None:
    if expected_version is not None and entity.version != expected_version:
        raise ConcurrentModification(
            f"The {resource_type.replace('_', ' ')} was updated by another request. Please refresh and retry.",
            {"resource_id": str(entity.id), "expected_version": expected_version, "current_version": entity.version},
        )


def _bump_version(entity: Any) -> None:
    entity.version = (entity.version or 0) + 1


def _violated_constraint(exc: IntegrityError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    return None


def _matches_constraint(exc: IntegrityError, constraint: str) -> bool:
    name = _violated_constraint(exc)
    if name is not None:
        return name == constraint
    return constraint in str(exc.orig)


async def _persist(db: AsyncSession, *, on_integrity_error: dict[str, LifecycleError] | None = None) -> None:
    """Flush pending changes; ``on_integrity_error`` maps constraint names to domain errors."""
    try:
        await db.flush()
    except StaleDataError as exc:
        await db.rollback()
        raise ConcurrentModification(
            "The record was updated by another request. Please refresh and retry."
        ) from exc
    except IntegrityError as exc:
        await db.rollback()
        for constraint, error in (on_integrity_error or {}).items():
            if _matches_constraint(exc, constraint):
                raise error from exc
        raise


async def _finalize_command(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    command: str,
    actor_id,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None,
    new_value: Any | None,
    on_integrity_error: dict[str, LifecycleError] | None = None,
) -> uuid.UUID:
    await _persist(db, on_integrity_error=on_integrity_error)
    try:
        entry = record_audit_log(
            db,
            ctx,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_value=old_value,
            new_value=new_value,
        )
        await db.flush()
    except (SQLAlchemyError, ValueError, TypeError) as exc:
        await db.rollback()
        logger.error(
            "Audit write failed; command rolled back",
            extra={"command": command, "status": "rolled_back"},
        )
        raise AuditWriteFailure(
            "Audit entry could not be recorded; the change was not applied",
            {"action": action, "resource_id": resource_id},
        ) from exc
    await db.commit()
    emit_audit_log(entry)
    return entry.id


async def _rollback_on_error(db: AsyncSession) -> None:
    # Validation failures leave in-memory edits behind; drop them with the transaction.
    await db.rollback()


# ---------------------------------------------------------------------------
# Snapshots and derivation
# ---------------------------------------------------------------------------


def _contract_snapshot(contract: Contract) -> dict[str, Any]:
    snapshot = model_snapshot(contract, exclude={"created_at", "updated_at"})
    snapshot["installments"] = [
        model_snapshot(item, exclude={"id", "org_id", "contract_id", "created_at"})
        for item in _installments(contract)
    ]
    return snapshot


def _interest_snapshot(interest: InvestorInterest) -> dict[str, Any]:
    return model_snapshot(interest, exclude={"created_at", "updated_at"})


def _installments(contract: Contract) -> list[Installment]:
    return sorted(contract.installments or [], key=lambda item: item.sequence_number)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _rederive(contract: Contract, now: datetime) -> list[Installment]:
    swept: list[Installment] = []
    if tracks_overdue(contract):
        swept = installment_schedule.sweep_overdue(_installments(contract), now)
    contract.status = resolve_contract_status(contract, _installments(contract), now).value
    return swept


def _refresh_end_date(contract: Contract) -> None:
    if contract.start_date is not None and contract.duration_periods:
        contract.end_date = installment_schedule.compute_end_date(
            contract.start_date, contract.duration_periods, contract.installment_frequency
        )
    else:
        contract.end_date = None


def _apply_terms(contract: Contract, terms: ContractTerms, *, fields: set[str] | None = None) -> None:
    names = fields if fields is not None else {name for name in _TERM_FIELDS if getattr(terms, name) is not None}
    for name in names:
        if name not in _TERM_FIELDS:
            continue
        value = getattr(terms, name)
        if name == "currency" and value is not None:
            value = value.upper()
        if name in {"currency", "installment_frequency"} and value is None:
            continue
        setattr(contract, name, value)
    _refresh_end_date(contract)


def _sync_schedule(
    contract: Contract,
    entries: list[InstallmentPlanEntry],
    *,
    keep_paid: bool,
    actor_id=None,
) -> None:
    """Make the contract's installments match ``entries``.

    Existing rows are updated in place by sequence number so the
    ``(contract_id, sequence_number)`` constraint never sees a transient
    duplicate. Paid installments survive when ``keep_paid`` is set.
    """
    by_sequence = {item.sequence_number: item for item in _installments(contract)}
    planned = {entry.sequence_number for entry in entries}
    kept: list[Installment] = []
    for sequence, item in by_sequence.items():
        if keep_paid and item.status == InstallmentStatus.PAID.value:
            kept.append(item)
        elif sequence in planned:
            kept.append(item)
    for entry in entries:
        item = by_sequence.get(entry.sequence_number)
        if item is None:
            item = Installment(
                id=uuid.uuid4(),
                org_id=contract.org_id,
                contract_id=contract.id,
                sequence_number=entry.sequence_number,
                status=InstallmentStatus.PENDING.value,
            )
            kept.append(item)
        elif keep_paid and item.status == InstallmentStatus.PAID.value:
            continue
        item.due_date = entry.due_date
        item.amount_due = entry.amount
        item.status = InstallmentStatus.PENDING.value
        item.paid_at = None
        item.recorded_by = None
    contract.installments = sorted(kept, key=lambda item: item.sequence_number)


def _generate_if_complete(contract: Contract) -> None:
    if missing_contract_fields(contract):
        return
    plan = installment_schedule.build_installment_plan(
        contract.total_contract_amount,
        contract.duration_periods,
        contract.start_date,
        contract.installment_frequency,
    )
    _sync_schedule(contract, plan, keep_paid=False)


def _new_contract(ctx: deps.TenantContext, *, actor_id, now: datetime) -> Contract:
    return Contract(
        id=uuid.uuid4(),
        org_id=ctx.org_id,
        contract_code=interest_review.generate_reference(interest_review.CONTRACT_CODE_PREFIX, now),
        currency=settings.default_currency,
        installment_frequency=InstallmentFrequency(settings.default_installment_frequency).value,
        status=ContractStatus.DRAFT.value,
        version=1,
        created_by=actor_id,
        updated_by=actor_id,
        installments=[],
    )


async def _ensure_asset_free(
    db: AsyncSession,
    ctx: deps.TenantContext,
    asset_id,
    now: datetime,
    *,
    exclude_contract_id=None,
) -> None:
    """An asset carries at most one contract in force (active or expiring) at a time."""
    if asset_id is None:
        return
    closed = [ContractStatus.ARCHIVED.value, ContractStatus.CANCELLED.value]
    stmt = select(Contract).where(
        Contract.org_id == ctx.org_id,
        Contract.asset_id == asset_id,
        Contract.activated_at.is_not(None),
        Contract.status.not_in(closed),
    )
    if exclude_contract_id is not None:
        stmt = stmt.where(Contract.id != exclude_contract_id)
    for other in (await db.execute(stmt)).scalars().all():
        status = resolve_contract_status(other, _installments(other), now)
        if status in IN_FORCE_STATUSES:
            raise InvalidTransition(
                "Asset already has a contract in force",
                {"asset_id": str(asset_id), "contract_id": str(other.id), "status": status.value},
            )


def _reject_party_change(terms: ContractTerms, fields: set[str], source: Any, *, interest_id) -> None:
    changed = sorted(
        name
        for name in ("asset_id", "investor_id")
        if name in fields and getattr(terms, name) != getattr(source, name)
    )
    if changed:
        raise ValidationError(
            "Asset and investor are fixed by the originating interest",
            {"fields": changed, "interest_id": str(interest_id)},
        )


def _ensure_open(contract: Contract, attempted: str) -> None:
    if is_administratively_closed(contract):
        raise InvalidTransition(
            f"Cannot {attempted} a contract in status '{contract.status}'",
            {"contract_id": str(contract.id), "status": contract.status, "attempted": attempted},
        )


def _log_command(command: str, message: str, *, contract: Contract | None = None, interest=None) -> None:
    extra: dict[str, Any] = {"command": command}
    if contract is not None:
        extra.update(contract_id=str(contract.id), status=contract.status, version=contract.version)
    if interest is not None:
        extra["interest_id"] = str(interest.id)
        if contract is None:
            extra.update(status=interest.status, version=interest.version)
    logger.info(message, extra=extra)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _ensure_visible(entity: Any, investor_scope, message: str, details: dict[str, Any]) -> None:
    # Another investor's record is reported as missing so its existence does not leak.
    if investor_scope is not None and entity.investor_id != investor_scope:
        raise NotFound(message, details)


async def get_interest(
    db: AsyncSession,
    ctx: deps.TenantContext,
    interest_id,
    *,
    investor_scope=None,
) -> InvestorInterest:
    interest = await _load_interest(db, ctx, interest_id)
    _ensure_visible(interest, investor_scope, "Investor interest not found", {"interest_id": str(interest_id)})
    return interest


def build_contract_view(contract: Contract, now: datetime) -> ContractDTO:
    """Contract as it stands at ``now``; derives statuses without writing them."""
    installments = _installments(contract)
    overdue_tracked = tracks_overdue(contract)
    rows: list[InstallmentDTO] = []
    paid = Decimal("0.00")
    scheduled = Decimal("0.00")
    for item in installments:
        status = (
            installment_schedule.effective_status(item, now)
            if overdue_tracked
            else InstallmentStatus(item.status)
        )
        amount = _as_decimal(item.amount_due)
        scheduled += amount
        if status == InstallmentStatus.PAID:
            paid += amount
        rows.append(
            InstallmentDTO(
                id=item.id,
                sequence_number=item.sequence_number,
                due_date=item.due_date,
                amount_due=amount,
                status=status,
                paid_at=item.paid_at,
                recorded_by=item.recorded_by,
            )
        )
    dto = ContractDTO.model_validate(contract, from_attributes=True).model_copy(
        update={
            "status": resolve_contract_status(contract, installments, now).value,
            "missing_fields": missing_contract_fields(contract),
            "paid_amount": paid,
            "outstanding_amount": scheduled - paid,
            "installments": rows,
        }
    )
    return dto


async def get_contract(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    *,
    now: datetime,
    investor_scope=None,
) -> ContractDTO:
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_visible(contract, investor_scope, "Contract not found", {"contract_id": str(contract_id)})
    return build_contract_view(contract, now)


# ---------------------------------------------------------------------------
# Interest commands
# ---------------------------------------------------------------------------


async def submit_interest(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: InterestSubmitRequest,
    *,
    actor_id,
    investor_scope=None,
    now: datetime,
) -> InvestorInterest:
    """Record a new interest.

    A caller confined to ``investor_scope`` always submits as that investor;
    naming anyone else in the payload is rejected.
    """
    if investor_scope is not None:
        if payload.investor_id is not None and payload.investor_id != investor_scope:
            raise ValidationError(
                "Interests can only be submitted for the investor linked to the caller",
                {"field": "investor_id"},
            )
        investor_id = investor_scope
    else:
        investor_id = payload.investor_id
    if investor_id is None:
        raise ValidationError(
            "An investor is required to submit an interest",
            {"field": "investor_id"},
        )
    interest = InvestorInterest(
        id=uuid.uuid4(),
        org_id=ctx.org_id,
        reference_number=interest_review.generate_reference(interest_review.INTEREST_REFERENCE_PREFIX, now),
        investor_id=investor_id,
        asset_id=payload.asset_id,
        investment_purpose=payload.investment_purpose,
        proposed_use_description=payload.proposed_use_description,
        investment_amount_range=payload.investment_amount_range,
        expected_timeline=payload.expected_timeline,
        additional_comments=payload.additional_comments,
        status=InterestStatus.NEW.value,
        version=1,
        submitted_at=now,
        submitted_by=actor_id,
    )
    db.add(interest)
    await _finalize_command(
        db,
        ctx,
        command="submit_interest",
        actor_id=actor_id,
        action="investor_interest.submitted",
        resource_type=INTEREST_RESOURCE,
        resource_id=str(interest.id),
        old_value=None,
        new_value=_interest_snapshot(interest),
    )
    _log_command("submit_interest", "Investor interest submitted", interest=interest)
    return interest


async def start_review(
    db: AsyncSession,
    ctx: deps.TenantContext,
    interest_id,
    *,
    actor_id,
    now: datetime,
    assigned_to_id=None,
    expected_version: int | None = None,
) -> InvestorInterest:
    interest = await _load_interest(db, ctx, interest_id)
    _check_version(interest, expected_version, INTEREST_RESOURCE)
    old_value = _interest_snapshot(interest)
    interest_review.begin_review(interest, reviewer_id=actor_id, now=now, assigned_to_id=assigned_to_id)
    _bump_version(interest)
    await _finalize_command(
        db,
        ctx,
        command="start_review",
        actor_id=actor_id,
        action="investor_interest.review_started",
        resource_type=INTEREST_RESOURCE,
        resource_id=str(interest.id),
        old_value=old_value,
        new_value=_interest_snapshot(interest),
    )
    _log_command("start_review", "Investor interest review started", interest=interest)
    return interest


async def review_interest(
    db: AsyncSession,
    ctx: deps.TenantContext,
    interest_id,
    *,
    action: str,
    actor_id,
    now: datetime,
    review_notes: str | None = None,
    rejection_reason: str | None = None,
    expected_version: int | None = None,
) -> InvestorInterest:
    interest = await _load_interest(db, ctx, interest_id)
    _check_version(interest, expected_version, INTEREST_RESOURCE)
    old_value = _interest_snapshot(interest)
    interest_review.apply_review(
        interest,
        action=action,
        reviewer_id=actor_id,
        now=now,
        review_notes=review_notes,
        rejection_reason=rejection_reason,
    )
    _bump_version(interest)
    await _finalize_command(
        db,
        ctx,
        command="review_interest",
        actor_id=actor_id,
        action=f"investor_interest.{interest.status}",
        resource_type=INTEREST_RESOURCE,
        resource_id=str(interest.id),
        old_value=old_value,
        new_value=_interest_snapshot(interest),
    )
    _log_command("review_interest", f"Investor interest {interest.status}", interest=interest)
    return interest


async def convert_interest(
    db: AsyncSession,
    ctx: deps.TenantContext,
    interest_id,
    terms: ContractTerms,
    *,
    actor_id,
    now: datetime,
    expected_version: int | None = None,
) -> ConversionResult:
    """Turn an approved interest into its one and only contract.

    The contract takes its asset and investor from the interest; terms that
    try to name either are rejected. Its schedule is generated when the terms
    are complete, and it stays ``incomplete`` (or ``draft``) until activated.
    """
    interest = await _load_interest(db, ctx, interest_id)
    interest_review.ensure_convertible(interest)
    _check_version(interest, expected_version, INTEREST_RESOURCE)
    _reject_party_change(
        terms,
        {name for name in _TERM_FIELDS if getattr(terms, name) is not None},
        interest,
        interest_id=interest.id,
    )

    existing_stmt = select(Contract.id).where(
        Contract.org_id == ctx.org_id,
        Contract.origin_interest_id == interest.id,
    )
    existing_id = (await db.execute(existing_stmt)).scalar_one_or_none()
    if existing_id is not None:
        raise AlreadyConverted(
            "A contract already exists for this interest",
            {"interest_id": str(interest.id), "contract_id": str(existing_id)},
        )
    await _ensure_asset_free(db, ctx, interest.asset_id, now)

    old_interest = _interest_snapshot(interest)
    contract = _new_contract(ctx, actor_id=actor_id, now=now)
    contract.origin_interest_id = interest.id
    contract.asset_id = interest.asset_id
    contract.investor_id = interest.investor_id
    try:
        _apply_terms(contract, terms)
        _generate_if_complete(contract)
    except LifecycleError:
        await _rollback_on_error(db)
        raise
    _rederive(contract, now)

    db.add(contract)
    interest_review.mark_converted(interest, contract.id, now=now)
    _bump_version(interest)

    await _finalize_command(
        db,
        ctx,
        command="convert_interest",
        actor_id=actor_id,
        action="investor_interest.converted",
        resource_type=INTEREST_RESOURCE,
        resource_id=str(interest.id),
        old_value={"interest": old_interest},
        new_value={"interest": _interest_snapshot(interest), "contract": _contract_snapshot(contract)},
        on_integrity_error={
            "uq_contracts_origin_interest_id": AlreadyConverted(
                "A contract already exists for this interest",
                {"interest_id": str(interest_id)},
            ),
        },
    )
    _log_command("convert_interest", "Investor interest converted", contract=contract, interest=interest)
    return ConversionResult(
        interest_id=interest.id,
        contract_id=contract.id,
        contract_code=contract.contract_code,
        contract_status=ContractStatus(contract.status),
        installment_count=len(contract.installments),
    )


# ---------------------------------------------------------------------------
# Contract commands
# ---------------------------------------------------------------------------


async def create_contract_direct(
    db: AsyncSession,
    ctx: deps.TenantContext,
    terms: ContractTerms,
    *,
    actor_id,
    now: datetime,
) -> Contract:
    await _ensure_asset_free(db, ctx, terms.asset_id, now)
    contract = _new_contract(ctx, actor_id=actor_id, now=now)
    _apply_terms(contract, terms)
    _generate_if_complete(contract)
    _rederive(contract, now)
    db.add(contract)
    await _finalize_command(
        db,
        ctx,
        command="create_contract_direct",
        actor_id=actor_id,
        action="contract.created",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=None,
        new_value=_contract_snapshot(contract),
    )
    _log_command("create_contract_direct", "Contract created", contract=contract)
    return contract


async def amend_contract(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    terms: ContractTerms,
    *,
    actor_id,
    now: datetime,
    expected_version: int | None = None,
) -> Contract:
    """Change contract terms and bring the schedule in line with them.

    Before activation the whole schedule is regenerated (or dropped while the
    terms are incomplete). After activation paid installments are frozen and
    only the unpaid remainder is re-planned.
    """
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_open(contract, "amend")
    _check_version(contract, expected_version, CONTRACT_RESOURCE)
    old_value = _contract_snapshot(contract)

    fields = terms.model_fields_set & set(_TERM_FIELDS)
    if contract.origin_interest_id is not None:
        _reject_party_change(terms, fields, contract, interest_id=contract.origin_interest_id)
    if contract.activated_at is not None and "asset_id" in fields and terms.asset_id != contract.asset_id:
        await _ensure_asset_free(db, ctx, terms.asset_id, now, exclude_contract_id=contract.id)
    try:
        _apply_terms(contract, terms, fields=fields)
        missing = missing_contract_fields(contract)
        if contract.activated_at is not None:
            if missing:
                raise ValidationError(
                    "An activated contract cannot lose required terms",
                    {"missing_fields": missing},
                )
            plan = installment_schedule.plan_amendment(
                _installments(contract),
                contract.total_contract_amount,
                contract.duration_periods,
                contract.start_date,
                contract.installment_frequency,
            )
            _sync_schedule(contract, plan, keep_paid=True)
        elif missing:
            _sync_schedule(contract, [], keep_paid=False)
        else:
            _generate_if_complete(contract)
    except LifecycleError:
        await _rollback_on_error(db)
        raise

    _rederive(contract, now)
    contract.updated_by = actor_id
    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="amend_contract",
        actor_id=actor_id,
        action="contract.amended",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    _log_command("amend_contract", "Contract amended", contract=contract)
    return contract


async def generate_schedule(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    *,
    actor_id,
    now: datetime,
    expected_version: int | None = None,
) -> Contract:
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_open(contract, "generate a schedule for")
    _check_version(contract, expected_version, CONTRACT_RESOURCE)
    if contract.activated_at is not None:
        raise InvalidTransition(
            "Schedule cannot be regenerated after activation; amend the contract instead",
            {"contract_id": str(contract.id), "activated_at": contract.activated_at},
        )
    missing = missing_contract_fields(contract)
    if missing:
        raise ValidationError(
            "Contract terms are incomplete",
            {"contract_id": str(contract.id), "missing_fields": missing},
        )

    old_value = _contract_snapshot(contract)
    _generate_if_complete(contract)
    _rederive(contract, now)
    contract.updated_by = actor_id
    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="generate_schedule",
        actor_id=actor_id,
        action="contract.schedule_generated",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    _log_command("generate_schedule", "Contract schedule generated", contract=contract)
    return contract


async def activate_contract(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    *,
    actor_id,
    now: datetime,
    expected_version: int | None = None,
) -> Contract:
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_open(contract, "activate")
    _check_version(contract, expected_version, CONTRACT_RESOURCE)
    if contract.activated_at is not None:
        raise InvalidTransition(
            "Contract is already activated",
            {"contract_id": str(contract.id), "activated_at": contract.activated_at},
        )
    missing = missing_contract_fields(contract)
    if missing:
        raise ValidationError(
            "Contract terms are incomplete",
            {"contract_id": str(contract.id), "missing_fields": missing},
        )
    if not contract.installments:
        raise InvalidTransition(
            "Generate the installment schedule before activating the contract",
            {"contract_id": str(contract.id)},
        )
    await _ensure_asset_free(db, ctx, contract.asset_id, now, exclude_contract_id=contract.id)

    old_value = _contract_snapshot(contract)
    contract.activated_at = now
    contract.updated_by = actor_id
    _rederive(contract, now)
    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="activate_contract",
        actor_id=actor_id,
        action="contract.activated",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    _log_command("activate_contract", "Contract activated", contract=contract)
    return contract


async def record_payment(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    installment_seq: int,
    *,
    actor_id,
    now: datetime,
    paid_at: datetime | None = None,
    expected_version: int | None = None,
) -> Contract:
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_open(contract, "record a payment on")
    _check_version(contract, expected_version, CONTRACT_RESOURCE)
    if contract.activated_at is None:
        raise InvalidTransition(
            "Payments can only be recorded on an activated contract",
            {"contract_id": str(contract.id), "status": contract.status},
        )
    paid_at = _as_aware(paid_at) if paid_at is not None else now
    if paid_at > now:
        raise ValidationError("paid_at cannot be in the future", {"paid_at": paid_at})

    old_value = _contract_snapshot(contract)
    installment_schedule.mark_paid(
        _installments(contract),
        installment_seq,
        paid_at,
        recorded_by=actor_id,
    )
    _rederive(contract, now)
    contract.updated_by = actor_id
    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="record_payment",
        actor_id=actor_id,
        action="contract.payment_recorded",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    logger.info(
        "Installment %s paid",
        installment_seq,
        extra={
            "command": "record_payment",
            "contract_id": str(contract.id),
            "status": contract.status,
            "version": contract.version,
        },
    )
    return contract


async def set_administrative_status(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    target: ContractStatus | str,
    *,
    actor_id,
    now: datetime,
    reason: str | None = None,
    justification: str | None = None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Contract:
    """Archive or cancel a contract; both statuses are terminal.

    Archiving is allowed from ``active`` or ``expired`` (as derived at
    ``now``); cancelling from any non-terminal status and needs a reason and
    a justification.
    """
    target = ContractStatus(target)
    contract = await _load_contract(db, ctx, contract_id)
    _ensure_open(contract, "archive" if target == ContractStatus.ARCHIVED else "cancel")
    _check_version(contract, expected_version, CONTRACT_RESOURCE)

    current = resolve_contract_status(contract, _installments(contract), now)
    old_value = _contract_snapshot(contract)
    if target == ContractStatus.ARCHIVED:
        if current not in {ContractStatus.ACTIVE, ContractStatus.EXPIRED}:
            raise InvalidTransition(
                f"Only active or expired contracts can be archived (current status '{current.value}')",
                {"contract_id": str(contract.id), "status": current.value},
            )
        installment_schedule.sweep_overdue(_installments(contract), now)
        contract.archived_at = now
        contract.archived_by = actor_id
        if notes:
            contract.notes = notes
    elif target == ContractStatus.CANCELLED:
        if not reason:
            raise MissingReason("A cancellation reason is required", {"field": "reason"})
        try:
            cancellation_reason = CancellationReason(reason).value
        except ValueError as exc:
            raise ValidationError("Unknown cancellation reason", {"reason": reason}) from exc
        if not (justification or "").strip():
            raise MissingReason("A cancellation justification is required", {"field": "justification"})
        if tracks_overdue(contract):
            installment_schedule.sweep_overdue(_installments(contract), now)
        contract.cancelled_at = now
        contract.cancelled_by = actor_id
        contract.cancellation_reason = cancellation_reason
        contract.cancellation_justification = justification.strip()
    else:
        raise ValidationError(
            "Administrative status must be 'archived' or 'cancelled'",
            {"status": target.value},
        )

    contract.status = target.value
    contract.updated_by = actor_id
    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="set_administrative_status",
        actor_id=actor_id,
        action=f"contract.{target.value}",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    _log_command("set_administrative_status", f"Contract {target.value}", contract=contract)
    return contract


async def recompute_contract(
    db: AsyncSession,
    ctx: deps.TenantContext,
    contract_id,
    *,
    actor_id,
    now: datetime,
    expected_version: int | None = None,
) -> RecomputeOutcome:
    """Sweep overdue installments and re-derive the stored status.

    Reports whether anything changed. An unchanged contract
    is neither written nor audited.
    """
    contract = await _load_contract(db, ctx, contract_id)
    _check_version(contract, expected_version, CONTRACT_RESOURCE)
    if is_administratively_closed(contract):
        return RecomputeOutcome(contract=contract, changed=False)

    old_value = _contract_snapshot(contract)
    swept = _rederive(contract, now)
    if not swept and old_value["status"] == contract.status:
        return RecomputeOutcome(contract=contract, changed=False)

    _bump_version(contract)
    await _finalize_command(
        db,
        ctx,
        command="recompute_contract",
        actor_id=actor_id,
        action="contract.recomputed",
        resource_type=CONTRACT_RESOURCE,
        resource_id=str(contract.id),
        old_value=old_value,
        new_value=_contract_snapshot(contract),
    )
    logger.info(
        "Contract recomputed: %s overdue installment(s)",
        len(swept),
        extra={
            "command": "recompute_contract",
            "contract_id": str(contract.id),
            "status": contract.status,
            "version": contract.version,
        },
    )
    return RecomputeOutcome(contract=contract, changed=True, overdue_marked=len(swept))


async def recompute_all_contracts(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    actor_id,
    now: datetime,
    limit: int | None = None,
) -> RecomputeBatchResult:
    closed = [ContractStatus.ARCHIVED.value, ContractStatus.CANCELLED.value]
    stmt = (
        select(Contract.id)
        .where(Contract.org_id == ctx.org_id, Contract.status.not_in(closed))
        .order_by(Contract.created_at.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    contract_ids = list((await db.execute(stmt)).scalars().all())

    result = RecomputeBatchResult()
    for contract_id in contract_ids:
        result.processed += 1
        try:
            outcome = await recompute_contract(db, ctx, contract_id, actor_id=actor_id, now=now)
        except (ConcurrentModification, NotFound) as exc:
            logger.warning(
                "Recompute skipped for contract %s: %s",
                contract_id,
                exc.message,
                extra={"command": "recompute_all_contracts", "contract_id": str(contract_id)},
            )
            result.conflicts.append(str(contract_id))
            continue
        if outcome.changed:
            result.changed += 1
            result.overdue_marked += outcome.overdue_marked
        else:
            result.unchanged += 1

    logger.info(
        "Recompute batch finished: processed=%s changed=%s conflicts=%s",
        result.processed,
        result.changed,
        len(result.conflicts),
        extra={"command": "recompute_all_contracts"},
    )
    return result
