from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.clock import Clock
from app.core.permissions import PermissionCode
from app.schemas.common import ContractStatus
from app.schemas.contract import (
    ArchiveContractRequest,
    CancelContractRequest,
    ContractAmendRequest,
    ContractCreateRequest,
    ContractDTO,
    RecomputeBatchResult,
    RecordPaymentRequest,
    VersionedCommand,
)
from app.services import contract_lifecycle

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post(
    "",
    response_model=ContractDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create a contract without an originating interest",
)
async def create_contract(
    payload: ContractCreateRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_MANAGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.create_contract_direct(db, ctx, payload, actor_id=actor.id, now=now)
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/recompute",
    response_model=RecomputeBatchResult,
    summary="Sweep overdue installments and re-derive status for every open contract",
)
async def recompute_all_contracts(
    limit: int | None = Query(default=None, ge=1, le=5000),
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_RECOMPUTE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> RecomputeBatchResult:
    return await contract_lifecycle.recompute_all_contracts(
        db, ctx, actor_id=actor.id, now=clock.now(), limit=limit
    )


@router.get(
    "/{contract_id}",
    response_model=ContractDTO,
    summary="Get contract detail with its installment schedule",
)
async def get_contract(
    contract_id: UUID,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    return await contract_lifecycle.get_contract(
        db, ctx, contract_id, now=clock.now(), investor_scope=deps.investor_scope(actor)
    )


@router.patch(
    "/{contract_id}",
    response_model=ContractDTO,
    summary="Amend contract terms",
)
async def amend_contract(
    contract_id: UUID,
    payload: ContractAmendRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_MANAGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.amend_contract(
        db,
        ctx,
        contract_id,
        payload,
        actor_id=actor.id,
        now=now,
        expected_version=payload.expected_version,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/schedule",
    response_model=ContractDTO,
    summary="Generate (or regenerate) the installment schedule before activation",
)
async def generate_schedule(
    contract_id: UUID,
    payload: VersionedCommand | None = None,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_MANAGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.generate_schedule(
        db,
        ctx,
        contract_id,
        actor_id=actor.id,
        now=now,
        expected_version=payload.expected_version if payload else None,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/activate",
    response_model=ContractDTO,
    summary="Activate a contract with complete terms and a schedule",
)
async def activate_contract(
    contract_id: UUID,
    payload: VersionedCommand | None = None,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_MANAGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.activate_contract(
        db,
        ctx,
        contract_id,
        actor_id=actor.id,
        now=now,
        expected_version=payload.expected_version if payload else None,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/record-payment",
    response_model=ContractDTO,
    summary="Record payment of one installment",
)
async def record_payment(
    contract_id: UUID,
    payload: RecordPaymentRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_PAYMENT_RECORD)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.record_payment(
        db,
        ctx,
        contract_id,
        payload.installment_seq,
        actor_id=actor.id,
        now=now,
        paid_at=payload.paid_at,
        expected_version=payload.expected_version,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/archive",
    response_model=ContractDTO,
    summary="Archive an active or expired contract",
)
async def archive_contract(
    contract_id: UUID,
    payload: ArchiveContractRequest | None = None,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_ADMINISTER)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    payload = payload or ArchiveContractRequest()
    now = clock.now()
    contract = await contract_lifecycle.set_administrative_status(
        db,
        ctx,
        contract_id,
        ContractStatus.ARCHIVED,
        actor_id=actor.id,
        now=now,
        notes=payload.notes,
        expected_version=payload.expected_version,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/cancel",
    response_model=ContractDTO,
    summary="Cancel a contract with a reason and justification",
)
async def cancel_contract(
    contract_id: UUID,
    payload: CancelContractRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_ADMINISTER)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    contract = await contract_lifecycle.set_administrative_status(
        db,
        ctx,
        contract_id,
        ContractStatus.CANCELLED,
        actor_id=actor.id,
        now=now,
        reason=payload.reason,
        justification=payload.justification,
        expected_version=payload.expected_version,
    )
    return contract_lifecycle.build_contract_view(contract, now)


@router.post(
    "/{contract_id}/recompute",
    response_model=ContractDTO,
    summary="Sweep overdue installments and re-derive the stored status",
)
async def recompute_contract(
    contract_id: UUID,
    payload: VersionedCommand | None = None,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.CONTRACT_RECOMPUTE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ContractDTO:
    now = clock.now()
    outcome = await contract_lifecycle.recompute_contract(
        db,
        ctx,
        contract_id,
        actor_id=actor.id,
        now=now,
        expected_version=payload.expected_version if payload else None,
    )
    return contract_lifecycle.build_contract_view(outcome.contract, now)
