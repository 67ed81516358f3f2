from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.clock import Clock
from app.core.permissions import PermissionCode
from app.schemas.contract import ConversionResult, ConvertInterestRequest
from app.schemas.interest import (
    InterestDTO,
    InterestReviewRequest,
    InterestStartReviewRequest,
    InterestSubmitRequest,
)
from app.services import contract_lifecycle

router = APIRouter(prefix="/interests", tags=["investor-interests"])


@router.post(
    "",
    response_model=InterestDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an investor interest",
)
async def submit_interest(
    payload: InterestSubmitRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.INTEREST_SUBMIT)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> InterestDTO:
    interest = await contract_lifecycle.submit_interest(
        db,
        ctx,
        payload,
        actor_id=actor.id,
        investor_scope=deps.investor_scope(actor),
        now=clock.now(),
    )
    return InterestDTO.model_validate(interest)


@router.get(
    "/{interest_id}",
    response_model=InterestDTO,
    summary="Get investor interest detail",
)
async def get_interest(
    interest_id: UUID,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.INTEREST_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> InterestDTO:
    interest = await contract_lifecycle.get_interest(
        db, ctx, interest_id, investor_scope=deps.investor_scope(actor)
    )
    return InterestDTO.model_validate(interest)


@router.post(
    "/{interest_id}/start-review",
    response_model=InterestDTO,
    summary="Move a new interest into review",
)
async def start_review(
    interest_id: UUID,
    payload: InterestStartReviewRequest | None = None,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.INTEREST_REVIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> InterestDTO:
    payload = payload or InterestStartReviewRequest()
    interest = await contract_lifecycle.start_review(
        db,
        ctx,
        interest_id,
        actor_id=actor.id,
        now=clock.now(),
        assigned_to_id=payload.assigned_to_id,
        expected_version=payload.expected_version,
    )
    return InterestDTO.model_validate(interest)


@router.post(
    "/{interest_id}/review",
    response_model=InterestDTO,
    summary="Approve or reject an investor interest",
)
async def review_interest(
    interest_id: UUID,
    payload: InterestReviewRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.INTEREST_REVIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> InterestDTO:
    interest = await contract_lifecycle.review_interest(
        db,
        ctx,
        interest_id,
        action=payload.action,
        actor_id=actor.id,
        now=clock.now(),
        review_notes=payload.review_notes,
        rejection_reason=payload.rejection_reason,
        expected_version=payload.expected_version,
    )
    return InterestDTO.model_validate(interest)


@router.post(
    "/{interest_id}/convert",
    response_model=ConversionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Convert an approved interest into a contract",
)
async def convert_interest(
    interest_id: UUID,
    payload: ConvertInterestRequest,
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.INTEREST_CONVERT)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> ConversionResult:
    return await contract_lifecycle.convert_interest(
        db,
        ctx,
        interest_id,
        payload,
        actor_id=actor.id,
        now=clock.now(),
        expected_version=payload.expected_version,
    )
