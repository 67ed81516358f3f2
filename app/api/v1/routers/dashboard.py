from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.clock import Clock
from app.core.permissions import PermissionCode
from app.schemas.dashboard import DashboardStats
from app.services import contract_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Contract, interest and installment counters derived at request time",
)
async def get_dashboard_stats(
    _: deps.Actor = Depends(deps.require_permission(PermissionCode.DASHBOARD_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(deps.get_db_session),
    clock: Clock = Depends(deps.get_clock),
) -> DashboardStats:
    return await contract_dashboard.build_dashboard_stats(db, ctx, now=clock.now())
