from fastapi import APIRouter

from app.api.v1.routers import contracts, dashboard, health, interests

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(interests.router)
api_router.include_router(contracts.router)
api_router.include_router(dashboard.router)

__all__ = ["api_router"]
