import uuid
from dataclasses import dataclass, field

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import DEFAULT_CLOCK, Clock
from app.core.context import set_actor_id, set_tenant_id
from app.core.permissions import STAFF_PERMISSIONS, PermissionCode, permissions_for_roles
from app.core.security import JWTKeyError, decode_token
from app.core.settings import settings
from app.db.session import get_db


@dataclass(slots=True)
class TenantContext:
    org_id: str


@dataclass(slots=True)
class Actor:
    """Authenticated caller; every command records ``id`` in its audit entry."""

    id: uuid.UUID
    investor_id: uuid.UUID | None = None
    roles: list[str] = field(default_factory=list)

    @property
    def permissions(self) -> set[str]:
        return permissions_for_roles(self.roles)

    @property
    def is_staff(self) -> bool:
        return bool(self.permissions & STAFF_PERMISSIONS)


bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_subdomain(request: Request) -> str | None:
    host = request.headers.get("host", "")
    # strip port if present
    host = host.split(":")[0]
    parts = host.split(".")
    # ignore localhost/invalid hosts
    if len(parts) >= 3:
        return parts[0]
    return None


async def get_tenant_context(
    request: Request,
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    mode = settings.tenancy_mode
    if mode == "multi":
        candidate = tenant_id or _resolve_subdomain(request)
        if not candidate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant resolution failed: provide X-Tenant-ID header or subdomain",
            )
        set_tenant_id(candidate)
        return TenantContext(org_id=candidate)

    default_org = settings.default_org_id
    set_tenant_id(default_org)
    return TenantContext(org_id=default_org)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_clock() -> Clock:
    return DEFAULT_CLOCK


def _parse_uuid(value, claim: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claim: {claim}",
        ) from exc


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_token(credentials.credentials, expected_type="access")
    except (ValueError, JWTKeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    investor_claim = payload.get("investor_id")
    actor = Actor(
        id=_parse_uuid(subject, "sub"),
        investor_id=_parse_uuid(investor_claim, "investor_id") if investor_claim else None,
        roles=[str(role) for role in payload.get("roles") or []],
    )
    set_actor_id(str(actor.id))
    return actor


def investor_scope(actor: Actor) -> uuid.UUID | None:
    """Investor an investor-portal caller is confined to; ``None`` for staff."""
    if actor.is_staff:
        return None
    if actor.investor_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is not linked to an investor",
        )
    return actor.investor_id


def require_permission(permission_code: PermissionCode | str):
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
        if target not in actor.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return actor

    return dependency
