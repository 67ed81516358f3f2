from enum import Enum
from typing import Iterable, List


class PermissionCode(str, Enum):
    # Investor interests
    INTEREST_SUBMIT = "interest.submit"
    INTEREST_VIEW = "interest.view"
    INTEREST_REVIEW = "interest.review"
    INTEREST_CONVERT = "interest.convert"

    # Contracts
    CONTRACT_VIEW = "contract.view"
    CONTRACT_MANAGE = "contract.manage"
    CONTRACT_PAYMENT_RECORD = "contract.payment.record"
    CONTRACT_ADMINISTER = "contract.administer"
    CONTRACT_RECOMPUTE = "contract.recompute"

    # Reporting
    DASHBOARD_VIEW = "dashboard.view"

    @classmethod
    def list_all(cls) -> List[str]:
        return [code.value for code in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List[str]:
        """Return unique permission codes that are valid members."""
        seen = set()
        normalized: list[str] = []
        for value in values:
            try:
                code = cls(value)
            except ValueError:
                continue
            if code.value not in seen:
                seen.add(code.value)
                normalized.append(code.value)
        return normalized


ROLE_PERMISSIONS: dict[str, list[PermissionCode]] = {
    "admin": list(PermissionCode),
    "crm_reviewer": [
        PermissionCode.INTEREST_VIEW,
        PermissionCode.INTEREST_REVIEW,
        PermissionCode.INTEREST_CONVERT,
        PermissionCode.CONTRACT_VIEW,
        PermissionCode.DASHBOARD_VIEW,
    ],
    "finance": [
        PermissionCode.CONTRACT_VIEW,
        PermissionCode.CONTRACT_PAYMENT_RECORD,
        PermissionCode.DASHBOARD_VIEW,
    ],
    "investor": [
        PermissionCode.INTEREST_SUBMIT,
        PermissionCode.INTEREST_VIEW,
        PermissionCode.CONTRACT_VIEW,
    ],
}


def permissions_for_roles(roles: Iterable[str]) -> set[str]:
    granted: set[str] = set()
    for role in roles:
        for code in ROLE_PERMISSIONS.get(str(role).lower(), []):
            granted.add(code.value)
    return granted


# Holding any of these marks a back-office caller; everyone else only sees
# records belonging to the investor bound to their token.
STAFF_PERMISSIONS: frozenset[str] = frozenset(
    code.value
    for code in (
        PermissionCode.INTEREST_REVIEW,
        PermissionCode.INTEREST_CONVERT,
        PermissionCode.CONTRACT_MANAGE,
        PermissionCode.CONTRACT_PAYMENT_RECORD,
        PermissionCode.CONTRACT_ADMINISTER,
        PermissionCode.DASHBOARD_VIEW,
    )
)
