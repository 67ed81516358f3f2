from app.models.audit_log import AuditLog
from app.models.contract import Contract
from app.models.installment import Installment
from app.models.investor_interest import InvestorInterest

__all__ = [
    "AuditLog",
    "Contract",
    "Installment",
    "InvestorInterest",
]
