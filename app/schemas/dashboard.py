from decimal import Decimal

from pydantic import BaseModel, Field


class InstallmentBucket(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0.00")


class DashboardStats(BaseModel):
    total_contracts: int = 0
    contract_status_counts: dict[str, int] = Field(default_factory=dict)
    interest_status_counts: dict[str, int] = Field(default_factory=dict)
    total_active_contract_value: Decimal = Decimal("0.00")
    overdue_installments: InstallmentBucket = Field(default_factory=InstallmentBucket)
    pending_installments: InstallmentBucket = Field(default_factory=InstallmentBucket)
    due_today_installments: InstallmentBucket = Field(default_factory=InstallmentBucket)
    paid_this_month_installments: InstallmentBucket = Field(default_factory=InstallmentBucket)
