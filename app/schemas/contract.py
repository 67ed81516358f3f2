from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import (
    CancellationReason,
    ContractStatus,
    InstallmentFrequency,
    InstallmentStatus,
)


class ContractTerms(BaseModel):
    """Contract terms; any missing required term leaves the contract in draft."""

    model_config = ConfigDict(use_enum_values=True)

    land_code: str | None = Field(default=None, max_length=100)
    asset_id: UUID | None = None
    investor_id: UUID | None = None
    total_contract_amount: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    duration_periods: int | None = Field(default=None, ge=1, le=600)
    installment_frequency: InstallmentFrequency | None = None
    signing_date: date | None = None
    start_date: date | None = None
    notes: str | None = Field(default=None, max_length=4000)


class ContractCreateRequest(ContractTerms):
    pass


class ConvertInterestRequest(ContractTerms):
    expected_version: int | None = Field(default=None, ge=1)


class ContractAmendRequest(ContractTerms):
    expected_version: int | None = Field(default=None, ge=1)


class VersionedCommand(BaseModel):
    expected_version: int | None = Field(default=None, ge=1)


class RecordPaymentRequest(BaseModel):
    installment_seq: int = Field(ge=1)
    paid_at: datetime | None = None
    expected_version: int | None = Field(default=None, ge=1)


class ArchiveContractRequest(VersionedCommand):
    notes: str | None = Field(default=None, max_length=4000)


class CancelContractRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    reason: CancellationReason | None = None
    justification: str | None = Field(default=None, max_length=4000)
    expected_version: int | None = Field(default=None, ge=1)


class InstallmentPlanEntry(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda value: str(value)})

    sequence_number: int
    due_date: date
    amount: Decimal


class InstallmentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    sequence_number: int
    due_date: date
    amount_due: Decimal
    status: InstallmentStatus
    paid_at: datetime | None = None
    recorded_by: UUID | None = None


class ContractDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    contract_code: str
    land_code: str | None = None
    asset_id: UUID | None = None
    investor_id: UUID | None = None
    origin_interest_id: UUID | None = None
    total_contract_amount: Decimal | None = None
    currency: str
    duration_periods: int | None = None
    installment_frequency: InstallmentFrequency
    signing_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ContractStatus
    version: int
    activated_at: datetime | None = None
    archived_at: datetime | None = None
    archived_by: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancellation_reason: CancellationReason | None = None
    cancellation_justification: str | None = None
    notes: str | None = None
    missing_fields: list[str] = Field(default_factory=list)
    paid_amount: Decimal = Decimal("0.00")
    outstanding_amount: Decimal = Decimal("0.00")
    installments: list[InstallmentDTO] = Field(default_factory=list)


class ConversionResult(BaseModel):
    interest_id: UUID
    contract_id: UUID
    contract_code: str
    contract_status: ContractStatus
    installment_count: int


class RecomputeBatchResult(BaseModel):
    processed: int = 0
    changed: int = 0
    unchanged: int = 0
    overdue_marked: int = 0
    conflicts: list[str] = Field(default_factory=list)
