from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import (
    ExpectedTimeline,
    InterestStatus,
    InvestmentAmountRange,
    InvestmentPurpose,
    ReviewAction,
)


class InterestSubmitRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    asset_id: UUID
    investor_id: UUID | None = None
    investment_purpose: InvestmentPurpose
    proposed_use_description: str | None = Field(default=None, max_length=4000)
    investment_amount_range: InvestmentAmountRange
    expected_timeline: ExpectedTimeline
    additional_comments: str | None = Field(default=None, max_length=4000)


class InterestStartReviewRequest(BaseModel):
    assigned_to_id: UUID | None = None
    expected_version: int | None = Field(default=None, ge=1)


class InterestReviewRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    action: ReviewAction
    review_notes: str | None = Field(default=None, max_length=4000)
    rejection_reason: str | None = Field(default=None, max_length=4000)
    expected_version: int | None = Field(default=None, ge=1)


class InterestDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    reference_number: str
    investor_id: UUID
    asset_id: UUID
    investment_purpose: InvestmentPurpose
    proposed_use_description: str | None = None
    investment_amount_range: InvestmentAmountRange
    expected_timeline: ExpectedTimeline
    additional_comments: str | None = None
    status: InterestStatus
    version: int
    submitted_at: datetime
    submitted_by: UUID | None = None
    assigned_to_id: UUID | None = None
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    review_notes: str | None = None
    rejection_reason: str | None = None
    converted_contract_id: UUID | None = None
