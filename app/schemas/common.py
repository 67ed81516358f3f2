from __future__ import annotations

from enum import Enum


class InterestStatus(str, Enum):
    NEW = "new"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


TERMINAL_INTEREST_STATUSES = frozenset({InterestStatus.REJECTED, InterestStatus.CONVERTED})


class ContractStatus(str, Enum):
    DRAFT = "draft"
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


ADMINISTRATIVE_STATUSES = frozenset({ContractStatus.ARCHIVED, ContractStatus.CANCELLED})


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class InstallmentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"

    @property
    def months(self) -> int:
        return {"monthly": 1, "quarterly": 3, "semi_annual": 6, "annual": 12}[self.value]


class InvestmentPurpose(str, Enum):
    COMMERCIAL_DEVELOPMENT = "commercial_development"
    RESIDENTIAL_PROJECT = "residential_project"
    MIXED_USE = "mixed_use"
    EDUCATIONAL_FACILITY = "educational_facility"
    HEALTHCARE_FACILITY = "healthcare_facility"
    RETAIL_CENTER = "retail_center"
    INDUSTRIAL_WAREHOUSE = "industrial_warehouse"
    OTHER = "other"


class InvestmentAmountRange(str, Enum):
    UNDER_1M = "under_1m"
    FROM_1M_TO_5M = "1m_5m"
    FROM_5M_TO_10M = "5m_10m"
    FROM_10M_TO_50M = "10m_50m"
    FROM_50M_TO_100M = "50m_100m"
    OVER_100M = "over_100m"


class ExpectedTimeline(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    MID_TERM = "mid_term"
    LONG_TERM = "long_term"
    OVER_2_YEARS = "over_2_years"


class CancellationReason(str, Enum):
    INVESTOR_DEFAULT = "investor_default"
    ASSET_ISSUES = "asset_issues"
    MUTUAL_AGREEMENT = "mutual_agreement"
    LEGAL_REGULATORY = "legal_regulatory"
    FORCE_MAJEURE = "force_majeure"
    OTHER = "other"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
