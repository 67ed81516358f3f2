import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class InvestorInterest(Base):
    __tablename__ = "investor_interests"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_interest_version_positive"),
        CheckConstraint(
            "status IN ('new', 'under_review', 'approved', 'rejected', 'converted')",
            name="ck_interest_status",
        ),
        CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL)",
            name="ck_interest_rejection_reason",
        ),
        CheckConstraint(
            "(status = 'converted') = (converted_contract_id IS NOT NULL)",
            name="ck_interest_converted_contract",
        ),
        Index("ix_investor_interests_org_status", "org_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False, index=True)
    reference_number = Column(String(32), nullable=False, unique=True)
    investor_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    asset_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    investment_purpose = Column(String(50), nullable=False)
    proposed_use_description = Column(Text, nullable=True)
    investment_amount_range = Column(String(20), nullable=False)
    expected_timeline = Column(String(20), nullable=False)
    additional_comments = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="new")
    version = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    submitted_by = Column(UUID(as_uuid=True), nullable=True)
    assigned_to_id = Column(UUID(as_uuid=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    # Weak back-reference; the contract owns the link through origin_interest_id.
    converted_contract_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
