import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class Contract(Base):
    __tablename__ = "contracts"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "total_contract_amount IS NULL OR total_contract_amount > 0",
            name="ck_contract_amount_positive",
        ),
        CheckConstraint(
            "duration_periods IS NULL OR duration_periods > 0",
            name="ck_contract_duration_positive",
        ),
        CheckConstraint("version >= 1", name="ck_contract_version_positive"),
        CheckConstraint(
            "status IN ('draft', 'incomplete', 'active', 'expiring', 'expired', 'archived', 'cancelled')",
            name="ck_contract_status",
        ),
        CheckConstraint(
            "installment_frequency IN ('monthly', 'quarterly', 'semi_annual', 'annual')",
            name="ck_contract_installment_frequency",
        ),
        UniqueConstraint("contract_code", name="uq_contracts_contract_code"),
        UniqueConstraint("origin_interest_id", name="uq_contracts_origin_interest_id"),
        Index("ix_contracts_org_status", "org_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False, index=True)
    contract_code = Column(String(32), nullable=False)
    land_code = Column(String(100), nullable=True)
    asset_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    investor_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    origin_interest_id = Column(
        UUID(as_uuid=True),
        ForeignKey("investor_interests.id", ondelete="SET NULL"),
        nullable=True,
    )
    total_contract_amount = Column(Numeric(18, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="SAR")
    duration_periods = Column(Integer, nullable=True)
    installment_frequency = Column(String(20), nullable=False, default="monthly")
    signing_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    version = Column(Integer, nullable=False, default=1)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(UUID(as_uuid=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(UUID(as_uuid=True), nullable=True)
    cancellation_reason = Column(String(30), nullable=True)
    cancellation_justification = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), nullable=True)
    updated_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    installments = relationship(
        "Installment",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Installment.sequence_number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
