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
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class Installment(Base):
    __tablename__ = "installments"
    __allow_unmapped__ = True
    __table_args__ = (
        UniqueConstraint("contract_id", "sequence_number", name="uq_installment_contract_seq"),
        CheckConstraint("sequence_number >= 1", name="ck_installment_seq_positive"),
        CheckConstraint("amount_due >= 0", name="ck_installment_amount_nonneg"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'overdue')",
            name="ck_installment_status",
        ),
        CheckConstraint(
            "(status = 'paid') = (paid_at IS NOT NULL)",
            name="ck_installment_paid_at",
        ),
        Index("ix_installments_org_due", "org_id", "due_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    contract_id = Column(
        UUID(as_uuid=True),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount_due = Column(Numeric(18, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    recorded_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    contract = relationship("Contract", back_populates="installments")
