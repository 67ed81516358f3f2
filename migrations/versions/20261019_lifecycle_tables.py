"""investor interests, contracts, installments and audit logs

Revision ID: 20261019_lifecycle_tables
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_lifecycle_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "investor_interests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("reference_number", sa.String(32), nullable=False),
        sa.Column("investor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("investment_purpose", sa.String(50), nullable=False),
        sa.Column("proposed_use_description", sa.Text(), nullable=True),
        sa.Column("investment_amount_range", sa.String(20), nullable=False),
        sa.Column("expected_timeline", sa.String(20), nullable=False),
        sa.Column("additional_comments", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_to_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("converted_contract_id", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("reference_number", name="uq_investor_interests_reference_number"),
        sa.CheckConstraint("version >= 1", name="ck_interest_version_positive"),
        sa.CheckConstraint(
            "status IN ('new', 'under_review', 'approved', 'rejected', 'converted')",
            name="ck_interest_status",
        ),
        sa.CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL)",
            name="ck_interest_rejection_reason",
        ),
        sa.CheckConstraint(
            "(status = 'converted') = (converted_contract_id IS NOT NULL)",
            name="ck_interest_converted_contract",
        ),
    )
    op.create_index("ix_investor_interests_org_id", "investor_interests", ["org_id"])
    op.create_index("ix_investor_interests_investor_id", "investor_interests", ["investor_id"])
    op.create_index("ix_investor_interests_asset_id", "investor_interests", ["asset_id"])
    op.create_index("ix_investor_interests_org_status", "investor_interests", ["org_id", "status"])

    op.create_table(
        "contracts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("contract_code", sa.String(32), nullable=False),
        sa.Column("land_code", sa.String(100), nullable=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("investor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("origin_interest_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("total_contract_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="SAR"),
        sa.Column("duration_periods", sa.Integer(), nullable=True),
        sa.Column("installment_frequency", sa.String(20), nullable=False, server_default="monthly"),
        sa.Column("signing_date", sa.Date(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(30), nullable=True),
        sa.Column("cancellation_justification", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("contract_code", name="uq_contracts_contract_code"),
        sa.UniqueConstraint("origin_interest_id", name="uq_contracts_origin_interest_id"),
        sa.ForeignKeyConstraint(["origin_interest_id"], ["investor_interests.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "total_contract_amount IS NULL OR total_contract_amount > 0",
            name="ck_contract_amount_positive",
        ),
        sa.CheckConstraint(
            "duration_periods IS NULL OR duration_periods > 0",
            name="ck_contract_duration_positive",
        ),
        sa.CheckConstraint("version >= 1", name="ck_contract_version_positive"),
        sa.CheckConstraint(
            "status IN ('draft', 'incomplete', 'active', 'expiring', 'expired', 'archived', 'cancelled')",
            name="ck_contract_status",
        ),
        sa.CheckConstraint(
            "installment_frequency IN ('monthly', 'quarterly', 'semi_annual', 'annual')",
            name="ck_contract_installment_frequency",
        ),
    )
    op.create_index("ix_contracts_org_id", "contracts", ["org_id"])
    op.create_index("ix_contracts_asset_id", "contracts", ["asset_id"])
    op.create_index("ix_contracts_investor_id", "contracts", ["investor_id"])
    op.create_index("ix_contracts_status", "contracts", ["status"])
    op.create_index("ix_contracts_org_status", "contracts", ["org_id", "status"])

    op.create_table(
        "installments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("contract_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount_due", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recorded_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["contract_id"], ["contracts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("contract_id", "sequence_number", name="uq_installment_contract_seq"),
        sa.CheckConstraint("sequence_number >= 1", name="ck_installment_seq_positive"),
        sa.CheckConstraint("amount_due >= 0", name="ck_installment_amount_nonneg"),
        sa.CheckConstraint("status IN ('pending', 'paid', 'overdue')", name="ck_installment_status"),
        sa.CheckConstraint("(status = 'paid') = (paid_at IS NOT NULL)", name="ck_installment_paid_at"),
    )
    op.create_index("ix_installments_contract_id", "installments", ["contract_id"])
    op.create_index("ix_installments_org_due", "installments", ["org_id", "due_date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("resource_type", sa.String(255), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_index("ix_audit_logs_org_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_installments_org_due", table_name="installments")
    op.drop_index("ix_installments_contract_id", table_name="installments")
    op.drop_table("installments")

    op.drop_index("ix_contracts_org_status", table_name="contracts")
    op.drop_index("ix_contracts_status", table_name="contracts")
    op.drop_index("ix_contracts_investor_id", table_name="contracts")
    op.drop_index("ix_contracts_asset_id", table_name="contracts")
    op.drop_index("ix_contracts_org_id", table_name="contracts")
    op.drop_table("contracts")

    op.drop_index("ix_investor_interests_org_status", table_name="investor_interests")
    op.drop_index("ix_investor_interests_asset_id", table_name="investor_interests")
    op.drop_index("ix_investor_interests_investor_id", table_name="investor_interests")
    op.drop_index("ix_investor_interests_org_id", table_name="investor_interests")
    op.drop_table("investor_interests")
