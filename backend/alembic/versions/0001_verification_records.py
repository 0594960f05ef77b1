"""verification records table

Revision ID: 0001_verification_records
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_verification_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "verification_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(length=10), nullable=False),
        sa.Column("value", sa.String(length=320), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("verification_code", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rate_bucket", sa.Integer(), nullable=True),
        sa.Column("requester_ip", sa.String(length=64), nullable=True),
        sa.Column("requester_agent", sa.String(length=512), nullable=True),
        sa.Column("validation_payload", sa.JSON(), nullable=True),
        sa.Column("response_latency_ms", sa.Integer(), nullable=True),
        sa.Column("quality_score", sa.Float(), nullable=True),
        sa.Column("risk_tier", sa.String(length=10), nullable=True),
        sa.CheckConstraint("kind IN ('email', 'phone')", name="ck_verification_kind"),
        sa.CheckConstraint("status IN ('pending', 'verified', 'failed')", name="ck_verification_status"),
        sa.CheckConstraint("risk_tier IN ('low', 'medium', 'high')", name="ck_verification_risk_tier"),
        # second attempt for the same value in the same window bucket loses
        sa.UniqueConstraint("kind", "value", "rate_bucket", name="uq_verification_kind_value_bucket"),
    )

    op.create_index("idx_verification_kind_value", "verification_records", ["kind", "value"])
    op.create_index("ix_verification_records_status", "verification_records", ["status"])
    op.create_index("ix_verification_records_created_at", "verification_records", ["created_at"])
    op.create_index("ix_verification_records_quality_score", "verification_records", ["quality_score"])
    op.create_index("ix_verification_records_risk_tier", "verification_records", ["risk_tier"])


def downgrade():
    op.drop_index("ix_verification_records_risk_tier", table_name="verification_records")
    op.drop_index("ix_verification_records_quality_score", table_name="verification_records")
    op.drop_index("ix_verification_records_created_at", table_name="verification_records")
    op.drop_index("ix_verification_records_status", table_name="verification_records")
    op.drop_index("idx_verification_kind_value", table_name="verification_records")
    op.drop_table("verification_records")
