"""initial schema: data sources, sync logs, import registry, members

Revision ID: 0001
Revises:
Create Date: 2025-01-06 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "data_sources",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("site_id", sa.String(36), nullable=True),
        sa.Column("source_type", sa.String(50), nullable=False),
        sa.Column("destination_type", sa.String(50), nullable=False),
        sa.Column("table_name", sa.String(255), nullable=True),
        sa.Column("config", postgresql.JSONB(), nullable=True),
        sa.Column("column_config", postgresql.JSONB(), nullable=True),
        sa.Column("field_mappings", postgresql.JSONB(), nullable=True),
        sa.Column("schedule", postgresql.JSONB(), nullable=True),
        sa.Column("sync_status", sa.String(20), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_attempt", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_data_sources_site_id", "data_sources", ["site_id"])
    op.create_index("ix_data_sources_sync_status", "data_sources", ["sync_status"])
    op.create_index("ix_data_sources_next_sync_at", "data_sources", ["next_sync_at"])

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("data_source_id", sa.String(36), sa.ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("records_imported", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("errors", postgresql.JSONB(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_logs_data_source_id", "sync_logs", ["data_source_id"])
    op.create_index("ix_sync_logs_status", "sync_logs", ["status"])
    op.create_index("ix_sync_logs_started_at", "sync_logs", ["started_at"])

    op.create_table(
        "import_tables",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("data_source_id", sa.String(36), sa.ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("table_name", sa.String(255), nullable=False, unique=True),
        sa.Column("columns", postgresql.JSONB(), nullable=True),
        sa.Column("row_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("site_id", sa.String(36), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("membership_status", sa.String(50), nullable=False),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column("address_line1", sa.String(255), nullable=True),
        sa.Column("address_line2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "email", name="uq_members_site_email"),
    )
    op.create_index("ix_members_site_id", "members", ["site_id"])
    op.create_index("ix_members_email", "members", ["email"])

    op.create_table(
        "member_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("member_id", sa.String(36), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("transaction_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("reference_number", sa.String(100), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_member_transactions_member_id", "member_transactions", ["member_id"])

    op.create_table(
        "member_visits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("member_id", sa.String(36), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("site_id", sa.String(36), nullable=True),
        sa.Column("visit_date", sa.Date(), nullable=False),
        sa.Column("check_in_time", sa.String(20), nullable=True),
        sa.Column("check_out_time", sa.String(20), nullable=True),
        sa.Column("visit_type", sa.String(50), nullable=False),
        sa.Column("service_name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_member_visits_member_id", "member_visits", ["member_id"])
    op.create_index("ix_member_visits_site_id", "member_visits", ["site_id"])


def downgrade() -> None:
    op.drop_table("member_visits")
    op.drop_table("member_transactions")
    op.drop_table("members")
    op.drop_table("import_tables")
    op.drop_table("sync_logs")
    op.drop_table("data_sources")
