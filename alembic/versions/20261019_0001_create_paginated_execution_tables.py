"""create paginated_execution_logs and collected_items tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "paginated_execution_logs",
        sa.Column("execution_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "record_id",
            postgresql.UUID(as_uuid=True),
            nullable=False,
            comment="Equals execution_id for the execution's own lifecycle row",
        ),
        sa.Column("record_type", sa.String(length=16), nullable=False, comment="execution, page"),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("method", sa.String(length=16), nullable=True),
        sa.Column("target_url", sa.Text(), nullable=True),
        sa.Column("max_iterations", sa.Integer(), nullable=True),
        sa.Column("persist", sa.Boolean(), nullable=True),
        sa.Column("sink_table", sa.String(length=255), nullable=True),
        sa.Column("page_number", sa.Integer(), nullable=True),
        sa.Column("items_in_page", sa.Integer(), nullable=True),
        sa.Column("total_items_processed", sa.Integer(), nullable=True),
        sa.Column("request_url", sa.Text(), nullable=True),
        sa.Column("response_status", sa.Integer(), nullable=True),
        sa.Column("pagination_type", sa.String(length=16), nullable=True),
        sa.Column("is_last", sa.Boolean(), nullable=False),
        sa.Column(
            "detail",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Final status detail (execution row) or error detail (page row)",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("execution_id", "record_id"),
        sa.UniqueConstraint(
            "execution_id",
            "page_number",
            name="uq_paginated_execution_logs_execution_page",
        ),
    )
    op.create_index(
        "ix_paginated_execution_logs_record_type_status",
        "paginated_execution_logs",
        ["record_type", "status"],
        unique=False,
    )
    op.create_index(
        "ix_paginated_execution_logs_updated_at",
        "paginated_execution_logs",
        ["updated_at"],
        unique=False,
    )

    op.create_table(
        "collected_items",
        sa.Column(
            "table_name",
            sa.String(length=255),
            nullable=False,
            comment="Logical sink table chosen by the submitter",
        ),
        sa.Column(
            "item_id",
            sa.String(length=512),
            nullable=False,
            comment="Derived from source id, execution, page and position",
        ),
        sa.Column("execution_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("page_number", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("table_name", "item_id"),
    )
    op.create_index("ix_collected_items_execution_id", "collected_items", ["execution_id"], unique=False)
    op.create_index(
        "ix_collected_items_table_name_source_id",
        "collected_items",
        ["table_name", "source_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_collected_items_table_name_source_id", table_name="collected_items")
    op.drop_index("ix_collected_items_execution_id", table_name="collected_items")
    op.drop_table("collected_items")
    op.drop_index("ix_paginated_execution_logs_updated_at", table_name="paginated_execution_logs")
    op.drop_index("ix_paginated_execution_logs_record_type_status", table_name="paginated_execution_logs")
    op.drop_table("paginated_execution_logs")
