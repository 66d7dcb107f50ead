"""Create communication lifecycle tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Catalog
    op.create_table(
        "communication_types",
        sa.Column("type_code", sa.String(50), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "communication_type_statuses",
        sa.Column(
            "type_code",
            sa.String(50),
            sa.ForeignKey("communication_types.type_code", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("status_code", sa.String(50), primary_key=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("display_order", sa.Integer, nullable=False),
    )

    # Communications and their history
    op.create_table(
        "communications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("type_code", sa.String(50), nullable=False),
        sa.Column("current_status", sa.String(50), nullable=False),
        sa.Column("created_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("source_file_url", sa.String(200), nullable=True),
    )
    op.create_index("ix_communications_type_code", "communications", ["type_code"])
    op.create_index("ix_communications_current_status", "communications", ["current_status"])
    op.create_index("ix_communications_last_updated_utc", "communications", ["last_updated_utc"])
    op.create_index("ix_communications_type_status", "communications", ["type_code", "current_status"])

    op.create_table(
        "communication_status_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "communication_id",
            sa.Integer,
            sa.ForeignKey("communications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status_code", sa.String(50), nullable=False),
        sa.Column("occurred_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
    )
    op.create_index(
        "ix_communication_status_history_communication_id",
        "communication_status_history",
        ["communication_id"],
    )
    op.create_index(
        "ix_communication_status_history_status_code",
        "communication_status_history",
        ["status_code"],
    )
    op.create_index(
        "ix_communication_status_history_occurred_utc",
        "communication_status_history",
        ["occurred_utc"],
    )

    # Outbox
    op.create_table(
        "event_outbox",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("communication_id", sa.Integer, nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("created_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivered_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
    )
    op.create_index("ix_event_outbox_communication_id", "event_outbox", ["communication_id"])
    op.create_index("ix_event_outbox_pending", "event_outbox", ["delivered_utc", "created_utc"])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("event_outbox")
    op.drop_table("communication_status_history")
    op.drop_table("communications")
    op.drop_table("communication_type_statuses")
    op.drop_table("communication_types")
