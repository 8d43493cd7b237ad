"""create import_configurations and import_execution_history tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "import_configurations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("target_source_id", sa.String(length=4), nullable=False),
        sa.Column("target_content_type", sa.String(length=255), nullable=False),
        sa.Column("api_url", sa.String(length=2048), nullable=False),
        sa.Column("http_method", sa.String(length=10), nullable=False, server_default="GET"),
        sa.Column("auth_type", sa.String(length=16), nullable=False, server_default="none"),
        sa.Column("auth_key_or_username", sa.String(length=255), nullable=True),
        sa.Column("auth_value_or_password", sa.String(length=2048), nullable=True),
        sa.Column("custom_headers", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("json_path", sa.String(length=500), nullable=True),
        sa.Column("id_field_mapping", sa.String(length=255), nullable=False),
        sa.Column("field_mappings", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("language_routing", sa.String(length=10), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("schedule_frequency", sa.String(length=16), nullable=False, server_default="none"),
        sa.Column("schedule_interval_value", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("schedule_time_of_day", sa.Time(), nullable=True),
        sa.Column("schedule_day_of_week", sa.Integer(), nullable=True),
        sa.Column("schedule_day_of_month", sa.Integer(), nullable=True),
        sa.Column("next_scheduled_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("consecutive_failures", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_import_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_import_success", sa.Boolean(), nullable=True),
        sa.Column("last_import_error", sa.Text(), nullable=True),
        sa.Column("last_import_count", sa.Integer(), nullable=True),
        sa.Column("notification_email", sa.String(length=255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_import_configurations_target_source_id",
        "import_configurations",
        ["target_source_id"],
        unique=False,
    )
    op.create_index("ix_import_configurations_is_active", "import_configurations", ["is_active"], unique=False)
    op.create_index(
        "ix_import_configurations_next_scheduled_run_at",
        "import_configurations",
        ["next_scheduled_run_at"],
        unique=False,
    )
    op.create_index(
        "ix_import_configurations_next_retry_at",
        "import_configurations",
        ["next_retry_at"],
        unique=False,
    )

    op.create_table(
        "import_execution_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("import_configuration_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("items_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_imported", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("warnings", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("was_retry", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("retry_attempt", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("was_scheduled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(
            ["import_configuration_id"],
            ["import_configurations.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_import_execution_history_configuration_id",
        "import_execution_history",
        ["import_configuration_id"],
        unique=False,
    )
    op.create_index(
        "ix_import_execution_history_executed_at",
        "import_execution_history",
        ["executed_at"],
        unique=False,
    )
    op.create_index(
        "ix_import_execution_history_configuration_executed_at",
        "import_execution_history",
        ["import_configuration_id", "executed_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_import_execution_history_configuration_executed_at",
        table_name="import_execution_history",
    )
    op.drop_index("ix_import_execution_history_executed_at", table_name="import_execution_history")
    op.drop_index("ix_import_execution_history_configuration_id", table_name="import_execution_history")
    op.drop_table("import_execution_history")

    op.drop_index("ix_import_configurations_next_retry_at", table_name="import_configurations")
    op.drop_index("ix_import_configurations_next_scheduled_run_at", table_name="import_configurations")
    op.drop_index("ix_import_configurations_is_active", table_name="import_configurations")
    op.drop_index("ix_import_configurations_target_source_id", table_name="import_configurations")
    op.drop_table("import_configurations")
