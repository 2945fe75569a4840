"""initial EchoVault schema

Revision ID: 3c1f0e7a9b21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f0e7a9b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.TIMESTAMP(timezone=True)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String()),
        sa.Column("first_name", sa.String()),
        sa.Column("last_name", sa.String()),
        sa.Column("backup_email", sa.String()),
        sa.Column("whatsapp_number", sa.String(32)),
        sa.Column("created_at", TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_profiles_whatsapp_number", "profiles", ["whatsapp_number"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text()),
        sa.Column("message_type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("attachments", sa.JSON()),
        sa.Column("expires_at", TS),
        sa.Column("sender_name", sa.String()),
        sa.Column("share_location", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("location_latitude", sa.Float()),
        sa.Column("location_longitude", sa.Float()),
        sa.Column("location_name", sa.String()),
        sa.Column("created_at", TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_user_id", "messages", ["user_id"])

    op.create_table(
        "recipients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(32)),
        sa.Column("created_at", TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_recipients_user_id", "recipients", ["user_id"])
    op.create_index("ix_recipients_phone", "recipients", ["phone"])

    op.create_table(
        "message_conditions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("message_id", sa.String(36), sa.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("condition_type", sa.String(32), nullable=False),
        sa.Column("hours_threshold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("minutes_threshold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_checked", TS),
        sa.Column("next_check", TS),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("trigger_date", TS),
        sa.Column("recurring_pattern", sa.JSON()),
        sa.Column("panic_config", sa.JSON()),
        sa.Column("pin_code", sa.String()),
        sa.Column("unlock_delay_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expiry_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reminder_hours", sa.JSON()),
        sa.Column("check_in_code", sa.String()),
        sa.Column("created_at", TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_message_conditions_message_id", "message_conditions", ["message_id"])
    op.create_index("ix_message_conditions_active_type", "message_conditions", ["active", "condition_type"])

    op.create_table(
        "reminder_schedule",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("message_id", sa.String(36), sa.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "condition_id", sa.String(36),
            sa.ForeignKey("message_conditions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("scheduled_at", TS, nullable=False),
        sa.Column("reminder_type", sa.String(16), nullable=False, server_default="reminder"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("delivery_priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("retry_strategy", sa.String(16), nullable=False, server_default="standard"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", TS),
        sa.Column("last_error", sa.Text()),
        sa.Column("created_at", TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_reminder_schedule_condition_id", "reminder_schedule", ["condition_id"])
    op.create_index("ix_reminder_schedule_status_scheduled", "reminder_schedule", ["status", "scheduled_at"])

    op.create_table(
        "delivered_messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("message_id", sa.String(36), sa.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("condition_id", sa.String(36)),
        sa.Column("recipient_id", sa.String(36)),
        sa.Column("delivery_id", sa.String(36), nullable=False, unique=True),
        sa.Column("delivered_at", TS, nullable=False, server_default=sa.func.now()),
        sa.Column("viewed_at", TS),
        sa.Column("viewed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pin_verified_at", TS),
        sa.Column("device_info", sa.String()),
    )
    op.create_index("ix_delivered_messages_message_id", "delivered_messages", ["message_id"])

    op.create_table(
        "check_ins",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("timestamp", TS, nullable=False, server_default=sa.func.now()),
        sa.Column("method", sa.String(32), nullable=False, server_default="app"),
        sa.Column("device_info", sa.String()),
    )
    op.create_index("ix_check_ins_user_id", "check_ins", ["user_id"])


def downgrade() -> None:
    for table in (
        "check_ins",
        "delivered_messages",
        "reminder_schedule",
        "message_conditions",
        "recipients",
        "messages",
        "profiles",
    ):
        op.drop_table(table)
