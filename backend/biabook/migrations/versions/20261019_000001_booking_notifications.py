"""booking core + notification queue

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    json_type = sa.JSON().with_variant(postgresql.JSONB, "postgresql")

    op.create_table(
        "businesses",
        _uuid_pk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "services",
        _uuid_pk(),
        sa.Column(
            "business_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
    )
    op.create_index("idx_services_business", "services", ["business_id"], unique=False)

    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column(
            "business_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=32), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmation_number", sa.String(length=16), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','confirmed','cancelled','completed')",
            name="chk_appointment_status",
        ),
    )
    op.create_index(
        "idx_appointments_business_date",
        "appointments",
        ["business_id", "appointment_date"],
        unique=False,
    )

    op.create_table(
        "business_notification_preferences",
        sa.Column(
            "business_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("email", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("whatsapp", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sms", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reminder_email", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("reminder_whatsapp", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("reminder_sms", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
    )

    op.create_table(
        "notification_queue",
        _uuid_pk(),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("recipient_id", sa.String(length=255), nullable=False),
        sa.Column("recipient_type", sa.String(length=16), nullable=False),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("recipient_phone", sa.String(length=32), nullable=True),
        sa.Column("payload", json_type, nullable=False),
        sa.Column("appointment_id", sa.String(length=64), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending','processed','failed')",
            name="chk_notification_queue_status",
        ),
        sa.CheckConstraint(
            "recipient_type IN ('customer','business')",
            name="chk_notification_queue_recipient_type",
        ),
    )
    op.create_index(
        "idx_notification_queue_status_scheduled",
        "notification_queue",
        ["status", "scheduled_for"],
        unique=False,
    )
    op.create_index(
        "idx_notification_queue_appointment",
        "notification_queue",
        ["appointment_id"],
        unique=False,
    )
    op.create_index(
        "idx_notification_queue_status_updated",
        "notification_queue",
        ["status", "updated_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_notification_queue_status_updated", table_name="notification_queue")
    op.drop_index("idx_notification_queue_appointment", table_name="notification_queue")
    op.drop_index("idx_notification_queue_status_scheduled", table_name="notification_queue")
    op.drop_table("notification_queue")
    op.drop_table("business_notification_preferences")
    op.drop_index("idx_appointments_business_date", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("idx_services_business", table_name="services")
    op.drop_table("services")
    op.drop_table("businesses")
