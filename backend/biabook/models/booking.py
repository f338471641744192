import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from sqlalchemy.types import CHAR, TypeDecorator

Base = declarative_base()


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value if dialect.name == "postgresql" else str(value)
        if isinstance(value, str):
            try:
                parsed = uuid.UUID(value)
            except ValueError:
                return value
            return parsed if dialect.name == "postgresql" else str(parsed)
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(value)
        except ValueError:
            return value


UUID_TYPE = GUID()
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


def _confirmation_number() -> str:
    return uuid.uuid4().hex[:8].upper()


class Business(Base):
    __tablename__ = "businesses"

    id = Column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(32))
    address = Column(Text)
    timezone = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (Index("idx_services_business", "business_id"),)

    id = Column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID_TYPE, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Integer, nullable=False)  # cents
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','confirmed','cancelled','completed')",
            name="chk_appointment_status",
        ),
        Index("idx_appointments_business_date", "business_id", "appointment_date"),
    )

    id = Column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID_TYPE, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(UUID_TYPE, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    status = Column(String(16), nullable=False, default="pending", server_default=text("'pending'"))
    notes = Column(Text)
    confirmation_number = Column(String(16), nullable=False, default=_confirmation_number)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BusinessNotificationPreferences(Base):
    __tablename__ = "business_notification_preferences"

    business_id = Column(
        UUID_TYPE,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    whatsapp = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    sms = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    reminder_email = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    reminder_whatsapp = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    reminder_sms = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class NotificationQueue(Base):
    __tablename__ = "notification_queue"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','processed','failed')",
            name="chk_notification_queue_status",
        ),
        CheckConstraint(
            "recipient_type IN ('customer','business')",
            name="chk_notification_queue_recipient_type",
        ),
        Index("idx_notification_queue_status_scheduled", "status", "scheduled_for"),
        Index("idx_notification_queue_appointment", "appointment_id"),
        Index("idx_notification_queue_status_updated", "status", "updated_at"),
    )

    id = Column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    type = Column(String(64), nullable=False)
    recipient_id = Column(String(255), nullable=False)  # customer email or business id
    recipient_type = Column(String(16), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    recipient_phone = Column(String(32))
    payload = Column(JSON_TYPE, nullable=False)
    # Copied from payload["appointment_id"] so cancellation is an indexed lookup.
    appointment_id = Column(String(64))
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, default="pending", server_default=text("'pending'"))
    attempts = Column(Integer, nullable=False, default=0, server_default=text("0"))
    last_attempt_at = Column(DateTime(timezone=True))
    error = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
