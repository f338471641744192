from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_REMINDER_24H = "booking_reminder_24h"
    BOOKING_REMINDER_2H = "booking_reminder_2h"
    BOOKING_REMINDER_30M = "booking_reminder_30m"
    BOOKING_CANCELLATION = "booking_cancellation"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    BUSINESS_NEW_BOOKING = "business_new_booking"
    BUSINESS_BOOKING_CANCELLED = "business_booking_cancelled"
    BUSINESS_BOOKING_REMINDER = "business_booking_reminder"
    BUSINESS_BOOKING_RESCHEDULED = "business_booking_rescheduled"


class RecipientType(str, Enum):
    CUSTOMER = "customer"
    BUSINESS = "business"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    # Declared for preferences only; no sender exists for it.
    SMS = "sms"


class BookingEvent(str, Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class ProcessRequest(BaseModel):
    limit: int = Field(default=10, ge=1, le=100)


class ProcessResponse(BaseModel):
    success: bool = True
    processed_count: int
    timestamp: datetime


class QueueItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    recipient_type: str
    recipient_email: str
    scheduled_for: datetime
    status: str
    attempts: int
    last_attempt_at: Optional[datetime] = None
    error: Optional[str] = None


class PendingResponse(BaseModel):
    success: bool = True
    count: int
    notifications: list[QueueItemOut]


class DeliveryStatusItem(BaseModel):
    id: str
    type: str
    channel: Literal["email", "whatsapp"]
    status: Literal["pending", "delivered", "failed"]
    recipient: str
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    retry_count: int = 0


class DeliveryStatusResponse(BaseModel):
    success: bool = True
    appointment_id: str
    notifications: list[DeliveryStatusItem]


class RetryResponse(BaseModel):
    success: bool = True
    message: str
    notification_id: str


class CleanupResponse(BaseModel):
    success: bool = True
    deleted_count: int
    retention_days: int
    cutoff: datetime


class WorkerStatusResponse(BaseModel):
    processor: dict[str, Any]
    cleanup: dict[str, Any]


class BookingEventRequest(BaseModel):
    event: BookingEvent


class BookingEventResponse(BaseModel):
    success: bool = True
    appointment_id: str
    event: BookingEvent
