from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from biabook.models.booking import (
    Appointment,
    Business,
    BusinessNotificationPreferences,
    Service,
)


@dataclass(frozen=True)
class NotificationPreferences:
    business_id: str
    email: bool = True
    whatsapp: bool = True
    sms: bool = False
    reminder_email: bool = True
    reminder_whatsapp: bool = True
    reminder_sms: bool = False

    @property
    def immediate_enabled(self) -> bool:
        return self.email or self.whatsapp

    @property
    def reminders_enabled(self) -> bool:
        return self.reminder_email or self.reminder_whatsapp


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _get(db: Session, model, entity_id: Any):
    key = _as_uuid(entity_id)
    if key is None:
        return None
    return db.get(model, key)


def get_appointment_by_id(db: Session, appointment_id: Any) -> Optional[Appointment]:
    return _get(db, Appointment, appointment_id)


def get_service_by_id(db: Session, service_id: Any) -> Optional[Service]:
    return _get(db, Service, service_id)


def get_business_by_id(db: Session, business_id: Any) -> Optional[Business]:
    return _get(db, Business, business_id)


def get_business_notification_preferences(db: Session, business_id: Any) -> NotificationPreferences:
    """Stored preferences, or the defaults (email/WhatsApp on, SMS off) when none are saved."""
    row = _get(db, BusinessNotificationPreferences, business_id)
    if row is None:
        return NotificationPreferences(business_id=str(business_id))
    return NotificationPreferences(
        business_id=str(row.business_id),
        email=bool(row.email),
        whatsapp=bool(row.whatsapp),
        sms=bool(row.sms),
        reminder_email=bool(row.reminder_email),
        reminder_whatsapp=bool(row.reminder_whatsapp),
        reminder_sms=bool(row.reminder_sms),
    )
