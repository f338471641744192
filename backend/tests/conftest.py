import os
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Background loops must never autostart while the app module is imported in tests.
os.environ.setdefault("ENVIRONMENT", "test")

from biabook.core.config import get_settings  # noqa: E402
from biabook.models.booking import Appointment, Base, Business, BusinessNotificationPreferences, Service  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Some tests mutate env vars and clear the settings cache. Ensure we don't leak
    # a cached Settings instance across tests.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine():
    # One shared in-memory connection; the processor drains from a worker thread.
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def utc_in(**delta) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**delta)


def make_business(db, **overrides) -> Business:
    values = {
        "id": uuid.uuid4(),
        "name": "Bia Salon",
        "email": "owner@biasalon.example.com",
        "phone": "(555) 123-4567",
        "address": "1 Main St",
        "timezone": None,
    }
    values.update(overrides)
    business = Business(**values)
    db.add(business)
    db.flush()
    return business


def make_service(db, business: Business, **overrides) -> Service:
    values = {
        "id": uuid.uuid4(),
        "business_id": business.id,
        "name": "Haircut",
        "duration": 60,
        "price": 4550,
        "is_active": True,
    }
    values.update(overrides)
    service = Service(**values)
    db.add(service)
    db.flush()
    return service


def make_appointment(db, business: Business, service: Service, starts_at: datetime | None = None, **overrides) -> Appointment:
    # Without a business timezone the wall-clock fields are read as UTC.
    starts_at = (starts_at or utc_in(hours=48)).astimezone(timezone.utc).replace(second=0, microsecond=0)
    ends_at = starts_at + timedelta(minutes=int(service.duration))
    values = {
        "id": uuid.uuid4(),
        "business_id": business.id,
        "service_id": service.id,
        "customer_name": "John Doe",
        "customer_email": "john@example.com",
        "customer_phone": "+15550001111",
        "appointment_date": starts_at.date(),
        "start_time": starts_at.strftime("%H:%M"),
        "end_time": ends_at.strftime("%H:%M"),
        "status": "confirmed",
        "confirmation_number": "ABC12345",
    }
    values.update(overrides)
    appointment = Appointment(**values)
    db.add(appointment)
    db.flush()
    return appointment


def make_preferences(db, business: Business, **overrides) -> BusinessNotificationPreferences:
    row = BusinessNotificationPreferences(business_id=business.id, **overrides)
    db.add(row)
    db.flush()
    return row


@pytest.fixture
def booking(db):
    """A business, one of its services and a confirmed appointment 48 hours from now."""
    business = make_business(db)
    service = make_service(db, business)
    appointment = make_appointment(db, business, service)
    db.commit()
    return appointment, service, business


@pytest.fixture
def email_sender():
    sender = MagicMock()
    sender.send_email.return_value = True
    sender.is_configured = True
    return sender


@pytest.fixture
def whatsapp_sender():
    sender = MagicMock()
    sender.send_new_booking_notification.return_value = True
    sender.send_cancellation_notification.return_value = True
    sender.send_reminder_notification.return_value = True
    sender.send_rescheduled_notification.return_value = True
    return sender


@pytest.fixture
def dispatcher(email_sender, whatsapp_sender):
    from biabook.services.notification_service import NotificationService

    return NotificationService(
        email_service=email_sender,
        whatsapp_service=whatsapp_sender,
        base_url="https://app.biabook.example.com",
    )


@pytest.fixture
def scheduler(dispatcher):
    from biabook.services.notification_scheduler import NotificationScheduler

    return NotificationScheduler(dispatcher, default_timezone="UTC")
