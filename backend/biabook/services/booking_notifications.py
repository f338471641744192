"""
Hooks the booking layer calls after it has persisted an appointment change.

None of these raise: a booking change succeeds whether or not its notifications
could be queued. Each hook commits its own queue writes.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from biabook.models.booking import Appointment, Business, Service
from biabook.services.notification_queue import cancel_notifications_for_appointment
from biabook.services.notification_scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


def _run(db: Session, label: str, appointment: Appointment, action) -> bool:
    try:
        action()
        db.commit()
        return True
    except Exception:
        db.rollback()
        logger.exception("Failed to queue booking notifications: event=%s appointment_id=%s", label, appointment.id)
        return False


def on_booking_created(
    db: Session,
    scheduler: NotificationScheduler,
    appointment: Appointment,
    service: Service,
    business: Business,
) -> bool:
    def action() -> None:
        scheduler.schedule_booking_confirmation(db, appointment, service, business)
        scheduler.schedule_booking_reminders(db, appointment, service, business)

    return _run(db, "created", appointment, action)


def on_booking_confirmed(
    db: Session,
    scheduler: NotificationScheduler,
    appointment: Appointment,
    service: Service,
    business: Business,
) -> bool:
    return _run(
        db,
        "confirmed",
        appointment,
        lambda: scheduler.schedule_booking_confirmation(db, appointment, service, business),
    )


def on_booking_cancelled(
    db: Session,
    scheduler: NotificationScheduler,
    appointment: Appointment,
    service: Service,
    business: Business,
) -> bool:
    def action() -> None:
        # Suppress in-flight reminders before queueing the cancellation notices themselves.
        cancelled = cancel_notifications_for_appointment(db, appointment.id)
        logger.info("Pending notifications suppressed: appointment_id=%s count=%s", appointment.id, cancelled)
        scheduler.schedule_booking_cancellation(db, appointment, service, business)

    return _run(db, "cancelled", appointment, action)


def on_booking_rescheduled(
    db: Session,
    scheduler: NotificationScheduler,
    appointment: Appointment,
    service: Service,
    business: Business,
) -> bool:
    def action() -> None:
        cancel_notifications_for_appointment(db, appointment.id)
        scheduler.schedule_booking_rescheduled(db, appointment, service, business)
        scheduler.schedule_booking_reminders(db, appointment, service, business)

    return _run(db, "rescheduled", appointment, action)
