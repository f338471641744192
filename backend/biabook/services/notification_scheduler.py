from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from biabook.models.booking import Appointment, Business, NotificationQueue, Service
from biabook.schemas.notifications import NotificationType, RecipientType
from biabook.services import booking_reads
from biabook.services.notification_queue import (
    PENDING,
    enqueue_notification,
    get_pending_notifications,
    mark_as_failed,
    mark_as_processed,
)
from biabook.services.notification_service import NotificationService
from biabook.utils.formatting import parse_hhmm
from biabook.utils.timeutil import utc_now

logger = logging.getLogger(__name__)

CUSTOMER_REMINDER_OFFSETS: tuple[tuple[NotificationType, timedelta], ...] = (
    (NotificationType.BOOKING_REMINDER_24H, timedelta(hours=24)),
    (NotificationType.BOOKING_REMINDER_2H, timedelta(hours=2)),
)
BUSINESS_REMINDER_OFFSET = timedelta(hours=24)


class NotificationScheduler:
    """
    Turns booking events into queue rows and drains due rows through the dispatch service.

    Enqueue methods add rows to the session without committing; the caller owns that
    transaction. ``process_pending_notifications`` commits after every item so one bad
    row never rolls back the outcome of the others.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        *,
        default_timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notification_service = notification_service
        self.default_timezone = default_timezone
        self._clock = clock

        self._customer_handlers = {
            NotificationType.BOOKING_CONFIRMATION.value: notification_service.send_booking_confirmation_to_customer,
            NotificationType.BOOKING_REMINDER_24H.value: notification_service.send_booking_reminder_to_customer,
            NotificationType.BOOKING_REMINDER_2H.value: notification_service.send_booking_reminder_to_customer,
            NotificationType.BOOKING_REMINDER_30M.value: notification_service.send_booking_reminder_to_customer,
            NotificationType.BOOKING_CANCELLATION.value: notification_service.send_booking_cancellation_to_customer,
            NotificationType.BOOKING_RESCHEDULED.value: notification_service.send_booking_rescheduled_to_customer,
        }
        self._business_handlers = {
            NotificationType.BUSINESS_NEW_BOOKING.value: notification_service.send_booking_notification_to_business,
            NotificationType.BUSINESS_BOOKING_CANCELLED.value: notification_service.send_cancellation_notification_to_business,
            NotificationType.BUSINESS_BOOKING_REMINDER.value: notification_service.send_reminder_notification_to_business,
            NotificationType.BUSINESS_BOOKING_RESCHEDULED.value: notification_service.send_rescheduled_notification_to_business,
        }

    def now(self) -> datetime:
        return self._clock()

    # ── Enqueue side ─────────────────────────────────────────

    @staticmethod
    def _payload(appointment: Appointment, service: Service, business: Business) -> dict[str, str]:
        return {
            "appointment_id": str(appointment.id),
            "service_id": str(service.id),
            "business_id": str(business.id),
        }

    def _enqueue_customer(
        self,
        db: Session,
        notification_type: NotificationType,
        appointment: Appointment,
        service: Service,
        business: Business,
        scheduled_for: datetime,
    ) -> str:
        return enqueue_notification(
            db,
            type=notification_type,
            recipient_id=appointment.customer_email,
            recipient_type=RecipientType.CUSTOMER,
            recipient_email=appointment.customer_email,
            recipient_phone=appointment.customer_phone,
            payload=self._payload(appointment, service, business),
            scheduled_for=scheduled_for,
        )

    def _enqueue_business(
        self,
        db: Session,
        notification_type: NotificationType,
        appointment: Appointment,
        service: Service,
        business: Business,
        scheduled_for: datetime,
    ) -> Optional[str]:
        if not business.email:
            logger.warning(
                "Business email missing; notification skipped: business_id=%s type=%s",
                business.id,
                notification_type.value,
            )
            return None
        return enqueue_notification(
            db,
            type=notification_type,
            recipient_id=str(business.id),
            recipient_type=RecipientType.BUSINESS,
            recipient_email=business.email,
            recipient_phone=business.phone,
            payload=self._payload(appointment, service, business),
            scheduled_for=scheduled_for,
        )

    def _schedule_immediate_pair(
        self,
        db: Session,
        appointment: Appointment,
        service: Service,
        business: Business,
        *,
        customer_type: NotificationType,
        business_type: NotificationType,
    ) -> list[str]:
        now = self.now()
        ids = [self._enqueue_customer(db, customer_type, appointment, service, business, now)]

        preferences = booking_reads.get_business_notification_preferences(db, business.id)
        if preferences.immediate_enabled:
            business_id = self._enqueue_business(db, business_type, appointment, service, business, now)
            if business_id:
                ids.append(business_id)
        return ids

    def schedule_booking_confirmation(
        self, db: Session, appointment: Appointment, service: Service, business: Business
    ) -> list[str]:
        return self._schedule_immediate_pair(
            db,
            appointment,
            service,
            business,
            customer_type=NotificationType.BOOKING_CONFIRMATION,
            business_type=NotificationType.BUSINESS_NEW_BOOKING,
        )

    def schedule_booking_cancellation(
        self, db: Session, appointment: Appointment, service: Service, business: Business
    ) -> list[str]:
        return self._schedule_immediate_pair(
            db,
            appointment,
            service,
            business,
            customer_type=NotificationType.BOOKING_CANCELLATION,
            business_type=NotificationType.BUSINESS_BOOKING_CANCELLED,
        )

    def schedule_booking_rescheduled(
        self, db: Session, appointment: Appointment, service: Service, business: Business
    ) -> list[str]:
        return self._schedule_immediate_pair(
            db,
            appointment,
            service,
            business,
            customer_type=NotificationType.BOOKING_RESCHEDULED,
            business_type=NotificationType.BUSINESS_BOOKING_RESCHEDULED,
        )

    def appointment_starts_at(self, appointment: Appointment, business: Business) -> datetime:
        """Absolute UTC start of the appointment, read in the business's timezone."""
        tz_name = business.timezone or self.default_timezone
        try:
            zone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown business timezone, using UTC: business_id=%s timezone=%s", business.id, tz_name)
            zone = timezone.utc
        local = datetime.combine(appointment.appointment_date, parse_hhmm(appointment.start_time), tzinfo=zone)
        return local.astimezone(timezone.utc)

    def schedule_booking_reminders(
        self, db: Session, appointment: Appointment, service: Service, business: Business
    ) -> list[str]:
        starts_at = self.appointment_starts_at(appointment, business)
        now = self.now()
        ids: list[str] = []

        for notification_type, offset in CUSTOMER_REMINDER_OFFSETS:
            remind_at = starts_at - offset
            if remind_at > now:
                ids.append(self._enqueue_customer(db, notification_type, appointment, service, business, remind_at))

        business_remind_at = starts_at - BUSINESS_REMINDER_OFFSET
        if business_remind_at > now:
            preferences = booking_reads.get_business_notification_preferences(db, business.id)
            if preferences.reminders_enabled:
                business_id = self._enqueue_business(
                    db,
                    NotificationType.BUSINESS_BOOKING_REMINDER,
                    appointment,
                    service,
                    business,
                    business_remind_at,
                )
                if business_id:
                    ids.append(business_id)

        logger.info(
            "Booking reminders scheduled: appointment_id=%s starts_at=%s count=%s",
            appointment.id,
            starts_at.isoformat(),
            len(ids),
        )
        return ids

    # ── Processing side ──────────────────────────────────────

    def process_pending_notifications(self, db: Session, limit: int = 10) -> int:
        """Drains up to ``limit`` due items one at a time. Returns the number delivered."""
        processed_count = 0
        for notification in get_pending_notifications(db, limit):
            notification_id = notification.id
            if notification.status != PENDING:
                logger.info(
                    "Skipping notification no longer pending: id=%s status=%s", notification_id, notification.status
                )
                continue
            try:
                if self._process_one(db, notification):
                    processed_count += 1
                db.commit()
            except Exception as exc:
                logger.exception("Error processing notification: id=%s", notification_id)
                db.rollback()
                mark_as_failed(db, notification_id, str(exc) or exc.__class__.__name__)
                db.commit()

        if processed_count:
            logger.info("Notifications processed: count=%s", processed_count)
        return processed_count

    def _process_one(self, db: Session, notification: NotificationQueue) -> bool:
        payload = notification.payload or {}

        appointment = booking_reads.get_appointment_by_id(db, payload.get("appointment_id"))
        if appointment is None:
            mark_as_failed(db, notification.id, "Appointment not found")
            return False

        service = booking_reads.get_service_by_id(db, payload.get("service_id"))
        if service is None:
            mark_as_failed(db, notification.id, "Service not found")
            return False

        business = booking_reads.get_business_by_id(db, payload.get("business_id"))
        if business is None:
            mark_as_failed(db, notification.id, "Business not found")
            return False

        if notification.recipient_type == RecipientType.CUSTOMER.value:
            handler = self._customer_handlers.get(notification.type)
            kind = "customer"
        else:
            handler = self._business_handlers.get(notification.type)
            kind = "business"

        if handler is None:
            logger.error("Unknown %s notification type: id=%s type=%s", kind, notification.id, notification.type)
            success = False
        else:
            success = handler(appointment, service, business)

        if success:
            mark_as_processed(db, notification.id)
            return True
        mark_as_failed(db, notification.id, "Failed to send notification")
        return False
