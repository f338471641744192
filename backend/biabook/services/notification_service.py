"""
Channel selection for a single notification.

Customer notifications go out by e-mail. Business notifications try WhatsApp first and
fall back to e-mail only when WhatsApp does not report success.
"""

from __future__ import annotations

import logging
from typing import Callable

from biabook.models.booking import Appointment, Business, Service
from biabook.services import email_templates
from biabook.services.email_service import EmailService
from biabook.services.whatsapp_service import WhatsAppService

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, *, email_service: EmailService, whatsapp_service: WhatsAppService, base_url: str):
        self.email_service = email_service
        self.whatsapp_service = whatsapp_service
        self.base_url = (base_url or "").rstrip("/")

    # ── Links ────────────────────────────────────────────────

    def cancellation_url(self, appointment: Appointment) -> str:
        return f"{self.base_url}/booking/{appointment.id}/cancel"

    def reschedule_url(self, appointment: Appointment) -> str:
        return f"{self.base_url}/booking/{appointment.id}/reschedule"

    def view_booking_url(self, appointment: Appointment) -> str:
        return f"{self.base_url}/dashboard/bookings/{appointment.id}"

    # ── Customer (e-mail) ────────────────────────────────────

    def send_booking_confirmation_to_customer(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        html = email_templates.booking_confirmation_email(
            appointment,
            service,
            business,
            cancellation_url=self.cancellation_url(appointment),
            reschedule_url=self.reschedule_url(appointment),
        )
        return self.email_service.send_email(
            to=appointment.customer_email,
            subject=f"Booking Confirmation - {business.name}",
            html=html,
        )

    def send_booking_reminder_to_customer(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        html = email_templates.booking_reminder_email(
            appointment,
            service,
            business,
            cancellation_url=self.cancellation_url(appointment),
            reschedule_url=self.reschedule_url(appointment),
        )
        return self.email_service.send_email(
            to=appointment.customer_email,
            subject=f"Reminder: Your Appointment with {business.name}",
            html=html,
        )

    def send_booking_cancellation_to_customer(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        html = email_templates.booking_cancellation_email(appointment, service, business)
        return self.email_service.send_email(
            to=appointment.customer_email,
            subject=f"Booking Cancelled - {business.name}",
            html=html,
        )

    def send_booking_rescheduled_to_customer(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        html = email_templates.booking_rescheduled_email(
            appointment,
            service,
            business,
            cancellation_url=self.cancellation_url(appointment),
        )
        return self.email_service.send_email(
            to=appointment.customer_email,
            subject=f"Booking Rescheduled - {business.name}",
            html=html,
        )

    # ── Business (WhatsApp, e-mail fallback) ─────────────────

    def _whatsapp_then_email(
        self,
        whatsapp_send: Callable[[Appointment, Service, Business], bool],
        appointment: Appointment,
        service: Service,
        business: Business,
        *,
        subject: str,
    ) -> bool:
        try:
            if whatsapp_send(appointment, service, business):
                return True
        except Exception:
            # Primary channel failure must not block the e-mail fallback.
            logger.exception("WhatsApp notification failed: business_id=%s", business.id)

        logger.info("Falling back to email for business notification: business_id=%s subject=%s", business.id, subject)
        html = email_templates.business_new_booking_email(
            appointment,
            service,
            view_booking_url=self.view_booking_url(appointment),
        )
        return self.email_service.send_email(to=business.email or "", subject=subject, html=html)

    def send_booking_notification_to_business(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        return self._whatsapp_then_email(
            self.whatsapp_service.send_new_booking_notification,
            appointment,
            service,
            business,
            subject=f"New Booking - {appointment.customer_name}",
        )

    def send_cancellation_notification_to_business(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        return self._whatsapp_then_email(
            self.whatsapp_service.send_cancellation_notification,
            appointment,
            service,
            business,
            subject=f"Booking Cancelled - {appointment.customer_name}",
        )

    def send_reminder_notification_to_business(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        return self._whatsapp_then_email(
            self.whatsapp_service.send_reminder_notification,
            appointment,
            service,
            business,
            subject=f"Reminder: Upcoming Appointment - {appointment.customer_name}",
        )

    def send_rescheduled_notification_to_business(
        self, appointment: Appointment, service: Service, business: Business
    ) -> bool:
        return self._whatsapp_then_email(
            self.whatsapp_service.send_rescheduled_notification,
            appointment,
            service,
            business,
            subject=f"Booking Rescheduled - {appointment.customer_name}",
        )
