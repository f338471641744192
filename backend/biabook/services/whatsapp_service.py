"""
WhatsApp Business API channel (template messages).

Template names and the order of their body parameters are registered with the
provider; changing either breaks delivery.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from biabook.core.config import Settings
from biabook.models.booking import Appointment, Business, Service
from biabook.utils.formatting import format_currency, format_date, format_time
from biabook.utils.redaction import log_phone

logger = logging.getLogger(__name__)

NEW_BOOKING_TEMPLATE = "new_booking_notification"
CANCELLATION_TEMPLATE = "an"
REMINDER_TEMPLATE = "booking_reminder"
RESCHEDULED_TEMPLATE = "booking_rescheduled_notification"

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class WhatsAppConfig:
    api_url: str
    phone_number_id: str
    access_token: str
    enabled: bool = True
    timeout_seconds: float = 10.0
    language_code: str = "en_US"
    currency_code: str = "USD"

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppConfig":
        return cls(
            api_url=settings.whatsapp_api_url,
            phone_number_id=settings.whatsapp_phone_number_id,
            access_token=settings.whatsapp_access_token,
            enabled=settings.whatsapp_enabled,
            timeout_seconds=settings.whatsapp_timeout_seconds,
            language_code=settings.whatsapp_language_code,
            currency_code=settings.whatsapp_currency_code,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.phone_number_id and self.access_token)


def normalize_phone(phone: str) -> str:
    # US default: a bare 10-digit number gets country code 1.
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) == 10:
        return f"1{digits}"
    return digits


def _text(value: Any) -> dict[str, Any]:
    return {"type": "text", "text": "" if value is None else str(value)}


def build_template_message(
    *,
    to: str,
    template_name: str,
    parameters: list[dict[str, Any]],
    language_code: str = "en_US",
) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language_code},
            "components": [{"type": "body", "parameters": parameters}],
        },
    }


class WhatsAppService:
    def __init__(self, config: WhatsAppConfig, *, client: Optional[httpx.Client] = None):
        self._config = config
        self._client = client
        if not config.is_configured:
            logger.warning("WhatsApp API is not configured. WhatsApp messages will not be sent.")
        elif not config.enabled:
            logger.warning("WhatsApp is disabled by configuration. WhatsApp messages will not be sent.")

    @property
    def is_active(self) -> bool:
        return self._config.enabled and self._config.is_configured

    def send(self, message: dict[str, Any]) -> bool:
        if not self.is_active:
            return False

        url = f"{self._config.api_url.rstrip('/')}/{self._config.phone_number_id}/messages"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.access_token}",
        }
        to = log_phone(message.get("to"))
        template = (message.get("template") or {}).get("name")
        try:
            if self._client is not None:
                response = self._client.post(url, json=message, headers=headers, timeout=self._config.timeout_seconds)
            else:
                with httpx.Client(timeout=self._config.timeout_seconds) as client:
                    response = client.post(url, json=message, headers=headers)
        except httpx.TimeoutException:
            logger.error("WhatsApp request timed out: to=%s template=%s", to, template)
            return False
        except httpx.HTTPError as exc:
            logger.error("WhatsApp request failed: to=%s template=%s error=%s", to, template, exc)
            return False

        if not response.is_success:
            logger.error(
                "WhatsApp API error: to=%s template=%s status=%s body=%s",
                to,
                template,
                response.status_code,
                response.text[:500],
            )
            return False

        logger.info("WhatsApp sent: to=%s template=%s", to, template)
        return True

    def _business_phone(self, business: Business) -> Optional[str]:
        if not business.phone:
            logger.warning("Business phone number not available for WhatsApp notification: business_id=%s", business.id)
            return None
        return normalize_phone(business.phone)

    def _send_template(self, business: Business, template_name: str, parameters: list[dict[str, Any]]) -> bool:
        if not self.is_active:
            return False
        phone = self._business_phone(business)
        if not phone:
            return False
        return self.send(
            build_template_message(
                to=phone,
                template_name=template_name,
                parameters=parameters,
                language_code=self._config.language_code,
            )
        )

    def send_new_booking_notification(self, appointment: Appointment, service: Service, business: Business) -> bool:
        price = int(service.price or 0)
        return self._send_template(
            business,
            NEW_BOOKING_TEMPLATE,
            [
                _text(appointment.customer_name),
                _text(service.name),
                _text(format_date(appointment.appointment_date)),
                _text(format_time(appointment.start_time)),
                {
                    "type": "currency",
                    "currency": {
                        "fallback_value": format_currency(price),
                        "code": self._config.currency_code,
                        # amount_1000 is the amount times 1000; price is stored in cents.
                        "amount_1000": price * 10,
                    },
                },
                _text(appointment.customer_phone),
                _text(appointment.customer_email),
            ],
        )

    def send_cancellation_notification(self, appointment: Appointment, service: Service, business: Business) -> bool:
        return self._send_template(
            business,
            CANCELLATION_TEMPLATE,
            [
                _text(appointment.customer_name),
                _text(service.name),
                _text(format_date(appointment.appointment_date)),
                _text(format_time(appointment.start_time)),
            ],
        )

    def send_reminder_notification(self, appointment: Appointment, service: Service, business: Business) -> bool:
        return self._send_template(
            business,
            REMINDER_TEMPLATE,
            [
                _text(appointment.customer_name),
                _text(service.name),
                _text(format_date(appointment.appointment_date)),
                _text(format_time(appointment.start_time)),
                _text(appointment.customer_phone),
            ],
        )

    def send_rescheduled_notification(self, appointment: Appointment, service: Service, business: Business) -> bool:
        return self._send_template(
            business,
            RESCHEDULED_TEMPLATE,
            [
                _text(appointment.customer_name),
                _text(service.name),
                _text(format_date(appointment.appointment_date)),
                _text(format_time(appointment.start_time)),
            ],
        )
