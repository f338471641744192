"""
Unit tests for notification_service: channel order and e-mail fallback.
"""

from __future__ import annotations

import pytest


def test_customer_confirmation_goes_by_email(booking, dispatcher, email_sender, whatsapp_sender):
    appointment, service, business = booking

    assert dispatcher.send_booking_confirmation_to_customer(appointment, service, business) is True

    kwargs = email_sender.send_email.call_args.kwargs
    assert kwargs["to"] == "john@example.com"
    assert kwargs["subject"] == "Booking Confirmation - Bia Salon"
    assert f"https://app.biabook.example.com/booking/{appointment.id}/cancel" in kwargs["html"]
    assert f"https://app.biabook.example.com/booking/{appointment.id}/reschedule" in kwargs["html"]
    assert whatsapp_sender.method_calls == []


@pytest.mark.parametrize(
    ("method", "subject"),
    [
        ("send_booking_reminder_to_customer", "Reminder: Your Appointment with Bia Salon"),
        ("send_booking_cancellation_to_customer", "Booking Cancelled - Bia Salon"),
        ("send_booking_rescheduled_to_customer", "Booking Rescheduled - Bia Salon"),
    ],
)
def test_customer_subjects(booking, dispatcher, email_sender, method, subject):
    assert getattr(dispatcher, method)(*booking) is True
    assert email_sender.send_email.call_args.kwargs["subject"] == subject


def test_customer_send_failure_is_reported(booking, dispatcher, email_sender):
    email_sender.send_email.return_value = False
    assert dispatcher.send_booking_confirmation_to_customer(*booking) is False


def test_business_whatsapp_success_skips_email(booking, dispatcher, email_sender, whatsapp_sender):
    assert dispatcher.send_booking_notification_to_business(*booking) is True

    whatsapp_sender.send_new_booking_notification.assert_called_once_with(*booking)
    email_sender.send_email.assert_not_called()


@pytest.mark.parametrize(
    ("method", "whatsapp_method", "subject"),
    [
        ("send_booking_notification_to_business", "send_new_booking_notification", "New Booking - John Doe"),
        ("send_cancellation_notification_to_business", "send_cancellation_notification", "Booking Cancelled - John Doe"),
        (
            "send_reminder_notification_to_business",
            "send_reminder_notification",
            "Reminder: Upcoming Appointment - John Doe",
        ),
        (
            "send_rescheduled_notification_to_business",
            "send_rescheduled_notification",
            "Booking Rescheduled - John Doe",
        ),
    ],
)
def test_business_falls_back_to_email_when_whatsapp_fails(
    booking, dispatcher, email_sender, whatsapp_sender, method, whatsapp_method, subject
):
    appointment, _, business = booking
    getattr(whatsapp_sender, whatsapp_method).return_value = False

    assert getattr(dispatcher, method)(*booking) is True

    kwargs = email_sender.send_email.call_args.kwargs
    assert kwargs["to"] == business.email
    assert kwargs["subject"] == subject
    assert f"/dashboard/bookings/{appointment.id}" in kwargs["html"]


def test_business_whatsapp_exception_still_falls_back(booking, dispatcher, email_sender, whatsapp_sender):
    whatsapp_sender.send_new_booking_notification.side_effect = RuntimeError("api exploded")

    assert dispatcher.send_booking_notification_to_business(*booking) is True
    email_sender.send_email.assert_called_once()


def test_business_both_channels_fail(booking, dispatcher, email_sender, whatsapp_sender):
    whatsapp_sender.send_reminder_notification.return_value = False
    email_sender.send_email.return_value = False

    assert dispatcher.send_reminder_notification_to_business(*booking) is False
