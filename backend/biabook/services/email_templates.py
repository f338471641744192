from __future__ import annotations

from datetime import datetime
from html import escape as html_escape

from biabook.models.booking import Appointment, Business, Service
from biabook.services.email_html_base import (
    render_branded_email,
    render_cta_button,
    render_details,
    render_secondary_link,
)
from biabook.utils.formatting import (
    format_currency,
    format_date,
    format_time,
    parse_hhmm,
    timezone_abbreviation,
)

NO_ADDRESS = "Address not provided"


def _p(text: str) -> str:
    return f'<p style="margin:0 0 16px 0;font-size:15px;">{text}</p>'


def _time_range(appointment: Appointment) -> str:
    return f"{format_time(appointment.start_time)} - {format_time(appointment.end_time)}"


def _time_display(appointment: Appointment, business: Business) -> str:
    display = _time_range(appointment)
    if business.timezone:
        starts_at = datetime.combine(appointment.appointment_date, parse_hhmm(appointment.start_time))
        display += f" ({timezone_abbreviation(business.timezone, starts_at)})"
    return display


def _location(business: Business) -> str:
    return html_escape(business.address or NO_ADDRESS)


def _change_links(reschedule_url: str, cancellation_url: str) -> str:
    return (
        _p("If you need to make changes to your booking, you can use the links below:")
        + "<p>"
        + render_cta_button(url=html_escape(reschedule_url), label="Reschedule")
        + render_secondary_link(url=html_escape(cancellation_url), label="Cancel")
        + "</p>"
    )


# ── Customer templates ───────────────────────────────────────


def booking_confirmation_email(
    appointment: Appointment,
    service: Service,
    business: Business,
    *,
    cancellation_url: str,
    reschedule_url: str,
) -> str:
    business_name = html_escape(business.name)
    body = (
        "<h2>Booking Confirmation</h2>"
        + _p(f"Dear {html_escape(appointment.customer_name)},")
        + _p(f"Your booking has been confirmed with {business_name}.")
        + render_details(
            [
                ("Service", html_escape(service.name)),
                ("Date", format_date(appointment.appointment_date)),
                ("Time", html_escape(_time_display(appointment, business))),
                ("Price", format_currency(service.price)),
                ("Location", _location(business)),
            ]
        )
        + _change_links(reschedule_url, cancellation_url)
        + _p(f"Thank you for booking with {business_name}!")
    )
    return render_branded_email(
        title="Booking Confirmation",
        body_content=body,
        preheader=f"Your booking with {business_name} is confirmed",
    )


def booking_reminder_email(
    appointment: Appointment,
    service: Service,
    business: Business,
    *,
    cancellation_url: str,
    reschedule_url: str,
) -> str:
    business_name = html_escape(business.name)
    body = (
        "<h2>Booking Reminder</h2>"
        + _p(f"Dear {html_escape(appointment.customer_name)},")
        + _p(f"This is a reminder of your upcoming appointment with {business_name}.")
        + render_details(
            [
                ("Service", html_escape(service.name)),
                ("Date", format_date(appointment.appointment_date)),
                ("Time", html_escape(_time_display(appointment, business))),
                ("Location", _location(business)),
            ]
        )
        + _change_links(reschedule_url, cancellation_url)
        + _p("We look forward to seeing you!")
    )
    return render_branded_email(
        title="Booking Reminder",
        body_content=body,
        preheader=f"Upcoming appointment with {business_name}",
    )


def booking_cancellation_email(appointment: Appointment, service: Service, business: Business) -> str:
    business_name = html_escape(business.name)
    body = (
        "<h2>Booking Cancelled</h2>"
        + _p(f"Dear {html_escape(appointment.customer_name)},")
        + _p(f"Your booking with {business_name} has been cancelled.")
        + render_details(
            [
                ("Service", html_escape(service.name)),
                ("Date", format_date(appointment.appointment_date)),
                ("Time", html_escape(_time_range(appointment))),
            ]
        )
        + _p("If you would like to make a new booking, please visit our website.")
        + _p("Thank you for using BiaBook!")
    )
    return render_branded_email(
        title="Booking Cancelled",
        body_content=body,
        preheader=f"Your booking with {business_name} has been cancelled",
    )


def booking_rescheduled_email(
    appointment: Appointment,
    service: Service,
    business: Business,
    *,
    cancellation_url: str,
) -> str:
    business_name = html_escape(business.name)
    body = (
        "<h2>Booking Rescheduled</h2>"
        + _p(f"Dear {html_escape(appointment.customer_name)},")
        + _p(f"Your booking with {business_name} has been rescheduled.")
        + render_details(
            [
                ("Service", html_escape(service.name)),
                ("New Date", format_date(appointment.appointment_date)),
                ("New Time", html_escape(_time_display(appointment, business))),
                ("Location", _location(business)),
            ]
        )
        + _p("If you need to cancel this booking, you can use the link below:")
        + f"<p>{render_secondary_link(url=html_escape(cancellation_url), label='Cancel Booking')}</p>"
        + _p(f"Thank you for booking with {business_name}!")
    )
    return render_branded_email(
        title="Booking Rescheduled",
        body_content=body,
        preheader=f"Your booking with {business_name} has a new time",
    )


# ── Business templates ───────────────────────────────────────


def business_new_booking_email(appointment: Appointment, service: Service, *, view_booking_url: str) -> str:
    """Generic booking summary for the business; also used as the WhatsApp fallback body."""
    rows = [
        ("Customer", html_escape(appointment.customer_name)),
        ("Email", html_escape(appointment.customer_email)),
        ("Phone", html_escape(appointment.customer_phone or "")),
        ("Service", html_escape(service.name)),
        ("Date", format_date(appointment.appointment_date)),
        ("Time", html_escape(_time_range(appointment))),
        ("Price", format_currency(service.price)),
    ]
    if appointment.notes:
        rows.append(("Notes", html_escape(appointment.notes)))

    body = (
        "<h2>New Booking</h2>"
        + _p("You have a new booking!")
        + render_details(rows)
        + f"<p>{render_cta_button(url=html_escape(view_booking_url), label='View Booking')}</p>"
    )
    return render_branded_email(
        title="New Booking",
        body_content=body,
        preheader=f"New booking from {html_escape(appointment.customer_name)}",
        footer_text="You are receiving this email because notifications are enabled for your business on BiaBook.",
    )
