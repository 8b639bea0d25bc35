"""Email notifications for booking lifecycle events."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable

from fastapi import BackgroundTasks

from rentals_api.core.config import get_settings
from rentals_api.models import Booking, Customer
from rentals_api.security.redact import mask_email
from rentals_api.services.time_windows import booking_zone, coerce_utc

logger = logging.getLogger(__name__)


def schedule_email(
    background_tasks: BackgroundTasks,
    *,
    recipients: Iterable[str],
    subject: str,
    body: str,
) -> None:
    """Queue an email to be delivered asynchronously."""
    recipients_list = [addr for addr in recipients if addr]
    if not recipients_list:
        logger.debug("No recipients provided for email; skipping")
        return
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.debug(
            "SMTP disabled; skipping email to %s",
            [mask_email(addr) for addr in recipients_list],
        )
        return
    background_tasks.add_task(_send_email, recipients_list, subject, body)


def _format_local(booking: Booking, attr: str) -> str:
    value = coerce_utc(getattr(booking, attr))
    return value.astimezone(booking_zone()).strftime("%A, %B %d %Y %I:%M %p")


def build_booking_received_email(
    *, booking: Booking, product_name: str, checkout_url: str | None
) -> tuple[str, str]:
    subject = f"Booking {booking.booking_number} received"
    lines = [
        "Hello,",
        "",
        f"We're holding {product_name} for you while you complete payment.",
        f"Delivery: {booking.delivery_date.isoformat()} ({booking.delivery_window})",
        f"Pickup: {booking.pickup_date.isoformat()} ({booking.pickup_window})",
        f"Total: ${booking.total:.2f} (deposit ${booking.deposit_amount:.2f})",
    ]
    if checkout_url:
        lines.extend(["", f"Complete your payment here: {checkout_url}"])
    return subject, "\n".join(lines)


def build_booking_confirmation_email(
    *, booking: Booking, product_name: str
) -> tuple[str, str]:
    subject = f"Booking {booking.booking_number} confirmed"
    body = (
        f"Hello,\n\nYour rental of {product_name} is confirmed.\n"
        f"Delivery window starts: {_format_local(booking, 'service_start')}\n"
        f"Pickup: {booking.pickup_date.isoformat()} ({booking.pickup_window})\n"
        f"Balance due on delivery: ${booking.balance_due:.2f}\n\n"
        "Thank you for your booking!"
    )
    return subject, body


def notify_booking_received(
    booking: Booking,
    customer: Customer,
    background_tasks: BackgroundTasks,
    *,
    product_name: str,
    checkout_url: str | None,
) -> None:
    try:
        subject, body = build_booking_received_email(
            booking=booking, product_name=product_name, checkout_url=checkout_url
        )
        schedule_email(
            background_tasks, recipients=[customer.email], subject=subject, body=body
        )
    except Exception:  # pragma: no cover - notifications never fail a booking
        logger.exception("Failed to queue booking email for %s", booking.id)


def notify_booking_confirmed(
    booking: Booking,
    customer: Customer,
    background_tasks: BackgroundTasks,
    *,
    product_name: str,
) -> None:
    try:
        subject, body = build_booking_confirmation_email(
            booking=booking, product_name=product_name
        )
        schedule_email(
            background_tasks, recipients=[customer.email], subject=subject, body=body
        )
    except Exception:  # pragma: no cover - notifications never fail a booking
        logger.exception("Failed to queue confirmation email for %s", booking.id)


def _send_email(recipients: list[str], subject: str, body: str) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.info("SMTP settings missing; skipping email delivery")
        return

    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = ", ".join(recipients)
    message["From"] = settings.smtp_from or settings.smtp_username or "no-reply@rentals.local"
    message.set_content(body)

    masked = [mask_email(addr) for addr in recipients]
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as smtp:
            if settings.smtp_username and settings.smtp_password:
                smtp.starttls()
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
        logger.info("Email sent to %s", masked)
    except Exception as exc:  # pragma: no cover - logging side-effect only
        logger.exception("Failed to send email to %s: %s", masked, exc)
