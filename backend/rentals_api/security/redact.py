"""Masking for customer contact details written to logs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from rentals_api.models import Customer


def mask_email(value: str | None) -> str | None:
    """Keep the first character of the mailbox and the whole domain."""
    if not value or "@" not in value:
        return value
    mailbox, _, domain = value.partition("@")
    head = mailbox[:1]
    return f"{head}***@{domain}"


def mask_phone(value: str | None) -> str | None:
    if not value:
        return value
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) < 4:
        return "***"
    return f"***-***-{digits[-4:]}"


def describe_customer(customer: "Customer") -> str:
    """Loggable label for a customer without exposing contact details."""
    return f"customer {customer.id} <{mask_email(customer.email)}>"


__all__ = ["describe_customer", "mask_email", "mask_phone"]
