"""Stripe SDK wrapper with deterministic fallbacks."""

from __future__ import annotations

import importlib
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, cast


@dataclass(slots=True)
class CheckoutSession:
    """Simplified checkout session payload."""

    id: str
    url: str | None
    status: str
    amount_total: int
    metadata: dict[str, Any]


class StripeClientError(RuntimeError):
    """Raised when Stripe interaction fails."""


class StripeClient:
    """Wrapper around the Stripe SDK with optional local fallbacks."""

    def __init__(
        self,
        secret_key: str | None,
        *,
        webhook_secret: str | None = None,
        idempotency_prefix: str = "rentals",
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._idempotency_prefix = idempotency_prefix
        self._stripe: Any | None = None
        self._session_store: dict[str, CheckoutSession] = {}
        self._idempotency_store: dict[str, str] = {}
        if not secret_key:
            return
        try:
            stripe_module = importlib.import_module("stripe")
        except ModuleNotFoundError:  # pragma: no cover - dependency missing in tests
            self._stripe = None
        else:
            stripe_obj = cast(Any, stripe_module)
            stripe_obj.api_key = secret_key
            stripe_obj.max_network_retries = 2
            self._stripe = stripe_obj

    @property
    def webhook_secret(self) -> str | None:
        return self._webhook_secret

    def _idempotency_key(self, seed: str | uuid.UUID | None) -> str | None:
        if seed is None:
            return None
        return f"{self._idempotency_prefix}_{seed}"

    @staticmethod
    def _to_cents(amount: Decimal) -> int:
        quantized = amount.quantize(Decimal("0.01"))
        return int((quantized * 100).to_integral_value())

    @staticmethod
    def _from_sdk(session: Any) -> CheckoutSession:
        data = cast(dict[str, Any], session)
        metadata = cast(dict[str, Any], data.get("metadata") or {})
        return CheckoutSession(
            id=str(data.get("id")),
            url=cast(str | None, data.get("url")),
            status=str(data.get("status", "unknown")),
            amount_total=int(data.get("amount_total") or 0),
            metadata=dict(metadata),
        )

    def create_checkout_session(
        self,
        *,
        amount: Decimal,
        description: str,
        metadata: dict[str, Any],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        expires_after_minutes: int = 30,
        currency: str = "usd",
        idempotency_seed: str | uuid.UUID | None = None,
    ) -> CheckoutSession:
        metadata = {key: str(value) for key, value in metadata.items()}
        cents = self._to_cents(amount)
        if cents <= 0:
            raise StripeClientError("Checkout amount must be positive")

        if self._stripe is None:
            key = self._idempotency_key(idempotency_seed)
            if key and key in self._idempotency_store:
                return self._session_store[self._idempotency_store[key]]
            session_id = f"cs_test_{uuid.uuid4().hex}"
            checkout = CheckoutSession(
                id=session_id,
                url=f"{success_url.split('?')[0]}?session_id={session_id}",
                status="open",
                amount_total=cents,
                metadata=metadata,
            )
            self._session_store[session_id] = checkout
            if key:
                self._idempotency_store[key] = session_id
            return checkout

        kwargs: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": cents,
                        "product_data": {"name": description},
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
            # Stripe accepts expiry between 30 minutes and 24 hours out.
            "expires_at": int(time.time()) + max(expires_after_minutes, 30) * 60,
        }
        if customer_email:
            kwargs["customer_email"] = customer_email
        try:
            session = self._stripe.checkout.Session.create(
                **kwargs,
                idempotency_key=self._idempotency_key(idempotency_seed),
            )
        except Exception as exc:  # pragma: no cover - surfaced in API error handling
            raise StripeClientError("Failed to create checkout session") from exc
        return self._from_sdk(session)

    def expire_checkout_session(self, session_id: str) -> CheckoutSession:
        if self._stripe is None:
            checkout = self._session_store.get(session_id)
            if checkout is None:
                raise StripeClientError("Checkout session not found")
            checkout.status = "expired"
            return checkout
        try:
            session = self._stripe.checkout.Session.expire(session_id)
        except Exception as exc:  # pragma: no cover - surfaced in API error handling
            raise StripeClientError("Failed to expire checkout session") from exc
        return self._from_sdk(session)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        if self._stripe is None:
            checkout = self._session_store.get(session_id)
            if checkout is None:
                raise StripeClientError("Checkout session not found")
            return checkout
        try:
            session = self._stripe.checkout.Session.retrieve(session_id)
        except Exception as exc:  # pragma: no cover
            raise StripeClientError("Failed to retrieve checkout session") from exc
        return self._from_sdk(session)

    def construct_event(self, payload: bytes, signature: str) -> Any:
        if not self._webhook_secret:
            raise StripeClientError("Webhook secret is not configured")
        if self._stripe is None:
            raise StripeClientError("Stripe SDK is not configured")
        try:
            event = self._stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
            )
        except Exception as exc:  # pragma: no cover - surfaced in API error handling
            raise StripeClientError("Invalid webhook signature") from exc
        return event
