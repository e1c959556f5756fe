from typing import Optional

import stripe

from ..models.purchase import CheckoutSession, PaymentVerification
from .errors import CheckoutError
from .logging import log_event


class StripeCheckoutService:
    """Hosted Stripe Checkout for the one-off art pack purchase."""

    def __init__(self, secret_key: Optional[str], price_id: Optional[str], frontend_url: str) -> None:
        self.secret_key = secret_key or None
        self.price_id = price_id or None
        self.frontend_url = (frontend_url or "").rstrip("/")

    @classmethod
    def from_settings(cls, settings) -> "StripeCheckoutService":
        return cls(settings.stripe_secret_key, settings.stripe_price_id, settings.frontend_url)

    @property
    def available(self) -> bool:
        return bool(self.secret_key and self.price_id)

    def create_checkout_session(self, art_session_id: str, vehicle_info: str = "") -> CheckoutSession:
        if not self.available:
            raise CheckoutError("Payment service not configured")
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                line_items=[{"price": self.price_id, "quantity": 1}],
                success_url=f"{self.frontend_url}/?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.frontend_url}/?cancelled=true",
                metadata={"artSessionId": art_session_id, "vehicleInfo": vehicle_info[:500]},
            )
        except stripe.StripeError as exc:
            raise CheckoutError(f"stripe checkout create failed: {exc}") from exc

        url = getattr(session, "url", None)
        if not url:
            raise CheckoutError("stripe returned a session without a redirect url")
        log_event("info", "checkout.created", checkout_session_id=session.id, correlation_id=art_session_id)
        return CheckoutSession(checkout_url=url, session_id=session.id)

    def verify_session(self, session_id: str) -> PaymentVerification:
        if not self.secret_key:
            raise CheckoutError("Payment service not configured")
        if not session_id:
            raise CheckoutError("missing checkout session id")
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
        except stripe.StripeError as exc:
            raise CheckoutError(f"stripe checkout retrieve failed: {exc}") from exc

        details = getattr(session, "customer_details", None)
        email = getattr(details, "email", None) if details else None
        raw_metadata = getattr(session, "metadata", None) or {}
        metadata = {str(k): str(v) for k, v in dict(raw_metadata).items()}
        status = str(getattr(session, "payment_status", "") or "")
        verification = PaymentVerification(
            paid=status == "paid",
            session_id=session.id,
            payment_status=status,
            customer_email=email,
            metadata=metadata,
        )
        log_event("info", "checkout.verified", checkout_session_id=session.id, paid=verification.paid, payment_status=status)
        return verification
