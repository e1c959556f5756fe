"""Payment gate between the free preview and the full art set."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Protocol

from ..common.models.generation import GeneratedArtSet, RenderedImage
from ..common.models.purchase import CheckoutSession, PaymentVerification, PendingPurchase, SessionHandle
from ..common.services.errors import PaymentUnverifiedError, RenderError, UnlockInProgressError
from ..common.services.logging import log_event
from ..common.services.unlock_service import UnlockLedger
from .generation_pipeline import GenerationPipeline, assemble_art_set
from .pending_store import KeyValueStore


PENDING_PREFIX = "pending"
ART_PREFIX = "art"


class PaymentProvider(Protocol):
    def create_checkout_session(self, art_session_id: str, vehicle_info: str = "") -> CheckoutSession:
        ...

    def verify_session(self, session_id: str) -> PaymentVerification:
        ...


@dataclass
class UnlockResult:
    correlation_id: str
    art_set: GeneratedArtSet
    already_unlocked: bool = False
    customer_email: Optional[str] = None


def pending_key(correlation_id: str) -> str:
    return f"{PENDING_PREFIX}:{correlation_id}"


def art_key(correlation_id: str) -> str:
    return f"{ART_PREFIX}:{correlation_id}"


class CheckoutGate:
    """
    Persists the pending purchase across the hosted checkout redirect and
    applies a paid checkout session at most once.
    """

    def __init__(
        self,
        store: KeyValueStore,
        payments: PaymentProvider,
        pipeline: GenerationPipeline,
        ledger: UnlockLedger,
    ) -> None:
        self._store = store
        self._payments = payments
        self._pipeline = pipeline
        self._ledger = ledger

    def create_pending_purchase(self, purchase: PendingPurchase) -> SessionHandle:
        key = pending_key(purchase.correlation_id)
        self._store.put(key, purchase.to_dict())
        log_event("info", "checkout.pending_saved", correlation_id=purchase.correlation_id, has_preview=purchase.preview is not None)
        return SessionHandle(correlation_id=purchase.correlation_id, store_key=key)

    def redirect_to_checkout(self, handle: SessionHandle, vehicle_info: str = "") -> CheckoutSession:
        """Create the hosted checkout session; the caller sends the browser to its url."""
        return self._payments.create_checkout_session(handle.correlation_id, vehicle_info)

    def restore(self, correlation_id: str) -> PendingPurchase:
        data = self._store.get(pending_key(correlation_id))
        if data is None:
            raise LookupError(f"no pending purchase for {correlation_id}")
        return PendingPurchase.from_dict(data)

    def discard(self, correlation_id: str) -> None:
        self._store.delete(pending_key(correlation_id))

    def verify_return(self, checkout_session_id: str) -> PaymentVerification:
        return self._payments.verify_session(checkout_session_id)

    def cached_art_set(self, correlation_id: str) -> Optional[GeneratedArtSet]:
        data = self._store.get(art_key(correlation_id))
        return GeneratedArtSet.from_dict(data) if data else None

    def unlock(
        self,
        checkout_session_id: str,
        on_verified: Optional[Callable[[str], None]] = None,
    ) -> UnlockResult:
        """Apply a paid checkout session at most once.

        ``on_verified`` receives the correlation id once payment is confirmed
        and before the paid render starts.
        """

        applied = self._ledger.get(checkout_session_id)
        replayed = self._replay(checkout_session_id, applied)
        if replayed is not None:
            return replayed
        if self._ledger.in_flight(applied):
            raise UnlockInProgressError(f"checkout session {checkout_session_id} is already being applied")

        verification = self.verify_return(checkout_session_id)
        if not verification.paid:
            log_event("warning", "unlock.unpaid", checkout_session_id=checkout_session_id, payment_status=verification.payment_status)
            raise PaymentUnverifiedError(f"checkout session {checkout_session_id} is {verification.payment_status or 'unpaid'}")
        correlation_id = verification.correlation_id
        if not correlation_id:
            raise PaymentUnverifiedError(f"checkout session {checkout_session_id} carries no art session id")

        cached = self.cached_art_set(correlation_id)
        if cached is not None:
            self._ledger.claim(
                checkout_session_id=checkout_session_id,
                correlation_id=correlation_id,
                customer_email=verification.customer_email,
            )
            self._ledger.mark_completed(checkout_session_id)
            return UnlockResult(correlation_id, cached, already_unlocked=True, customer_email=verification.customer_email)

        purchase = self.restore(correlation_id)
        claimed = self._ledger.claim(
            checkout_session_id=checkout_session_id,
            correlation_id=correlation_id,
            customer_email=verification.customer_email,
        )
        if not claimed:
            replayed = self._replay(checkout_session_id, self._ledger.get(checkout_session_id))
            if replayed is not None:
                return replayed
            raise UnlockInProgressError(f"checkout session {checkout_session_id} was claimed by another request")

        if on_verified is not None:
            on_verified(correlation_id)
        try:
            art_set = self.render_purchase(purchase)
        except RenderError as exc:
            self._ledger.mark_failed(checkout_session_id, str(exc))
            raise
        self._ledger.mark_completed(checkout_session_id)
        return UnlockResult(correlation_id, art_set, customer_email=verification.customer_email)

    def _replay(self, checkout_session_id: str, applied: Optional[Dict]) -> Optional[UnlockResult]:
        if not applied or applied["status"] != "completed":
            return None
        cached = self.cached_art_set(applied["correlation_id"])
        if cached is None:
            return None
        log_event("info", "unlock.replayed", checkout_session_id=checkout_session_id)
        return UnlockResult(
            correlation_id=applied["correlation_id"],
            art_set=cached,
            already_unlocked=True,
            customer_email=applied.get("customer_email"),
        )

    def render_purchase(self, purchase: PendingPurchase) -> GeneratedArtSet:
        """Render what the purchase still lacks, then cache the set and drop the pending record."""

        if purchase.preview is not None:
            remaining = self._pipeline.render_remaining(purchase.image, purchase.preview, purchase.analysis, purchase.config)
            art_set = assemble_art_set(purchase.preview, remaining)
        else:

            def keep_preview(preview: RenderedImage) -> None:
                self.create_pending_purchase(replace(purchase, preview=preview))

            art_set = self._pipeline.render_full_set(purchase.image, purchase.analysis, purchase.config, on_preview=keep_preview)

        self._store.put(art_key(purchase.correlation_id), art_set.to_dict())
        self.discard(purchase.correlation_id)
        log_event("info", "unlock.rendered", correlation_id=purchase.correlation_id)
        return art_set
