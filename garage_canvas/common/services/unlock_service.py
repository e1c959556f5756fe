from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..models.art_unlock import ArtUnlock
from .logging import log_event


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UnlockLedger:
    """Applied-payment records backed by DB (idempotency by checkout session id).

    A row in ``processing`` newer than ``stale_after_s`` belongs to the request
    rendering it; only ``failed`` or stale rows can be claimed again.
    """

    def __init__(self, session_factory, stale_after_s: int = 600):
        self._session_factory = session_factory
        self.stale_after = timedelta(seconds=stale_after_s)

    def get(self, checkout_session_id: str) -> Optional[Dict]:
        if not checkout_session_id:
            return None
        with self._session_factory() as session:
            row = session.get(ArtUnlock, checkout_session_id)
            return row.to_dict() if row else None

    def in_flight(self, row: Optional[Dict]) -> bool:
        if not row or row["status"] != "processing" or not row.get("started_at"):
            return False
        return datetime.fromisoformat(row["started_at"]) > _utcnow() - self.stale_after

    def claim(self, *, checkout_session_id: str, correlation_id: str, customer_email: Optional[str] = None) -> bool:
        """Mark the session as being applied; True only for the caller that won it."""

        now = _utcnow()
        try:
            with self._session_factory() as session:
                session.add(
                    ArtUnlock(
                        checkout_session_id=checkout_session_id,
                        correlation_id=correlation_id,
                        status="processing",
                        customer_email=customer_email,
                        started_at=now,
                    )
                )
                session.flush()
            won = True
        except IntegrityError:
            with self._session_factory() as session:
                result = session.execute(
                    update(ArtUnlock)
                    .where(ArtUnlock.checkout_session_id == checkout_session_id)
                    .where(
                        or_(
                            ArtUnlock.status == "failed",
                            (ArtUnlock.status == "processing") & (ArtUnlock.started_at <= now - self.stale_after),
                        )
                    )
                    .values(status="processing", started_at=now, error_message=None)
                )
                won = result.rowcount == 1
        if won:
            log_event("info", "unlock.processing", checkout_session_id=checkout_session_id, correlation_id=correlation_id)
        else:
            log_event("info", "unlock.claim_lost", checkout_session_id=checkout_session_id, correlation_id=correlation_id)
        return won

    def mark_completed(self, checkout_session_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(ArtUnlock, checkout_session_id)
            if row is None:
                raise LookupError(f"unknown checkout session {checkout_session_id}")
            row.status = "completed"
            row.completed_at = _utcnow()
            log_event("info", "unlock.completed", checkout_session_id=checkout_session_id, correlation_id=row.correlation_id)

    def mark_failed(self, checkout_session_id: str, error_message: str) -> None:
        with self._session_factory() as session:
            row = session.get(ArtUnlock, checkout_session_id)
            if row is None:
                return
            row.status = "failed"
            row.error_message = error_message[:2000]
            log_event("warning", "unlock.failed", checkout_session_id=checkout_session_id, error=error_message)
