"""Wizard orchestration: runs each stage and persists the resulting session."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple
from uuid import uuid4

from ..common.models.options import ArtFormat, parse_option
from ..common.models.purchase import CheckoutSession, PendingPurchase
from ..common.services.errors import (
    AnalysisError,
    GarageCanvasError,
    PaymentUnverifiedError,
    RenderError,
    UnlockInProgressError,
)
from ..common.services.logging import log_event
from . import wizard
from .analysis_client import AnalysisClient
from .art_export import art_filename, build_bundle, bundle_filename
from .checkout_gate import CheckoutGate
from .generation_pipeline import GenerationPipeline
from .image_preprocessor import ImagePreprocessor
from .pending_store import KeyValueStore
from .wizard import InvalidTransition, Step, WizardSession


LOCKED_MESSAGE = "Unlock the full set to download it."


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


class ArtSessionService:
    """
    Glue between the HTTP layer and the pipeline stages.

    Every stage writes its ``*_failed`` transition before re-raising, so a
    reload after an error shows the step the user was returned to.
    """

    def __init__(
        self,
        store: KeyValueStore,
        preprocessor: ImagePreprocessor,
        analysis_client: AnalysisClient,
        pipeline: GenerationPipeline,
        gate: CheckoutGate,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
    ) -> None:
        self._store = store
        self._preprocessor = preprocessor
        self._analysis = analysis_client
        self._pipeline = pipeline
        self._gate = gate
        self._id_factory = id_factory

    # Session storage -------------------------------------------------------

    def find(self, session_id: Optional[str]) -> Optional[WizardSession]:
        if not session_id:
            return None
        data = self._store.get(session_key(session_id))
        return WizardSession.from_dict(data) if data else None

    def load(self, session_id: Optional[str]) -> WizardSession:
        session = self.find(session_id)
        if session is None:
            raise LookupError(f"unknown art session {session_id}")
        return session

    def load_or_create(self, session_id: Optional[str]) -> WizardSession:
        return self.find(session_id) or self.save(wizard.new_session(self._id_factory()))

    def save(self, session: WizardSession) -> WizardSession:
        self._store.put(session_key(session.id), session.to_dict())
        return session

    # Stages ------------------------------------------------------------------

    def upload(self, session_id: Optional[str], raw: bytes) -> WizardSession:
        session = self.load_or_create(session_id)
        photo = self._preprocessor.compress(raw)
        session = self.save(wizard.begin_analysis(session, photo))
        try:
            analysis = self._analysis.analyze(photo)
        except AnalysisError as exc:
            self.save(wizard.analysis_failed(session, exc.user_message))
            raise
        return self.save(wizard.analysis_succeeded(session, analysis))

    def customize(self, session_id: str, updates: dict) -> WizardSession:
        session = self.load(session_id)
        if session.analysis is None:
            raise InvalidTransition("change options", session.step)
        return self.save(wizard.update_config(session, session.config.merged(updates)))

    def generate_preview(self, session_id: str, updates: Optional[dict] = None) -> WizardSession:
        session = self.customize(session_id, updates) if updates else self.load(session_id)
        session = self.save(wizard.begin_generation(session))
        try:
            preview = self._pipeline.render_preview(session.photo, session.analysis, session.config)
        except RenderError as exc:
            self.save(wizard.generation_failed(session, exc.user_message))
            raise
        return self.save(wizard.generation_succeeded(session, preview))

    def start_checkout(self, session_id: str) -> CheckoutSession:
        session = self.load(session_id)
        if session.step is not Step.PREVIEWING or session.preview is None:
            raise InvalidTransition("check out", session.step)
        purchase = PendingPurchase(
            correlation_id=session.id,
            image=session.photo,
            analysis=session.analysis,
            config=session.config,
            preview=session.preview,
            created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )
        handle = self._gate.create_pending_purchase(purchase)
        return self._gate.redirect_to_checkout(handle, session.analysis.display_name)

    def cancel_checkout(self, session_id: Optional[str]) -> Optional[WizardSession]:
        session = self.find(session_id)
        if session is None or session.step not in (Step.PREVIEWING, Step.COMPLETING):
            return session
        log_event("info", "checkout.cancelled", art_session_id=session.id)
        return self.save(wizard.checkout_cancelled(session))

    def complete_payment(self, checkout_session_id: str, session_id: Optional[str] = None) -> WizardSession:
        current = self.find(session_id)

        def mark_completing(correlation_id: str) -> None:
            if current is not None and current.id == correlation_id and current.step is Step.PREVIEWING:
                self.save(wizard.begin_completion(current))

        try:
            result = self._gate.unlock(checkout_session_id, on_verified=mark_completing)
        except UnlockInProgressError:
            raise
        except (GarageCanvasError, LookupError) as exc:
            stuck = self.find(current.id) if current is not None else None
            if stuck is not None and stuck.step is Step.COMPLETING:
                message = exc.user_message if isinstance(exc, GarageCanvasError) else PaymentUnverifiedError.user_message
                self.save(wizard.completion_failed(stuck, message))
            raise

        target = self.find(result.correlation_id) or wizard.new_session(result.correlation_id)
        if target.step is Step.COMPLETING:
            return self.save(wizard.completion_succeeded(target, result.art_set))
        return self.save(wizard.payment_applied(target, result.art_set))

    def dev_unlock(self, session_id: str) -> WizardSession:
        """Run the paid completion without a payment (development only)."""

        session = self.save(wizard.begin_completion(self.load(session_id)))
        purchase = PendingPurchase(
            correlation_id=session.id,
            image=session.photo,
            analysis=session.analysis,
            config=session.config,
            preview=session.preview,
        )
        try:
            art_set = self._gate.render_purchase(purchase)
        except RenderError as exc:
            self.save(wizard.completion_failed(session, exc.user_message))
            raise
        log_event("warning", "unlock.dev", art_session_id=session.id)
        return self.save(wizard.completion_succeeded(session, art_set))

    def reset(self, session_id: Optional[str]) -> WizardSession:
        session = self.find(session_id)
        if session is None:
            return self.load_or_create(None)
        self._gate.discard(session.id)
        return self.save(wizard.reset(session))

    # Downloads ---------------------------------------------------------------

    def art_file(self, session_id: str, fmt) -> Tuple[bytes, str, str]:
        session = self._unlocked(session_id)
        art_format = parse_option(ArtFormat, fmt, "format")
        data = base64.b64decode(session.art_set.image_for(art_format))
        mime_type = session.art_set.mime_type
        return data, mime_type, art_filename(session.analysis, art_format, mime_type)

    def art_bundle(self, session_id: str) -> Tuple[bytes, str]:
        session = self._unlocked(session_id)
        return build_bundle(session.art_set), bundle_filename(session.analysis)

    def _unlocked(self, session_id: str) -> WizardSession:
        session = self.load(session_id)
        if not session.unlocked or session.art_set is None:
            raise PaymentUnverifiedError("art set is locked", user_message=LOCKED_MESSAGE)
        return session
