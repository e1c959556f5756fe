"""提供精靈各階段使用的 JSON API 路由。"""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
from typing import Any, Dict, Optional

from flask import Blueprint, abort, current_app, jsonify, request, send_file, session
from werkzeug.exceptions import RequestEntityTooLarge

from ..common.services.errors import GarageCanvasError, PaymentUnverifiedError, PreprocessError, UnlockInProgressError
from ..common.services.logging import log_event
from ..services.art_session_service import ArtSessionService
from ..services.wizard import InvalidTransition, WizardSession


api_bp = Blueprint("garage_canvas_api", __name__, url_prefix="/api")

SESSION_COOKIE_KEY = "art_session_id"


def _components() -> Dict[str, Any]:
    return current_app.extensions["garage_canvas_components"]


def _art_sessions() -> ArtSessionService:
    return _components()["art_sessions"]


def _current_id() -> Optional[str]:
    return session.get(SESSION_COOKIE_KEY)


def _remember(wizard_session: WizardSession) -> WizardSession:
    session[SESSION_COOKIE_KEY] = wizard_session.id
    return wizard_session


def _respond(wizard_session: Optional[WizardSession], status: int = 200, **extra):
    body = {"session": wizard_session.to_public_dict() if wizard_session else None}
    body.update(extra)
    return jsonify(body), status


def _error(exc: Exception, message: str, status: int):
    current = _art_sessions().find(_current_id())
    log_event("warning", "api.error", path=request.path, status=status, error_type=type(exc).__name__, error=str(exc))
    return jsonify({"error": message, "session": current.to_public_dict() if current else None}), status


@api_bp.errorhandler(GarageCanvasError)
def _handle_stage_error(exc: GarageCanvasError):
    if isinstance(exc, PreprocessError):
        status = 400
    elif isinstance(exc, PaymentUnverifiedError):
        status = 402
    elif isinstance(exc, UnlockInProgressError):
        status = 409
    else:
        status = 502
    return _error(exc, exc.user_message, status)


@api_bp.errorhandler(RequestEntityTooLarge)
def _handle_too_large(exc: RequestEntityTooLarge):
    return _error(exc, PreprocessError.user_message, 413)


@api_bp.errorhandler(InvalidTransition)
def _handle_invalid_transition(exc: InvalidTransition):
    return _error(exc, "That action isn't available right now. Please refresh and try again.", 400)


@api_bp.errorhandler(ValueError)
def _handle_bad_request(exc: ValueError):
    return _error(exc, str(exc), 400)


@api_bp.errorhandler(LookupError)
def _handle_missing(exc: LookupError):
    return _error(exc, "Session not found. Please start over.", 404)


@api_bp.get("/session")
def get_session():
    return _respond(_remember(_art_sessions().load_or_create(_current_id())))


@api_bp.post("/upload")
def upload_photo():
    raw = _read_upload()
    current = _remember(_art_sessions().load_or_create(_current_id()))
    return _respond(_art_sessions().upload(current.id, raw))


@api_bp.post("/config")
def update_config():
    payload = request.get_json(silent=True) or {}
    return _respond(_art_sessions().customize(_require_id(), payload))


@api_bp.post("/generate")
def generate_preview():
    payload = request.get_json(silent=True) or None
    return _respond(_art_sessions().generate_preview(_require_id(), payload))


@api_bp.post("/checkout")
def start_checkout():
    checkout = _art_sessions().start_checkout(_require_id())
    return jsonify({"checkout_url": checkout.checkout_url, "session_id": checkout.session_id})


@api_bp.post("/checkout/cancel")
def cancel_checkout():
    return _respond(_art_sessions().cancel_checkout(_current_id()))


@api_bp.post("/payment/verify")
def verify_payment():
    payload = request.get_json(silent=True) or {}
    checkout_session_id = str(payload.get("session_id") or "").strip()
    if not checkout_session_id:
        raise ValueError("session_id is required")
    wizard_session = _art_sessions().complete_payment(checkout_session_id, _current_id())
    return _respond(_remember(wizard_session))


@api_bp.post("/dev/unlock")
def dev_unlock():
    if not _components()["settings"].dev_unlock:
        abort(404)
    return _respond(_art_sessions().dev_unlock(_require_id()))


@api_bp.post("/reset")
def reset_session():
    return _respond(_remember(_art_sessions().reset(_current_id())))


@api_bp.get("/art/bundle")
def download_bundle():
    data, filename = _art_sessions().art_bundle(_require_id())
    return send_file(BytesIO(data), mimetype="application/zip", as_attachment=True, download_name=filename)


@api_bp.get("/art/<fmt>")
def download_art(fmt: str):
    data, mime_type, filename = _art_sessions().art_file(_require_id(), fmt)
    inline = request.args.get("inline") in ("1", "true")
    return send_file(BytesIO(data), mimetype=mime_type, as_attachment=not inline, download_name=filename)


def _require_id() -> str:
    session_id = _current_id()
    if not session_id:
        raise LookupError("no art session cookie")
    return session_id


def _read_upload() -> bytes:
    uploaded = request.files.get("photo")
    if uploaded is not None:
        return uploaded.read()
    payload = request.get_json(silent=True) or {}
    image = str(payload.get("image") or "")
    if not image:
        raise PreprocessError("no photo in request")
    if image.startswith("data:") and "," in image:
        image = image.split(",", 1)[1]
    try:
        return base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise PreprocessError("photo payload is not valid base64") from exc
