"""使用者前台介面路由。"""

from __future__ import annotations

from flask import Blueprint, current_app, redirect, render_template, request, session, url_for

from ..common.services.errors import GarageCanvasError
from ..common.services.logging import log_event
from .api import SESSION_COOKIE_KEY


user_bp = Blueprint("garage_canvas_user", __name__)


def _art_sessions():
    return current_app.extensions["garage_canvas_components"]["art_sessions"]


@user_bp.get("/")
def home():
    service = _art_sessions()
    checkout_session_id = request.args.get("session_id")
    if checkout_session_id:
        try:
            wizard_session = service.complete_payment(checkout_session_id, session.get(SESSION_COOKIE_KEY))
            session[SESSION_COOKIE_KEY] = wizard_session.id
        except (GarageCanvasError, LookupError) as exc:
            # the failed transition is already stored; the page shows its message
            log_event("warning", "checkout.return_failed", checkout_session_id=checkout_session_id, error=str(exc))
        return redirect(url_for("garage_canvas_user.home"))

    if request.args.get("cancelled"):
        service.cancel_checkout(session.get(SESSION_COOKIE_KEY))
        return redirect(url_for("garage_canvas_user.home"))

    wizard_session = service.load_or_create(session.get(SESSION_COOKIE_KEY))
    session[SESSION_COOKIE_KEY] = wizard_session.id
    return render_template("index.html", wizard=wizard_session.to_public_dict())
