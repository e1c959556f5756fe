"""GarageCanvas 車輛海報藝術 Flask 應用。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask

from .common.config import ServiceSettings, load_settings
from .common.db.session import create_session_factory
from .common.models.options import ArtFormat
from .common.services.gemini_service import GeminiService
from .common.services.logging import log_event
from .common.services.stripe_service import StripeCheckoutService
from .common.services.unlock_service import UnlockLedger
from .config import GarageCanvasConfig
from .routes import api, user
from .services import (
    AnalysisClient,
    ArtSessionService,
    CheckoutGate,
    GenerationPipeline,
    ImagePreprocessor,
    JsonFileStore,
)


def build_components(config: GarageCanvasConfig, settings: ServiceSettings) -> Dict[str, Any]:
    gemini = GeminiService.from_settings(settings)
    payments = StripeCheckoutService.from_settings(settings)
    # one paid unlock renders at most every format once
    ledger = UnlockLedger(
        create_session_factory(settings.database_url),
        stale_after_s=settings.gemini_api_timeout * len(ArtFormat),
    )
    store = JsonFileStore(config.store_dir)
    pipeline = GenerationPipeline(gemini)
    gate = CheckoutGate(store, payments, pipeline, ledger)
    art_sessions = ArtSessionService(
        store,
        ImagePreprocessor.from_settings(settings),
        AnalysisClient(gemini),
        pipeline,
        gate,
    )
    return {
        "settings": settings,
        "gemini": gemini,
        "payments": payments,
        "ledger": ledger,
        "store": store,
        "art_sessions": art_sessions,
    }


def create_app(config: Optional[GarageCanvasConfig] = None, components: Optional[Dict[str, Any]] = None) -> Flask:
    config = config or GarageCanvasConfig.load()
    if components is None:
        settings = load_settings(config.settings_file, default_database_url=config.default_database_url)
        components = build_components(config, settings)
    settings = components["settings"]

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = Flask(
        __name__,
        template_folder=str(Path(__file__).parent / "templates"),
        static_folder=str(Path(__file__).parent / "static"),
    )
    app.config["SECRET_KEY"] = config.secret_key
    # base64 photos and multipart uploads of phone originals
    app.config["MAX_CONTENT_LENGTH"] = 32 * 1024 * 1024
    app.config["GARAGE_CANVAS_CONFIG"] = config
    app.extensions["garage_canvas_components"] = components

    app.register_blueprint(user.user_bp)
    app.register_blueprint(api.api_bp)

    log_event("info", "app.started", settings=settings.redacted())
    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=6055, debug=False)


if __name__ == "__main__":
    main()
