import base64
import json
import os
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from garage_canvas.app import create_app
from garage_canvas.common.config import ServiceSettings
from garage_canvas.common.db.session import create_session_factory
from garage_canvas.common.models.generation import RenderedImage
from garage_canvas.common.models.purchase import CheckoutSession, PaymentVerification
from garage_canvas.common.services.errors import CheckoutError, GeminiServiceError
from garage_canvas.common.services.unlock_service import UnlockLedger
from garage_canvas.config import GarageCanvasConfig
from garage_canvas.services import (
    AnalysisClient,
    ArtSessionService,
    CheckoutGate,
    GenerationPipeline,
    ImagePreprocessor,
    JsonFileStore,
)


def analysis_payload(**overrides):
    payload = {
        "make": "Toyota",
        "model": "4Runner",
        "year": "2021",
        "color": "Army Green",
        "category": "Off-Road",
        "isOffroad": True,
        "orientation": "Driver Side",
        "facingDirection": "Left",
        "mods": ["roof rack"],
        "installedAccessories": ["roof rack", "rock sliders"],
        "wheelAudit": {
            "hasWhiteLettering": False,
            "hasCenterCaps": True,
            "centerCapColor": "black",
            "wheelColor": "bronze",
            "wheelFinish": "matte",
            "wheelType": "aftermarket alloy",
        },
        "popularMods": [
            {"id": "snorkel", "name": "Snorkel", "description": "Raised air intake"},
            {"id": "light-bar", "name": "Light Bar", "description": "Roof LED bar"},
        ],
        "popularWheels": [{"name": "Method 701", "style": "matte bronze"}],
        "suggestedStance": "Lifted + AT",
        "suggestedBackground": "Nordic Forest",
    }
    payload.update(overrides)
    return payload


def street_payload(**overrides):
    base = analysis_payload(
        make="BMW",
        model="M3",
        year="2019",
        color="Alpine White",
        category="Sports",
        isOffroad=False,
        installedAccessories=[],
        wheelAudit=None,
        popularMods=[{"id": "exhaust", "name": "Sport Exhaust", "description": ""}],
        popularWheels=[{"name": "BBS LM", "style": "gold mesh"}],
        suggestedStance="Lowered + Wheels",
        suggestedBackground=None,
    )
    base.update(overrides)
    return base


def make_jpeg(size=(800, 600), *, noise=False, quality=90):
    if noise:
        image = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    else:
        image = Image.new("RGB", size, (40, 90, 60))
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class StubVisionModel:
    def __init__(self, payload=None, *, raw=None, error=None):
        self.payload = payload if payload is not None else analysis_payload()
        self.raw = raw
        self.error = error
        self.calls = []

    def analyze(self, *, image, prompt, schema):
        self.calls.append({"image": image, "prompt": prompt, "schema": schema})
        if self.error:
            raise GeminiServiceError(self.error)
        return self.raw if self.raw is not None else json.dumps(self.payload)


class StubRenderer:
    """Deterministic renderer; records every call and can fail on a given aspect ratio."""

    def __init__(self, fail_on=None, mime_type="image/png"):
        self.fail_on = set(fail_on or ())
        self.mime_type = mime_type
        self.calls = []

    def render(self, *, image, prompt, reference=None, aspect_ratio=None):
        self.calls.append({"image": image, "prompt": prompt, "reference": reference, "aspect_ratio": aspect_ratio})
        if aspect_ratio in self.fail_on:
            raise GeminiServiceError(f"model refused {aspect_ratio}")
        data = base64.b64encode(f"render-{aspect_ratio}-{len(self.calls)}".encode()).decode("ascii")
        return RenderedImage(data=data, mime_type=self.mime_type)

    @property
    def aspect_ratios(self):
        return [call["aspect_ratio"] for call in self.calls]


class FakeCheckout:
    def __init__(self, paid=True):
        self.paid = paid
        self.fail_create = False
        self.created = []
        self.verified = []
        self._metadata = {}

    def create_checkout_session(self, art_session_id, vehicle_info=""):
        if self.fail_create:
            raise CheckoutError("stripe down")
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append({"art_session_id": art_session_id, "vehicle_info": vehicle_info})
        self._metadata[session_id] = {"artSessionId": art_session_id, "vehicleInfo": vehicle_info}
        return CheckoutSession(checkout_url=f"https://checkout.test/{session_id}", session_id=session_id)

    def verify_session(self, session_id):
        self.verified.append(session_id)
        return PaymentVerification(
            paid=self.paid,
            session_id=session_id,
            payment_status="paid" if self.paid else "unpaid",
            customer_email="driver@example.com",
            metadata=dict(self._metadata.get(session_id, {})),
        )


def make_settings(**overrides):
    values = dict(
        gemini_api_key="",
        gemini_analysis_model="gemini-3-flash-preview",
        gemini_image_model="gemini-2.5-flash-image",
        gemini_safety_level="BLOCK_ONLY_HIGH",
        gemini_api_timeout=30,
        gemini_analysis_search=True,
        stripe_secret_key="",
        stripe_price_id="",
        frontend_url="http://localhost:6055",
        database_url="sqlite://",
        log_level="INFO",
        max_image_dimension=1400,
        max_payload_bytes=3 * 1024 * 1024,
        dev_unlock=True,
    )
    values.update(overrides)
    return ServiceSettings(**values)


@pytest.fixture
def vision_model():
    return StubVisionModel()


@pytest.fixture
def renderer():
    return StubRenderer()


@pytest.fixture
def checkout():
    return FakeCheckout()


@pytest.fixture
def ledger():
    return UnlockLedger(create_session_factory("sqlite://"))


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "store")


@pytest.fixture
def pipeline(renderer):
    return GenerationPipeline(renderer)


@pytest.fixture
def gate(store, checkout, pipeline, ledger):
    return CheckoutGate(store, checkout, pipeline, ledger)


@pytest.fixture
def art_sessions(store, vision_model, pipeline, gate):
    return ArtSessionService(store, ImagePreprocessor(), AnalysisClient(vision_model), pipeline, gate)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(tmp_path, settings, store, checkout, ledger, art_sessions):
    config = GarageCanvasConfig(secret_key="test-secret", app_root=Path(__file__).resolve().parents[1], data_dir=tmp_path)
    components = {
        "settings": settings,
        "payments": checkout,
        "ledger": ledger,
        "store": store,
        "art_sessions": art_sessions,
    }
    app = create_app(config, components)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
