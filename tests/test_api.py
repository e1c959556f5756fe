import zipfile
from io import BytesIO

from conftest import make_jpeg, make_settings
from garage_canvas.app import create_app


def _upload(client):
    return client.post("/api/upload", data={"photo": (BytesIO(make_jpeg()), "truck.jpg")}, content_type="multipart/form-data")


def _to_preview(client):
    assert _upload(client).status_code == 200
    res = client.post("/api/generate", json={"stance": "Lifted + AT", "selected_mods": ["Snorkel"]})
    assert res.status_code == 200
    return res.get_json()["session"]


def test_index_renders_wizard(client):
    res = client.get("/")

    assert res.status_code == 200
    assert b"GarageCanvas" in res.data


def test_upload_analyzes_and_offers_offroad_stances(client, vision_model):
    res = _upload(client)

    body = res.get_json()["session"]
    assert res.status_code == 200
    assert body["step"] == "customizing"
    assert [o["value"] for o in body["stance_options"]] == ["Stock", "Lifted + AT", "Steelies + Mud"]
    assert body["config"]["background"] == "Nordic Forest"
    assert len(vision_model.calls) == 1


def test_unreadable_upload_is_a_400_with_friendly_message(client):
    res = client.post("/api/upload", data={"photo": (BytesIO(b"nope"), "x.heic")}, content_type="multipart/form-data")

    assert res.status_code == 400
    assert res.get_json()["error"] == "We couldn't read that photo. Try a different photo."


def test_analysis_failure_returns_to_upload_step(client, vision_model):
    vision_model.error = "quota exceeded for project 1234"

    res = _upload(client)

    body = res.get_json()
    assert res.status_code == 502
    assert body["error"] == "Couldn't analyze that image. Try a clearer photo."
    assert "quota" not in res.get_data(as_text=True)
    assert body["session"]["step"] == "idle"


def test_generate_preview(client, renderer):
    session = _to_preview(client)

    assert session["step"] == "previewing"
    assert session["preview"]["mime_type"] == "image/png"
    assert session["config"]["selected_mods"] == ["Snorkel"]
    assert renderer.aspect_ratios == ["9:16"]


def test_render_failure_goes_back_to_customizing(client, renderer):
    _upload(client)
    renderer.fail_on = {"9:16"}

    res = client.post("/api/generate")

    assert res.status_code == 502
    assert res.get_json()["session"]["step"] == "customizing"


def test_invalid_option_is_rejected(client):
    _upload(client)

    res = client.post("/api/config", json={"stance": "Lowered + Wheels"})

    assert res.status_code == 400


def test_checkout_then_paid_return_unlocks_downloads(client, checkout, renderer):
    _to_preview(client)
    res = client.post("/api/checkout")
    checkout_session_id = res.get_json()["session_id"]
    assert res.get_json()["checkout_url"].endswith(checkout_session_id)

    res = client.get(f"/?session_id={checkout_session_id}")
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/")

    state = client.get("/api/session").get_json()["session"]
    assert state["step"] == "done"
    assert state["unlocked"] is True
    assert renderer.aspect_ratios == ["9:16", "16:9", "4:3"]

    art = client.get("/api/art/desktop")
    assert art.status_code == 200
    assert art.mimetype == "image/png"
    assert "attachment" in art.headers["Content-Disposition"]
    assert "GarageCanvas-Toyota-4Runner-Desktop-4K.png" in art.headers["Content-Disposition"]

    inline = client.get("/api/art/phone?inline=1")
    assert "inline" in inline.headers["Content-Disposition"]

    bundle = client.get("/api/art/bundle")
    with zipfile.ZipFile(BytesIO(bundle.data)) as archive:
        assert sorted(archive.namelist()) == ["Desktop.png", "Phone.png", "Print.png"]


def test_unpaid_return_stays_on_preview_without_rendering(client, checkout, renderer):
    _to_preview(client)
    checkout.paid = False
    checkout_session_id = client.post("/api/checkout").get_json()["session_id"]

    res = client.post("/api/payment/verify", json={"session_id": checkout_session_id})

    assert res.status_code == 402
    body = res.get_json()
    assert body["error"] == "Payment verification failed. Please contact support if you were charged."
    assert body["session"]["step"] == "previewing"
    assert renderer.aspect_ratios == ["9:16"]


def test_reloading_return_url_is_idempotent(client, checkout, renderer):
    _to_preview(client)
    checkout_session_id = client.post("/api/checkout").get_json()["session_id"]

    client.get(f"/?session_id={checkout_session_id}")
    client.get(f"/?session_id={checkout_session_id}")

    assert renderer.aspect_ratios == ["9:16", "16:9", "4:3"]
    assert checkout.verified == [checkout_session_id]


def test_cancelled_checkout_returns_to_preview(client):
    _to_preview(client)
    client.post("/api/checkout")

    res = client.get("/?cancelled=true")

    assert res.status_code == 302
    state = client.get("/api/session").get_json()["session"]
    assert state["step"] == "previewing"
    assert state["message"].startswith("Checkout cancelled")


def test_downloads_are_locked_before_payment(client):
    _to_preview(client)

    res = client.get("/api/art/phone")

    assert res.status_code == 402


def test_dev_unlock(client, checkout):
    _to_preview(client)

    res = client.post("/api/dev/unlock")

    assert res.status_code == 200
    assert res.get_json()["session"]["step"] == "done"
    assert checkout.verified == []


def test_dev_unlock_is_hidden_when_disabled(tmp_path, art_sessions):
    from garage_canvas.config import GarageCanvasConfig

    config = GarageCanvasConfig(secret_key="x", app_root=tmp_path, data_dir=tmp_path)
    app = create_app(config, {"settings": make_settings(dev_unlock=False), "art_sessions": art_sessions})

    assert app.test_client().post("/api/dev/unlock").status_code == 404


def test_reset_starts_a_fresh_session(client):
    _to_preview(client)

    body = client.post("/api/reset").get_json()["session"]

    assert body["step"] == "idle"
    assert body["analysis"] is None


def test_oversized_request_body_gets_json_error(client):
    client.application.config["MAX_CONTENT_LENGTH"] = 1024

    res = client.post(
        "/api/upload",
        data={"photo": (BytesIO(make_jpeg((400, 400), noise=True)), "big.jpg")},
        content_type="multipart/form-data",
    )

    assert res.status_code == 413
    assert res.is_json
    assert res.get_json()["error"] == "We couldn't read that photo. Try a different photo."
