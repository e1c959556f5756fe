import pytest

from conftest import analysis_payload
from garage_canvas.common.models.generation import GenerationConfig, RenderedImage
from garage_canvas.common.models.options import BackgroundTheme, StanceStyle
from garage_canvas.common.models.purchase import PendingPurchase
from garage_canvas.common.models.vehicle import VehicleAnalysis
from garage_canvas.common.db.session import create_session_factory
from garage_canvas.common.services.errors import PaymentUnverifiedError, RenderError, UnlockInProgressError
from garage_canvas.common.services.unlock_service import UnlockLedger
from garage_canvas.services.checkout_gate import art_key, pending_key


def _purchase(preview=True, correlation_id="abc123"):
    return PendingPurchase(
        correlation_id=correlation_id,
        image="cGhvdG8=",
        analysis=VehicleAnalysis.from_payload(analysis_payload()),
        config=GenerationConfig(
            background=BackgroundTheme.FOREST,
            stance=StanceStyle.LIFTED,
            selected_mods=["Snorkel"],
        ),
        preview=RenderedImage(data="cHJldmlldw==", mime_type="image/png") if preview else None,
        created_at="2026-01-02T03:04:05Z",
    )


def _checkout(gate, purchase):
    handle = gate.create_pending_purchase(purchase)
    return gate.redirect_to_checkout(handle, purchase.analysis.display_name)


def test_pending_purchase_survives_the_redirect_round_trip(gate, store):
    purchase = _purchase()

    handle = gate.create_pending_purchase(purchase)

    assert handle.store_key == pending_key("abc123")
    assert store.get(handle.store_key) is not None
    assert gate.restore(handle.correlation_id) == purchase


def test_checkout_carries_correlation_id_and_vehicle_name(gate, checkout):
    session = _checkout(gate, _purchase())

    assert session.checkout_url.startswith("https://checkout.test/")
    assert checkout.created == [{"art_session_id": "abc123", "vehicle_info": "2021 Toyota 4Runner"}]


def test_paid_return_renders_only_the_remaining_formats(gate, checkout, renderer, store, ledger):
    purchase = _purchase()
    session = _checkout(gate, purchase)

    result = gate.unlock(session.session_id)

    assert result.correlation_id == "abc123"
    assert result.art_set.phone == purchase.preview.data
    assert renderer.aspect_ratios == ["16:9", "4:3"]
    assert all(call["reference"] == purchase.preview for call in renderer.calls)
    assert store.get(pending_key("abc123")) is None
    assert store.get(art_key("abc123")) is not None
    assert ledger.get(session.session_id)["status"] == "completed"


def test_unpaid_return_never_renders(gate, checkout, renderer, store):
    checkout.paid = False
    session = _checkout(gate, _purchase())

    with pytest.raises(PaymentUnverifiedError):
        gate.unlock(session.session_id)

    assert renderer.calls == []
    assert store.get(pending_key("abc123")) is not None


def test_reloading_the_return_url_does_not_render_twice(gate, checkout, renderer):
    session = _checkout(gate, _purchase())
    first = gate.unlock(session.session_id)

    second = gate.unlock(session.session_id)

    assert second.already_unlocked is True
    assert second.art_set == first.art_set
    assert len(renderer.calls) == 2
    assert checkout.verified == [session.session_id]


def test_failed_paid_render_can_be_retried_with_the_same_session(gate, checkout, renderer, ledger, store):
    session = _checkout(gate, _purchase())
    renderer.fail_on = {"4:3"}

    with pytest.raises(RenderError):
        gate.unlock(session.session_id)

    assert ledger.get(session.session_id)["status"] == "failed"
    assert store.get(pending_key("abc123")) is not None

    renderer.fail_on = set()
    result = gate.unlock(session.session_id)

    assert result.already_unlocked is False
    assert ledger.get(session.session_id)["status"] == "completed"


def test_missing_preview_falls_back_to_the_full_set(gate, renderer):
    session = _checkout(gate, _purchase(preview=False))

    result = gate.unlock(session.session_id)

    assert renderer.aspect_ratios == ["9:16", "16:9", "4:3"]
    assert renderer.calls[1]["reference"].data == result.art_set.phone


def test_preview_rendered_during_fallback_is_kept_when_later_formats_fail(gate, renderer):
    session = _checkout(gate, _purchase(preview=False))
    renderer.fail_on = {"16:9"}

    with pytest.raises(RenderError):
        gate.unlock(session.session_id)

    assert gate.restore("abc123").preview is not None


def test_unknown_correlation_id_is_a_lookup_error(gate):
    with pytest.raises(LookupError):
        gate.restore("missing")


def test_reload_while_paid_render_runs_does_not_render_again(gate, checkout, renderer):
    session = _checkout(gate, _purchase())
    reloads = []
    render = renderer.render

    def render_then_reload(**kwargs):
        if kwargs["aspect_ratio"] == "16:9" and not reloads:
            try:
                gate.unlock(session.session_id)
            except UnlockInProgressError as exc:
                reloads.append(exc)
        return render(**kwargs)

    renderer.render = render_then_reload

    result = gate.unlock(session.session_id)

    assert len(reloads) == 1
    assert renderer.aspect_ratios == ["16:9", "4:3"]
    assert checkout.verified == [session.session_id]
    assert gate.unlock(session.session_id).art_set == result.art_set


def test_ledger_claim_is_won_once_until_failed(ledger):
    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is True
    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is False
    assert ledger.in_flight(ledger.get("cs_1")) is True

    ledger.mark_failed("cs_1", "model refused")

    assert ledger.in_flight(ledger.get("cs_1")) is False
    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is True

    ledger.mark_completed("cs_1")

    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is False


def test_stale_processing_claim_can_be_taken_over():
    ledger = UnlockLedger(create_session_factory("sqlite://"), stale_after_s=0)

    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is True
    assert ledger.in_flight(ledger.get("cs_1")) is False
    assert ledger.claim(checkout_session_id="cs_1", correlation_id="abc") is True
