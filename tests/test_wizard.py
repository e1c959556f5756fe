import pytest

from conftest import analysis_payload, street_payload
from garage_canvas.common.models.generation import GeneratedArtSet, GenerationConfig, RenderedImage
from garage_canvas.common.models.options import BackgroundTheme, StanceStyle
from garage_canvas.common.models.vehicle import VehicleAnalysis
from garage_canvas.services import wizard
from garage_canvas.services.wizard import InvalidTransition, Step


OFFROAD = VehicleAnalysis.from_payload(analysis_payload())
STREET = VehicleAnalysis.from_payload(street_payload())
PREVIEW = RenderedImage(data="cHJldmlldw==")


def _previewing():
    session = wizard.begin_analysis(wizard.new_session("s1"), "cGhvdG8=")
    session = wizard.analysis_succeeded(session, OFFROAD)
    session = wizard.begin_generation(session)
    return wizard.generation_succeeded(session, PREVIEW)


def test_offroad_vehicles_get_offroad_stances_only():
    options = wizard.stance_options(OFFROAD)

    assert [o.stance for o in options] == [StanceStyle.STOCK, StanceStyle.LIFTED, StanceStyle.STEELIES]
    assert [o.label for o in options] == ["Stock", "Lifted", "Mud Tires"]


def test_street_vehicles_never_get_offroad_stances():
    stances = {o.stance for o in wizard.stance_options(STREET)}

    assert stances == {StanceStyle.STOCK, StanceStyle.LOWERED}


def test_defaults_follow_the_suggested_background_and_stock_stance():
    assert wizard.default_config(OFFROAD).background is BackgroundTheme.FOREST
    assert wizard.default_config(OFFROAD).stance is StanceStyle.STOCK
    assert wizard.default_config(STREET).background is BackgroundTheme.MOUNTAINS


def test_happy_path_reaches_done():
    session = wizard.begin_completion(_previewing())
    art = GeneratedArtSet(phone=PREVIEW.data, desktop="ZA==", print="cA==")

    done = wizard.completion_succeeded(session, art)

    assert done.step is Step.DONE
    assert done.unlocked is True
    assert done.art_set == art


def test_transitions_do_not_mutate_the_input():
    session = wizard.new_session("s1")

    analyzing = wizard.begin_analysis(session, "cGhvdG8=")

    assert session.step is Step.IDLE
    assert analyzing.step is Step.ANALYZING
    with pytest.raises(AttributeError):
        analyzing.step = Step.DONE


def test_changing_options_drops_the_preview():
    session = _previewing()

    changed = wizard.update_config(session, session.config.merged({"background": "Desert Dunes"}))

    assert changed.step is Step.CUSTOMIZING
    assert changed.preview is None


def test_resubmitting_the_same_options_keeps_the_preview():
    session = _previewing()

    assert wizard.update_config(session, session.config) is session


def test_config_validation_rejects_wrong_stance_and_unknown_mods():
    session = wizard.analysis_succeeded(wizard.begin_analysis(wizard.new_session("s1"), "eA=="), OFFROAD)

    with pytest.raises(ValueError):
        wizard.update_config(session, GenerationConfig(stance=StanceStyle.LOWERED))
    with pytest.raises(ValueError):
        wizard.update_config(session, GenerationConfig(selected_mods=["Turbo"]))


def test_failures_return_to_the_previous_interactive_step():
    generating = wizard.begin_generation(wizard.analysis_succeeded(wizard.begin_analysis(wizard.new_session("s1"), "eA=="), OFFROAD))
    assert wizard.generation_failed(generating, "nope").step is Step.CUSTOMIZING

    completing = wizard.begin_completion(_previewing())
    failed = wizard.completion_failed(completing, "Payment verification failed.")
    assert failed.step is Step.PREVIEWING
    assert failed.preview == PREVIEW

    analyzing = wizard.begin_analysis(wizard.new_session("s1"), "eA==")
    assert wizard.analysis_failed(analyzing, "bad").step is Step.IDLE


def test_invalid_transitions_raise():
    with pytest.raises(InvalidTransition):
        wizard.begin_generation(wizard.new_session("s1"))
    with pytest.raises(InvalidTransition):
        wizard.begin_completion(wizard.new_session("s1"))


def test_checkout_cancel_returns_to_preview():
    cancelled = wizard.checkout_cancelled(wizard.begin_completion(_previewing()))

    assert cancelled.step is Step.PREVIEWING
    assert cancelled.message == wizard.CHECKOUT_CANCELLED_MESSAGE


def test_session_serialization_round_trips():
    session = _previewing()

    assert wizard.WizardSession.from_dict(session.to_dict()) == session
    public = session.to_public_dict()
    assert "photo" not in public
    assert [o["value"] for o in public["stance_options"]] == ["Stock", "Lifted + AT", "Steelies + Mud"]
