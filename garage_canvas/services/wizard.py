"""Wizard state machine.

A ``WizardSession`` is immutable; every user action goes through one of the
transition functions below, which return a new session or raise
``InvalidTransition`` when the action is not allowed from the current step.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from ..common.models.generation import GeneratedArtSet, GenerationConfig, RenderedImage
from ..common.models.options import OFFROAD_STANCES, STREET_STANCES, BackgroundTheme, StanceStyle
from ..common.models.vehicle import VehicleAnalysis


class Step(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    CUSTOMIZING = "customizing"
    GENERATING = "generating"
    PREVIEWING = "previewing"
    COMPLETING = "completing"
    DONE = "done"


class InvalidTransition(Exception):
    def __init__(self, action: str, step: Step) -> None:
        super().__init__(f"cannot {action} while {step.value}")
        self.action = action
        self.step = step


STANCE_LABELS: Dict[StanceStyle, str] = {
    StanceStyle.STOCK: "Stock",
    StanceStyle.LIFTED: "Lifted",
    StanceStyle.STEELIES: "Mud Tires",
    StanceStyle.LOWERED: "Lowered",
}

CHECKOUT_CANCELLED_MESSAGE = "Checkout cancelled. Your preview is still here."


@dataclass(frozen=True)
class StanceOption:
    stance: StanceStyle
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"value": self.stance.value, "label": self.label}


@dataclass(frozen=True)
class WizardSession:
    id: str
    step: Step = Step.IDLE
    photo: Optional[str] = None
    analysis: Optional[VehicleAnalysis] = None
    config: GenerationConfig = field(default_factory=GenerationConfig)
    preview: Optional[RenderedImage] = None
    art_set: Optional[GeneratedArtSet] = None
    unlocked: bool = False
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "step": self.step.value,
            "photo": self.photo,
            "analysis": self.analysis.to_payload() if self.analysis else None,
            "config": self.config.to_dict(),
            "preview": self.preview.to_dict() if self.preview else None,
            "art_set": self.art_set.to_dict() if self.art_set else None,
            "unlocked": self.unlocked,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WizardSession":
        return cls(
            id=str(data["id"]),
            step=Step(data.get("step") or Step.IDLE.value),
            photo=data.get("photo"),
            analysis=VehicleAnalysis.from_payload(data["analysis"]) if data.get("analysis") else None,
            config=GenerationConfig.from_dict(data.get("config")),
            preview=RenderedImage.from_dict(data["preview"]) if data.get("preview") else None,
            art_set=GeneratedArtSet.from_dict(data["art_set"]) if data.get("art_set") else None,
            unlocked=bool(data.get("unlocked", False)),
            message=data.get("message"),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Client view; the uploaded photo and the paid images stay server side."""

        return {
            "id": self.id,
            "step": self.step.value,
            "analysis": self.analysis.to_payload() if self.analysis else None,
            "config": self.config.to_dict(),
            "stance_options": [o.to_dict() for o in stance_options(self.analysis)] if self.analysis else [],
            "preview": self.preview.to_dict() if self.preview else None,
            "unlocked": self.unlocked,
            "formats": ["phone", "desktop", "print"] if self.art_set else [],
            "message": self.message,
        }


def stance_options(analysis: VehicleAnalysis) -> List[StanceOption]:
    stances = OFFROAD_STANCES if analysis.is_offroad else STREET_STANCES
    return [StanceOption(stance, STANCE_LABELS[stance]) for stance in stances]


def default_config(analysis: VehicleAnalysis) -> GenerationConfig:
    return GenerationConfig(
        background=analysis.suggested_background or BackgroundTheme.MOUNTAINS,
        stance=StanceStyle.STOCK,
    )


def validate_config(analysis: VehicleAnalysis, config: GenerationConfig) -> GenerationConfig:
    allowed = OFFROAD_STANCES if analysis.is_offroad else STREET_STANCES
    if config.stance not in allowed:
        raise ValueError(f"Stance {config.stance.value!r} is not offered for this vehicle")
    unknown = [m for m in config.selected_mods if m not in analysis.popular_mod_names]
    if unknown:
        raise ValueError(f"Unknown mods: {', '.join(unknown)}")
    return config


# Transitions ---------------------------------------------------------------


def new_session(session_id: str) -> WizardSession:
    return WizardSession(id=session_id)


def _require(session: WizardSession, action: str, allowed: FrozenSet[Step]) -> None:
    if session.step not in allowed:
        raise InvalidTransition(action, session.step)


def begin_analysis(session: WizardSession, photo: str) -> WizardSession:
    _require(session, "upload a photo", frozenset({Step.IDLE, Step.CUSTOMIZING, Step.PREVIEWING}))
    return WizardSession(id=session.id, step=Step.ANALYZING, photo=photo)


def analysis_succeeded(session: WizardSession, analysis: VehicleAnalysis) -> WizardSession:
    _require(session, "finish analysis", frozenset({Step.ANALYZING}))
    return replace(session, step=Step.CUSTOMIZING, analysis=analysis, config=default_config(analysis), message=None)


def analysis_failed(session: WizardSession, message: str) -> WizardSession:
    _require(session, "fail analysis", frozenset({Step.ANALYZING}))
    return WizardSession(id=session.id, step=Step.IDLE, message=message)


def update_config(session: WizardSession, config: GenerationConfig) -> WizardSession:
    _require(session, "change options", frozenset({Step.CUSTOMIZING, Step.PREVIEWING}))
    validate_config(session.analysis, config)
    if config == session.config:
        return session
    return replace(session, step=Step.CUSTOMIZING, config=config, preview=None, message=None)


def begin_generation(session: WizardSession) -> WizardSession:
    _require(session, "generate", frozenset({Step.CUSTOMIZING, Step.PREVIEWING}))
    return replace(session, step=Step.GENERATING, message=None)


def generation_succeeded(session: WizardSession, preview: RenderedImage) -> WizardSession:
    _require(session, "finish generation", frozenset({Step.GENERATING}))
    return replace(session, step=Step.PREVIEWING, preview=preview, message=None)


def generation_failed(session: WizardSession, message: str) -> WizardSession:
    _require(session, "fail generation", frozenset({Step.GENERATING}))
    return replace(session, step=Step.CUSTOMIZING, message=message)


def begin_completion(session: WizardSession) -> WizardSession:
    _require(session, "unlock", frozenset({Step.PREVIEWING}))
    return replace(session, step=Step.COMPLETING, message=None)


def completion_succeeded(session: WizardSession, art_set: GeneratedArtSet) -> WizardSession:
    _require(session, "finish unlock", frozenset({Step.COMPLETING}))
    return replace(session, step=Step.DONE, art_set=art_set, unlocked=True, message=None)


def completion_failed(session: WizardSession, message: str) -> WizardSession:
    _require(session, "fail unlock", frozenset({Step.COMPLETING}))
    return replace(session, step=Step.PREVIEWING, message=message)


def checkout_cancelled(session: WizardSession) -> WizardSession:
    _require(session, "cancel checkout", frozenset({Step.PREVIEWING, Step.COMPLETING}))
    return replace(session, step=Step.PREVIEWING, message=CHECKOUT_CANCELLED_MESSAGE)


def payment_applied(session: WizardSession, art_set: GeneratedArtSet) -> WizardSession:
    """A verified payment unlocks the set whatever step the session was left in."""
    return replace(session, step=Step.DONE, art_set=art_set, unlocked=True, message=None)


def reset(session: WizardSession) -> WizardSession:
    return new_session(session.id)
