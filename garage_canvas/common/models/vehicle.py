"""Vehicle analysis result returned by the vision model."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .options import BackgroundTheme, StanceStyle, VehicleCategory, parse_option


REQUIRED_FIELDS = ("make", "model", "year", "color", "category", "isOffroad", "orientation", "facingDirection")


@dataclass
class PopularMod:
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass
class PopularWheel:
    name: str
    style: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "style": self.style}


@dataclass
class WheelAudit:
    has_white_lettering: bool = False
    has_center_caps: bool = False
    center_cap_color: str = "none visible"
    wheel_color: str = "not visible"
    wheel_finish: str = "not visible"
    wheel_type: str = "unknown"

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "WheelAudit":
        return cls(
            has_white_lettering=bool(data.get("hasWhiteLettering", False)),
            has_center_caps=bool(data.get("hasCenterCaps", False)),
            center_cap_color=_text(data.get("centerCapColor"), "none visible"),
            wheel_color=_text(data.get("wheelColor"), "not visible"),
            wheel_finish=_text(data.get("wheelFinish"), "not visible"),
            wheel_type=_text(data.get("wheelType"), "unknown"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "hasWhiteLettering": self.has_white_lettering,
            "hasCenterCaps": self.has_center_caps,
            "centerCapColor": self.center_cap_color,
            "wheelColor": self.wheel_color,
            "wheelFinish": self.wheel_finish,
            "wheelType": self.wheel_type,
        }


@dataclass
class VehicleAnalysis:
    """One photo's analysis.

    Serialized with the model's own camelCase field names so the stored
    snapshot and the API payload match the structured-output schema.
    """

    make: str
    model: str
    year: str
    color: str
    category: VehicleCategory
    is_offroad: bool
    orientation: str
    facing_direction: str
    mods: List[str] = field(default_factory=list)
    installed_accessories: List[str] = field(default_factory=list)
    geometry_audit: Dict[str, str] = field(default_factory=dict)
    wheel_audit: Optional[WheelAudit] = None
    visual_features: Dict[str, str] = field(default_factory=dict)
    popular_mods: List[PopularMod] = field(default_factory=list)
    popular_wheels: List[PopularWheel] = field(default_factory=list)
    suggested_stance: Optional[StanceStyle] = None
    suggested_background: Optional[BackgroundTheme] = None

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.year, self.make, self.model) if part)

    @property
    def top_wheel_name(self) -> Optional[str]:
        for wheel in self.popular_wheels:
            if wheel.name:
                return wheel.name
        return None

    @property
    def popular_mod_names(self) -> List[str]:
        return [mod.name for mod in self.popular_mods]

    @classmethod
    def from_payload(cls, data: Any) -> "VehicleAnalysis":
        """Validate a model payload; raises ValueError on schema mismatch."""

        if not isinstance(data, dict):
            raise ValueError("analysis payload must be an object")
        missing = [key for key in REQUIRED_FIELDS if data.get(key) in (None, "")]
        if missing:
            raise ValueError(f"analysis payload missing required fields: {', '.join(missing)}")
        if not isinstance(data["isOffroad"], bool):
            raise ValueError("isOffroad must be a boolean")

        wheel_raw = data.get("wheelAudit")
        return cls(
            make=_text(data["make"]),
            model=_text(data["model"]),
            year=_text(data["year"]),
            color=_text(data["color"]),
            category=parse_option(VehicleCategory, data["category"], "category"),
            is_offroad=data["isOffroad"],
            orientation=_text(data["orientation"]),
            facing_direction=_text(data["facingDirection"]),
            mods=_text_list(data.get("mods")),
            installed_accessories=_text_list(data.get("installedAccessories")),
            geometry_audit=_text_map(data.get("geometryAudit")),
            wheel_audit=WheelAudit.from_payload(wheel_raw) if isinstance(wheel_raw, dict) and wheel_raw else None,
            visual_features=_text_map(data.get("visualFeatures")),
            popular_mods=_popular_mods(data.get("popularMods")),
            popular_wheels=_popular_wheels(data.get("popularWheels")),
            suggested_stance=_optional_option(StanceStyle, data.get("suggestedStance")),
            suggested_background=_optional_option(BackgroundTheme, data.get("suggestedBackground")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "color": self.color,
            "category": self.category.value,
            "isOffroad": self.is_offroad,
            "orientation": self.orientation,
            "facingDirection": self.facing_direction,
            "mods": list(self.mods),
            "installedAccessories": list(self.installed_accessories),
            "geometryAudit": dict(self.geometry_audit),
            "wheelAudit": self.wheel_audit.to_payload() if self.wheel_audit else None,
            "visualFeatures": dict(self.visual_features),
            "popularMods": [mod.to_dict() for mod in self.popular_mods],
            "popularWheels": [wheel.to_dict() for wheel in self.popular_wheels],
            "suggestedStance": self.suggested_stance.value if self.suggested_stance else None,
            "suggestedBackground": self.suggested_background.value if self.suggested_background else None,
        }


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]


def _text_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): _text(v) for k, v in value.items() if v is not None}


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _popular_mods(value: Any) -> List[PopularMod]:
    mods: List[PopularMod] = []
    if not isinstance(value, list):
        return mods
    for item in value:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name"))
        if not name:
            continue
        mods.append(PopularMod(id=_text(item.get("id")) or _slug(name), name=name, description=_text(item.get("description"))))
    return mods


def _popular_wheels(value: Any) -> List[PopularWheel]:
    wheels: List[PopularWheel] = []
    if not isinstance(value, list):
        return wheels
    for item in value:
        if isinstance(item, dict) and _text(item.get("name")):
            wheels.append(PopularWheel(name=_text(item.get("name")), style=_text(item.get("style"))))
    return wheels


def _optional_option(enum_cls, value: Any):
    # suggestions are advisory; an out-of-range value is dropped, not fatal
    if value in (None, ""):
        return None
    try:
        return parse_option(enum_cls, value, enum_cls.__name__)
    except ValueError:
        return None
