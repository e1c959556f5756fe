"""User-editable render options and rendered outputs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .options import (
    ArtFormat,
    ArtStyle,
    BackgroundTheme,
    FidelityMode,
    PositionMode,
    Resolution,
    StanceStyle,
    parse_option,
)


@dataclass
class GenerationConfig:
    style: ArtStyle = ArtStyle.POSTER
    background: BackgroundTheme = BackgroundTheme.MOUNTAINS
    fidelity: FidelityMode = FidelityMode.CLEAN_BUILD
    position: PositionMode = PositionMode.AS_PHOTOGRAPHED
    stance: StanceStyle = StanceStyle.STOCK
    selected_mods: List[str] = field(default_factory=list)
    output_purpose: ArtFormat = ArtFormat.PHONE
    resolution: Resolution = Resolution.UHD

    def merged(self, updates: Optional[Dict[str, Any]]) -> "GenerationConfig":
        """Return a copy with the given (partial) payload applied."""

        updates = updates or {}
        changes: Dict[str, Any] = {}
        parsers = {
            "style": ArtStyle,
            "background": BackgroundTheme,
            "fidelity": FidelityMode,
            "position": PositionMode,
            "stance": StanceStyle,
            "output_purpose": ArtFormat,
            "resolution": Resolution,
        }
        for key, enum_cls in parsers.items():
            if updates.get(key) not in (None, ""):
                changes[key] = parse_option(enum_cls, updates[key], key)
        if "selected_mods" in updates:
            mods = updates.get("selected_mods") or []
            if not isinstance(mods, list):
                raise ValueError("selected_mods must be a list")
            changes["selected_mods"] = _unique([str(m).strip() for m in mods if str(m or "").strip()])
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GenerationConfig":
        return cls().merged(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "style": self.style.value,
            "background": self.background.value,
            "fidelity": self.fidelity.value,
            "position": self.position.value,
            "stance": self.stance.value,
            "selected_mods": list(self.selected_mods),
            "output_purpose": self.output_purpose.value,
            "resolution": self.resolution.value,
        }


@dataclass
class RenderedImage:
    """One raster returned by the image model, base64 encoded."""

    data: str
    mime_type: str = "image/png"

    def to_dict(self) -> Dict[str, str]:
        return {"data": self.data, "mime_type": self.mime_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderedImage":
        return cls(data=str(data["data"]), mime_type=str(data.get("mime_type") or "image/png"))


@dataclass
class GeneratedArtSet:
    phone: str
    desktop: str
    print: str
    mime_type: str = "image/png"

    def image_for(self, fmt: ArtFormat) -> str:
        return getattr(self, ArtFormat(fmt).value)

    def to_dict(self) -> Dict[str, str]:
        return {"phone": self.phone, "desktop": self.desktop, "print": self.print, "mime_type": self.mime_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedArtSet":
        return cls(
            phone=str(data["phone"]),
            desktop=str(data["desktop"]),
            print=str(data["print"]),
            mime_type=str(data.get("mime_type") or "image/png"),
        )


def _unique(items: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
