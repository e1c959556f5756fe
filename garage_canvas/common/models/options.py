"""Enumerated wizard options.

The enum values double as the labels the client shows and as the keys of
the prompt fragment tables, so they must stay stable.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Type, TypeVar


E = TypeVar("E", bound=Enum)


class ArtStyle(str, Enum):
    POSTER = "Poster Art"
    STICKER = "Sticker Badge"


class BackgroundTheme(str, Enum):
    SOLID = "Studio Clean"
    GRADIENT = "Soft Gradient"
    MOUNTAINS = "Mountain Peaks"
    FOREST = "Nordic Forest"
    DESERT = "Desert Dunes"
    TOPO = "Topographic"
    CITY = "City Skyline"
    NEON = "Neon Night"
    GARAGE = "Studio Garage"


class VehicleCategory(str, Enum):
    OFFROAD = "Off-Road"
    SPORTS = "Sports"
    LUXURY = "Luxury"
    CLASSIC = "Classic"
    EVERYDAY = "Everyday"


class FidelityMode(str, Enum):
    EXACT_MATCH = "Exact Match"
    CLEAN_BUILD = "Clean Build"
    FACTORY_FRESH = "Factory Fresh"


class PositionMode(str, Enum):
    AS_PHOTOGRAPHED = "As Photographed"
    SIDE_PROFILE = "Side Profile"


class StanceStyle(str, Enum):
    STOCK = "Stock"
    LIFTED = "Lifted + AT"
    STEELIES = "Steelies + Mud"
    LOWERED = "Lowered + Wheels"


OFFROAD_STANCES = (StanceStyle.STOCK, StanceStyle.LIFTED, StanceStyle.STEELIES)
STREET_STANCES = (StanceStyle.STOCK, StanceStyle.LOWERED)


class ArtFormat(str, Enum):
    PHONE = "phone"
    DESKTOP = "desktop"
    PRINT = "print"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Resolution(str, Enum):
    HD = "1K"
    FHD = "2K"
    UHD = "4K"


def parse_option(enum_cls: Type[E], value: Any, field: str) -> E:
    """Accept an enum member, its value, or its member name."""

    if isinstance(value, enum_cls):
        return value
    text = str(value or "").strip()
    for member in enum_cls:
        if text == member.value or text.upper() == member.name:
            return member
    raise ValueError(f"Unknown {field}: {value!r}")
