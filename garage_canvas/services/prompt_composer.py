"""Deterministic instruction builders for the image model."""

from __future__ import annotations

from typing import List, Optional

from ..common.models.generation import GenerationConfig, RenderedImage
from ..common.models.options import ArtFormat, PositionMode, StanceStyle
from ..common.models.vehicle import VehicleAnalysis, WheelAudit
from . import prompt_templates as t


def build_base_prompt(analysis: VehicleAnalysis, config: GenerationConfig) -> str:
    """Describe vehicle, condition, stance and scene; identical inputs give identical text."""

    sections: List[str] = [
        f"**VEHICLE:** {analysis.display_name} ({analysis.color})",
        f"**POSITION:** {position_instructions(analysis, config.position)}",
        f"**CONDITION:** {t.FIDELITY_PROMPTS[config.fidelity]}",
        f"**STANCE:** {stance_instructions(config.stance, analysis.top_wheel_name)}",
        f"**SCENE:** {t.BACKGROUND_PROMPTS[config.background]}",
    ]
    if analysis.installed_accessories:
        sections.append(t.ACCESSORIES_PROMPT.format(items=", ".join(analysis.installed_accessories)))
    if config.selected_mods:
        sections.append(t.VIRTUAL_MODS_PROMPT.format(items=", ".join(config.selected_mods)))
    if analysis.wheel_audit is not None:
        sections.append(wheel_audit_instructions(analysis.wheel_audit))
    sections.append(t.FAITHFUL_REPRODUCTION_BLOCK)
    sections.append("\n".join((t.STYLE_HEADER, t.STYLE_PROMPTS[config.style], t.STYLE_FOOTER)))
    return "\n".join(sections)


def position_instructions(analysis: VehicleAnalysis, position: PositionMode) -> str:
    if position is PositionMode.AS_PHOTOGRAPHED:
        return t.AS_PHOTOGRAPHED_PROMPT.format(orientation=analysis.orientation, facing=analysis.facing_direction)
    return t.SIDE_PROFILE_PROMPT.format(facing=analysis.facing_direction)


def stance_instructions(stance: StanceStyle, top_wheel: Optional[str] = None) -> str:
    if stance is StanceStyle.LOWERED and top_wheel:
        return t.LOWERED_WITH_WHEEL_PROMPT.format(wheel=top_wheel)
    return t.STANCE_PROMPTS[stance]


def wheel_audit_instructions(audit: WheelAudit) -> str:
    lines = [
        t.WHEEL_AUDIT_HEADER,
        t.WHITE_LETTERING_YES if audit.has_white_lettering else t.WHITE_LETTERING_NO,
        t.CENTER_CAPS_YES.format(color=audit.center_cap_color) if audit.has_center_caps else t.CENTER_CAPS_NO,
        t.WHEEL_COLOR_LINE.format(color=audit.wheel_color, finish=audit.wheel_finish),
        t.WHEEL_TYPE_LINE.format(wheel_type=audit.wheel_type),
        t.RULE,
    ]
    return "\n".join(lines)


def build_first_generation_prompt(base_prompt: str, fmt: ArtFormat) -> str:
    spec = t.FORMAT_SPECS[ArtFormat(fmt)]
    return t.FIRST_GENERATION_TEMPLATE.format(
        orientation=spec.orientation,
        resolution=spec.resolution,
        composition=spec.composition,
        base=base_prompt,
        aspect_ratio=spec.aspect_ratio,
    )


def build_follow_up_prompt(base_prompt: str, fmt: ArtFormat) -> str:
    spec = t.FORMAT_SPECS[ArtFormat(fmt)]
    return t.FOLLOW_UP_TEMPLATE.format(
        rule=t.RULE,
        orientation=spec.orientation,
        resolution=spec.resolution,
        composition=spec.composition,
        base=base_prompt,
        aspect_ratio=spec.aspect_ratio,
    )


def build_format_prompt(base_prompt: str, fmt: ArtFormat, reference: Optional[RenderedImage] = None) -> str:
    """Follow-up wording when a reference image conditions the render, first-generation wording otherwise."""

    if reference is not None:
        return build_follow_up_prompt(base_prompt, fmt)
    return build_first_generation_prompt(base_prompt, fmt)


def render_aspect_ratio(fmt: ArtFormat) -> str:
    return t.FORMAT_SPECS[ArtFormat(fmt)].render_aspect_ratio
