"""Reference-first rendering of the three wallpaper formats."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Protocol

from ..common.models.generation import GeneratedArtSet, GenerationConfig, RenderedImage
from ..common.models.options import ArtFormat
from ..common.models.vehicle import VehicleAnalysis
from ..common.services.errors import GeminiServiceError, RenderError
from ..common.services.logging import log_event
from .image_preprocessor import MIME_FORMATS, transcode_image
from .prompt_composer import build_base_prompt, build_format_prompt, render_aspect_ratio


REFERENCE_FORMAT = ArtFormat.PHONE
FOLLOW_UP_FORMATS = (ArtFormat.DESKTOP, ArtFormat.PRINT)


class Renderer(Protocol):
    def render(
        self,
        *,
        image: str,
        prompt: str,
        reference: Optional[RenderedImage] = None,
        aspect_ratio: Optional[str] = None,
    ) -> RenderedImage:
        ...


class GenerationPipeline:
    """
    Renders the phone image first, then desktop and print conditioned on it.

    Every render is attempted once. A failure raises ``RenderError`` tagged
    with the failed format; images rendered before it are left with the caller.
    """

    def __init__(self, renderer: Renderer) -> None:
        self._renderer = renderer

    def render_preview(self, image: str, analysis: VehicleAnalysis, config: GenerationConfig) -> RenderedImage:
        base = build_base_prompt(analysis, config)
        return self._render(image, build_format_prompt(base, REFERENCE_FORMAT), REFERENCE_FORMAT)

    def render_remaining(
        self,
        image: str,
        reference: RenderedImage,
        analysis: VehicleAnalysis,
        config: GenerationConfig,
    ) -> Dict[ArtFormat, RenderedImage]:
        if reference is None:
            raise ValueError("a rendered reference image is required")
        base = build_base_prompt(analysis, config)
        outputs: Dict[ArtFormat, RenderedImage] = {}
        # sequential on purpose; bounds concurrent load on the image model
        for fmt in FOLLOW_UP_FORMATS:
            rendered = self._render(image, build_format_prompt(base, fmt, reference), fmt, reference=reference)
            outputs[fmt] = self._match_mime(rendered, reference.mime_type, fmt)
        return outputs

    def render_full_set(
        self,
        image: str,
        analysis: VehicleAnalysis,
        config: GenerationConfig,
        on_preview: Optional[Callable[[RenderedImage], None]] = None,
    ) -> GeneratedArtSet:
        preview = self.render_preview(image, analysis, config)
        if on_preview is not None:
            on_preview(preview)
        return assemble_art_set(preview, self.render_remaining(image, preview, analysis, config))

    def _render(
        self,
        image: str,
        prompt: str,
        fmt: ArtFormat,
        reference: Optional[RenderedImage] = None,
    ) -> RenderedImage:
        log_event("info", "render.start", format=fmt.value, with_reference=reference is not None)
        try:
            rendered = self._renderer.render(
                image=image,
                prompt=prompt,
                reference=reference,
                aspect_ratio=render_aspect_ratio(fmt),
            )
        except GeminiServiceError as exc:
            log_event("error", "render.failed", format=fmt.value, error=str(exc))
            raise RenderError(str(exc), stage=fmt.value) from exc
        log_event("info", "render.done", format=fmt.value, mime_type=rendered.mime_type)
        return rendered

    @staticmethod
    def _match_mime(rendered: RenderedImage, mime_type: str, fmt: ArtFormat) -> RenderedImage:
        if rendered.mime_type == mime_type or mime_type not in MIME_FORMATS:
            return rendered
        try:
            data = transcode_image(rendered.data, mime_type)
        except ValueError as exc:
            log_event("error", "render.failed", format=fmt.value, error=str(exc))
            raise RenderError(str(exc), stage=fmt.value) from exc
        return RenderedImage(data=data, mime_type=mime_type)


def assemble_art_set(preview: RenderedImage, remaining: Dict[ArtFormat, RenderedImage]) -> GeneratedArtSet:
    missing: List[str] = [fmt.value for fmt in FOLLOW_UP_FORMATS if fmt not in remaining]
    if missing:
        raise ValueError(f"art set is missing formats: {', '.join(missing)}")
    return GeneratedArtSet(
        phone=preview.data,
        desktop=remaining[ArtFormat.DESKTOP].data,
        print=remaining[ArtFormat.PRINT].data,
        mime_type=preview.mime_type,
    )
