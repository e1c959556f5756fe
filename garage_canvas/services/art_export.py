"""Download file naming and the zip bundle."""

from __future__ import annotations

import base64
import re
import zipfile
from io import BytesIO
from typing import Optional

from ..common.models.generation import GeneratedArtSet
from ..common.models.options import ArtFormat
from ..common.models.vehicle import VehicleAnalysis


def file_extension(mime_type: str) -> str:
    return "jpg" if mime_type in ("image/jpeg", "image/jpg") else "png"


def _part(text: Optional[str], fallback: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]+", "-", text or "").strip("-")
    return cleaned or fallback


def art_filename(analysis: Optional[VehicleAnalysis], fmt: ArtFormat, mime_type: str) -> str:
    make = _part(analysis.make if analysis else None, "Vehicle")
    model = _part(analysis.model if analysis else None, "Art")
    return f"GarageCanvas-{make}-{model}-{ArtFormat(fmt).label}-4K.{file_extension(mime_type)}"


def bundle_filename(analysis: Optional[VehicleAnalysis]) -> str:
    year = _part(analysis.year if analysis else None, "")
    make = _part(analysis.make if analysis else None, "Vehicle")
    model = _part(analysis.model if analysis else None, "Art")
    parts = [p for p in ("GarageCanvas", year, make, model, "4K-Pack") if p]
    return "-".join(parts) + ".zip"


def build_bundle(art_set: GeneratedArtSet) -> bytes:
    """Zip the three formats as Phone/Desktop/Print entries."""

    ext = file_extension(art_set.mime_type)
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for fmt in ArtFormat:
            archive.writestr(f"{fmt.label}.{ext}", base64.b64decode(art_set.image_for(fmt)))
    return buffer.getvalue()
