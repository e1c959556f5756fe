"""上傳照片的解碼與壓縮服務。"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Protocol

import pillow_heif
from PIL import Image, ImageOps, UnidentifiedImageError

from ..common.services.errors import PreprocessError
from ..common.services.logging import log_event

pillow_heif.register_heif_opener()


MIME_FORMATS = {"image/jpeg": "JPEG", "image/png": "PNG", "image/webp": "WEBP"}


class ImageDecoder(Protocol):
    def decode(self, raw: bytes) -> Image.Image:
        ...


class PillowImageDecoder:
    """Pillow 解碼器（含 HEIC/HEIF），並依 EXIF 方向轉正。

    設定 max_dimension 時，JPEG 以 draft 模式在解碼階段先行縮小，
    超大原圖不必完整展開至記憶體。
    """

    def __init__(self, max_dimension: Optional[int] = None) -> None:
        self.max_dimension = max_dimension

    def decode(self, raw: bytes) -> Image.Image:
        if not raw:
            raise PreprocessError("empty upload")
        try:
            with Image.open(BytesIO(raw)) as opened:
                if self.max_dimension:
                    opened.draft("RGB", (self.max_dimension, self.max_dimension))
                opened.load()
                image = ImageOps.exif_transpose(opened)
                return _flatten_to_rgb(image)
        except Image.DecompressionBombError as exc:
            raise PreprocessError(f"image too large to decode: {exc}") from exc
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise PreprocessError(f"cannot decode image: {exc}") from exc


@dataclass
class CompressedImage:
    data: str
    width: int
    height: int
    quality: int

    @property
    def payload_bytes(self) -> int:
        return len(self.data)


class ImagePreprocessor:
    """
    將任意上傳照片轉為傳輸用 base64 JPEG：
    - 長邊超過 max_dimension 時等比例縮小
    - 從 start_quality 開始編碼，超過大小上限時逐步降低品質至 quality_floor
    - 仍然過大時再縮小 shrink_ratio 倍，以 fallback_quality 重新編碼一次
    """

    def __init__(
        self,
        decoder: Optional[ImageDecoder] = None,
        *,
        max_dimension: int = 1400,
        max_payload_bytes: int = 3 * 1024 * 1024,
        start_quality: int = 75,
        quality_step: int = 10,
        quality_floor: int = 30,
        shrink_ratio: float = 0.7,
        fallback_quality: int = 60,
    ) -> None:
        self._decoder = decoder or PillowImageDecoder(max_dimension=max_dimension)
        self.max_dimension = max_dimension
        self.max_payload_bytes = max_payload_bytes
        self.start_quality = start_quality
        self.quality_step = quality_step
        self.quality_floor = quality_floor
        self.shrink_ratio = shrink_ratio
        self.fallback_quality = fallback_quality

    @classmethod
    def from_settings(cls, settings) -> "ImagePreprocessor":
        return cls(max_dimension=settings.max_image_dimension, max_payload_bytes=settings.max_payload_bytes)

    def compress(self, raw: bytes) -> str:
        return self.compress_image(raw).data

    def compress_image(self, raw: bytes) -> CompressedImage:
        image = self._decoder.decode(raw)
        source_size = image.size
        image = self._fit(image)

        quality = self.start_quality
        data = _encode_jpeg(image, quality)
        while len(data) > self.max_payload_bytes and quality > self.quality_floor:
            quality = max(self.quality_floor, quality - self.quality_step)
            data = _encode_jpeg(image, quality)

        if len(data) > self.max_payload_bytes:
            width = max(1, round(image.width * self.shrink_ratio))
            height = max(1, round(image.height * self.shrink_ratio))
            image = image.resize((width, height), Image.LANCZOS)
            quality = self.fallback_quality
            data = _encode_jpeg(image, quality)

        log_event(
            "info",
            "preprocess.done",
            source_width=source_size[0],
            source_height=source_size[1],
            width=image.width,
            height=image.height,
            quality=quality,
            payload_bytes=len(data),
        )
        return CompressedImage(data=data, width=image.width, height=image.height, quality=quality)

    def _fit(self, image: Image.Image) -> Image.Image:
        width, height = image.size
        ratio = min(self.max_dimension / width, self.max_dimension / height)
        if ratio >= 1:
            return image
        target = (max(1, round(width * ratio)), max(1, round(height * ratio)))
        return image.resize(target, Image.LANCZOS)


def transcode_image(data: str, target_mime: str) -> str:
    """Re-encode a base64 raster into ``target_mime``."""

    fmt = MIME_FORMATS.get(target_mime)
    if fmt is None:
        raise ValueError(f"unsupported mime type: {target_mime}")
    try:
        with Image.open(BytesIO(base64.b64decode(data))) as opened:
            opened.load()
            image = opened.convert("RGB") if fmt == "JPEG" else opened.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ValueError(f"cannot decode rendered image: {exc}") from exc
    buffer = BytesIO()
    if fmt == "JPEG":
        image.save(buffer, format=fmt, quality=95)
    else:
        image.save(buffer, format=fmt)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _encode_jpeg(image: Image.Image, quality: int) -> str:
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, (255, 255, 255))
        canvas.paste(rgba, mask=rgba.split()[-1])
        return canvas
    return image.convert("RGB")
