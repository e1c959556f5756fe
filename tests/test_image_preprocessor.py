import base64
from io import BytesIO

import pytest
from PIL import Image

from conftest import make_jpeg
from garage_canvas.common.services.errors import PreprocessError
from garage_canvas.services.image_preprocessor import ImagePreprocessor, PillowImageDecoder, _encode_jpeg, transcode_image


def _decode(data):
    return Image.open(BytesIO(base64.b64decode(data)))


def test_large_phone_original_fits_payload_and_dimension_limits():
    raw = make_jpeg((6000, 4000), noise=True, quality=85)
    assert len(raw) > 3 * 1024 * 1024

    result = ImagePreprocessor().compress_image(raw)

    assert result.payload_bytes <= 3 * 1024 * 1024
    decoded = _decode(result.data)
    assert decoded.format == "JPEG"
    assert max(decoded.size) <= 1400
    assert decoded.size == (result.width, result.height)


def test_scales_longer_side_to_max_dimension_preserving_aspect():
    result = ImagePreprocessor().compress_image(make_jpeg((3000, 1500)))

    assert (result.width, result.height) == (1400, 700)


def test_small_png_is_normalized_to_jpeg_at_starting_quality():
    buffer = BytesIO()
    Image.new("RGBA", (320, 200), (200, 10, 10, 128)).save(buffer, format="PNG")

    result = ImagePreprocessor().compress_image(buffer.getvalue())

    assert result.quality == 75
    assert (result.width, result.height) == (320, 200)
    decoded = _decode(result.data)
    assert decoded.format == "JPEG"
    assert decoded.mode == "RGB"


def test_quality_steps_down_until_payload_fits():
    raw = make_jpeg((500, 500), noise=True)
    decoded = Image.open(BytesIO(raw)).convert("RGB")
    ceiling = len(_encode_jpeg(decoded, 55))

    result = ImagePreprocessor(max_payload_bytes=ceiling).compress_image(raw)

    assert result.quality == 55
    assert result.payload_bytes <= ceiling
    assert (result.width, result.height) == (500, 500)


def test_unreachable_ceiling_shrinks_once_instead_of_failing():
    raw = make_jpeg((400, 400), noise=True)

    result = ImagePreprocessor(max_payload_bytes=1000).compress_image(raw)

    assert (result.width, result.height) == (280, 280)
    assert result.quality == 60


def test_exif_orientation_is_applied():
    exif = Image.Exif()
    exif[0x0112] = 6
    buffer = BytesIO()
    Image.new("RGB", (200, 100), "white").save(buffer, format="JPEG", exif=exif)

    result = ImagePreprocessor().compress_image(buffer.getvalue())

    assert (result.width, result.height) == (100, 200)


@pytest.mark.parametrize("raw", [b"", b"definitely not an image", make_jpeg((50, 50))[:40]])
def test_undecodable_upload_raises_preprocess_error(raw):
    with pytest.raises(PreprocessError) as excinfo:
        ImagePreprocessor().compress(raw)
    assert excinfo.value.user_message == "We couldn't read that photo. Try a different photo."


def test_transcode_image_changes_container_format():
    buffer = BytesIO()
    Image.new("RGB", (40, 30), "blue").save(buffer, format="PNG")
    png = base64.b64encode(buffer.getvalue()).decode("ascii")

    jpeg = transcode_image(png, "image/jpeg")

    assert _decode(jpeg).format == "JPEG"
    with pytest.raises(ValueError):
        transcode_image(png, "image/gif")


def test_image_over_pillow_pixel_limit_is_a_preprocess_error(monkeypatch):
    buffer = BytesIO()
    Image.new("1", (400, 400)).save(buffer, format="PNG")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)

    with pytest.raises(PreprocessError) as excinfo:
        ImagePreprocessor().compress_image(buffer.getvalue())
    assert excinfo.value.user_message == "We couldn't read that photo. Try a different photo."


def test_large_jpeg_is_drafted_down_while_decoding():
    decoded = PillowImageDecoder(max_dimension=500).decode(make_jpeg((4000, 2000)))

    assert decoded.size[0] < 4000
    assert min(decoded.size) >= 500
    assert decoded.mode == "RGB"
