from io import BytesIO

import pytest
from PIL import Image

from media_service.core.exceptions import TranscodingError
from media_service.schemas.media import ImageConstraints
from media_service.services import transcoder


def _make_test_image(width: int = 100, height: int = 100, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    if mode == "P":
        img = Image.new("P", (width, height))
    else:
        color = (255, 0, 0, 128) if mode == "RGBA" else "red"
        img = Image.new(mode, (width, height), color=color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def _open(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data))


class TestCompressionRatio:
    def test_half_size(self) -> None:
        assert transcoder.compression_ratio(1000, 500) == 0.5

    def test_growth_is_negative(self) -> None:
        assert transcoder.compression_ratio(100, 150) == -0.5

    def test_zero_original(self) -> None:
        assert transcoder.compression_ratio(0, 10) == 0.0


class TestNeedsResize:
    def test_within_bounds(self) -> None:
        assert not transcoder.needs_resize(1920, 1080, ImageConstraints())

    def test_width_exceeds(self) -> None:
        assert transcoder.needs_resize(1921, 10, ImageConstraints())

    def test_height_exceeds(self) -> None:
        assert transcoder.needs_resize(10, 1081, ImageConstraints())


class TestTranscodeSync:
    def test_small_image_keeps_dimensions(self) -> None:
        data = _make_test_image(640, 480, fmt="PNG")
        out = transcoder.transcode_sync(data, ImageConstraints())
        img = _open(out)
        assert img.size == (640, 480)
        assert img.format == "JPEG"

    def test_no_upscaling(self) -> None:
        data = _make_test_image(50, 20)
        out = transcoder.transcode_sync(data, ImageConstraints(max_width=800, max_height=600))
        assert _open(out).size == (50, 20)

    def test_landscape_fits_inside_box(self) -> None:
        data = _make_test_image(4000, 2000)
        out = transcoder.transcode_sync(data, ImageConstraints(max_width=1920, max_height=1080))
        width, height = _open(out).size
        assert width <= 1920
        assert height <= 1080
        assert abs(width / height - 2.0) < 0.01

    def test_portrait_fits_inside_box(self) -> None:
        data = _make_test_image(1000, 3000)
        out = transcoder.transcode_sync(data, ImageConstraints(max_width=1920, max_height=1080))
        width, height = _open(out).size
        assert height == 1080
        assert width == 360

    def test_only_one_dimension_exceeds(self) -> None:
        data = _make_test_image(2400, 600)
        out = transcoder.transcode_sync(data, ImageConstraints(max_width=1200, max_height=1200))
        assert _open(out).size == (1200, 300)

    def test_always_reencodes_to_jpeg(self) -> None:
        data = _make_test_image(100, 100, fmt="WEBP")
        out = transcoder.transcode_sync(data, ImageConstraints())
        assert _open(out).format == "JPEG"

    def test_progressive_jpeg(self) -> None:
        out = transcoder.transcode_sync(_make_test_image(300, 300), ImageConstraints())
        info = _open(out).info
        assert info.get("progressive") or info.get("progression")

    def test_dpi_normalized(self) -> None:
        out = transcoder.transcode_sync(_make_test_image(300, 300), ImageConstraints())
        dpi = _open(out).info.get("dpi")
        assert dpi is not None
        assert round(dpi[0]) == 72

    def test_rgba_flattened_to_rgb(self) -> None:
        data = _make_test_image(100, 100, fmt="PNG", mode="RGBA")
        out = transcoder.transcode_sync(data, ImageConstraints())
        assert _open(out).mode == "RGB"

    def test_palette_mode_converted(self) -> None:
        data = _make_test_image(100, 100, fmt="PNG", mode="P")
        out = transcoder.transcode_sync(data, ImageConstraints())
        assert _open(out).mode == "RGB"

    def test_webp_output(self) -> None:
        out = transcoder.transcode_sync(_make_test_image(200, 200), ImageConstraints(output_format="webp"))
        assert _open(out).format == "WEBP"

    def test_webp_dpi_normalized(self) -> None:
        out = transcoder.transcode_sync(_make_test_image(300, 300), ImageConstraints(output_format="webp"))
        exif = _open(out).getexif()
        assert exif[transcoder.RESOLUTION_UNIT] == 2
        assert round(float(exif[transcoder.X_RESOLUTION])) == 72
        assert round(float(exif[transcoder.Y_RESOLUTION])) == 72

    def test_default_constraints(self) -> None:
        out = transcoder.transcode_sync(_make_test_image(2500, 1000))
        width, height = _open(out).size
        assert width == 1920
        assert height <= 1080

    def test_repeated_runs_keep_format_and_size(self) -> None:
        constraints = ImageConstraints(max_width=500, max_height=500, quality=70)
        first = transcoder.transcode_sync(_make_test_image(1000, 800), constraints)
        second = transcoder.transcode_sync(first, constraints)
        assert _open(first).size == _open(second).size
        assert _open(second).format == "JPEG"

    def test_invalid_bytes_raise(self) -> None:
        with pytest.raises(TranscodingError, match="Image processing failed"):
            transcoder.transcode_sync(b"not-an-image", ImageConstraints())

    def test_truncated_image_raises(self) -> None:
        buffer = BytesIO()
        Image.effect_noise((400, 400), 64).convert("RGB").save(buffer, format="JPEG")
        data = buffer.getvalue()
        with pytest.raises(TranscodingError):
            transcoder.transcode_sync(data[: len(data) // 3], ImageConstraints())


class TestTranscodeAsync:
    async def test_runs_in_thread(self) -> None:
        out = await transcoder.transcode(_make_test_image(3000, 3000), ImageConstraints(max_width=600, max_height=300))
        assert _open(out).size == (300, 300)
