import asyncio
from io import BytesIO

import structlog
from PIL import Image, UnidentifiedImageError

from media_service.core.exceptions import TranscodingError
from media_service.schemas.media import ImageConstraints

logger = structlog.get_logger()

# Source images of any pixel count are accepted.
Image.MAX_IMAGE_PIXELS = None

OUTPUT_DPI = (72, 72)

# EXIF tags: ResolutionUnit (2 = inch), XResolution, YResolution
RESOLUTION_UNIT = 0x0128
X_RESOLUTION = 0x011A
Y_RESOLUTION = 0x011B

PIL_FORMATS = {
    "jpeg": "JPEG",
    "webp": "WEBP",
}


def compression_ratio(original_size: int, new_size: int) -> float:
    if original_size <= 0:
        return 0.0
    return (original_size - new_size) / original_size


def needs_resize(width: int, height: int, constraints: ImageConstraints) -> bool:
    return width > constraints.max_width or height > constraints.max_height


def _flatten(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _dpi_exif() -> bytes:
    exif = Image.Exif()
    exif[RESOLUTION_UNIT] = 2
    exif[X_RESOLUTION] = OUTPUT_DPI[0]
    exif[Y_RESOLUTION] = OUTPUT_DPI[1]
    return exif.tobytes()


def transcode_sync(image_bytes: bytes, constraints: ImageConstraints | None = None) -> bytes:
    constraints = constraints or ImageConstraints()
    try:
        img: Image.Image = Image.open(BytesIO(image_bytes))
        width, height = img.size
        source_format = img.format
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise TranscodingError(f"Image processing failed: {e}") from e

    logger.debug(
        "image_metadata",
        width=width,
        height=height,
        format=source_format,
        size=len(image_bytes),
    )

    try:
        box = (constraints.max_width, constraints.max_height)
        if needs_resize(width, height, constraints):
            # thumbnail() decodes JPEGs in draft mode, so peak memory tracks the box
            img.thumbnail(box, Image.Resampling.LANCZOS)
            logger.info(
                "image_resized",
                original=f"{width}x{height}",
                resized=f"{img.size[0]}x{img.size[1]}",
                box=f"{box[0]}x{box[1]}",
            )
        img = _flatten(img)

        buffer = BytesIO()
        if constraints.output_format == "webp":
            # WebP has no density header, so the 72 DPI is carried in EXIF
            img.save(
                buffer,
                format="WEBP",
                quality=constraints.quality,
                method=6,
                exif=_dpi_exif(),
            )
        else:
            img.save(
                buffer,
                format=PIL_FORMATS[constraints.output_format],
                quality=constraints.quality,
                progressive=True,
                optimize=True,
                dpi=OUTPUT_DPI,
            )
    except (OSError, ValueError) as e:
        raise TranscodingError(f"Image processing failed: {e}") from e

    processed = buffer.getvalue()
    logger.info(
        "image_transcoded",
        original_size=len(image_bytes),
        processed_size=len(processed),
        compression_ratio=round(compression_ratio(len(image_bytes), len(processed)), 4),
    )
    return processed


async def transcode(image_bytes: bytes, constraints: ImageConstraints | None = None) -> bytes:
    return await asyncio.to_thread(transcode_sync, image_bytes, constraints)
