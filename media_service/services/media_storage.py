import asyncio
from collections.abc import Awaitable, Callable

import structlog
from pydantic import ValidationError

from media_service.config import MEGABYTE, UploadConfig, settings
from media_service.core.exceptions import (
    EntityTooLargeError,
    InvalidInputError,
    UploadFailedError,
    is_entity_too_large,
)
from media_service.schemas.media import (
    ImageConstraints,
    StoredObjectDescriptor,
    UploadedFile,
    UploadOptions,
    UploadRequest,
)
from media_service.services import transcoder
from media_service.services.cloudinary_client import get_cloudinary_client
from media_service.services.destinations import DestinationPolicy, apply_destination_policy
from media_service.services.uploader import RemoteUploader, UploadSource

logger = structlog.get_logger()

Transcode = Callable[[bytes, ImageConstraints], Awaitable[bytes]]

_storage: "MediaStorage | None" = None


def _size_mb(size: int) -> str:
    return f"{size / MEGABYTE:.2f}"


class MediaStorage:
    def __init__(
        self,
        uploader: RemoteUploader,
        config: UploadConfig | None = None,
        transcode: Transcode = transcoder.transcode,
        policies: dict[str, DestinationPolicy] | None = None,
    ) -> None:
        self.uploader = uploader
        self.config = config or UploadConfig()
        self._transcode = transcode
        self._policies = policies

    def validate(self, request: UploadRequest) -> None:
        if request.data is None:
            if request.path is None:
                raise InvalidInputError("Invalid file buffer")
            if not request.path.is_file():
                raise InvalidInputError(f"File not found: {request.path}")
            return
        if not isinstance(request.data, bytes) or not request.data:
            raise InvalidInputError("Invalid file buffer")
        if request.size is not None and request.size != len(request.data):
            raise InvalidInputError(
                f"Declared size {request.size} does not match payload size {len(request.data)}"
            )

    def should_transcode(self, request: UploadRequest) -> bool:
        if not request.is_image:
            return False
        size = request.declared_size
        return size > self.config.large_image_threshold or size > self.config.optimization_threshold

    def constraints_for(self, request: UploadRequest) -> ImageConstraints:
        base = self.config.constraints
        if request.target_height is None:
            return base
        return base.model_copy(
            update={"max_height": request.target_height, "max_width": request.target_height * 2}
        )

    def build_options(self, request: UploadRequest, transcoded: bool = False) -> UploadOptions:
        options = UploadOptions(
            resource_type="video" if request.is_video else "auto",
            folder=request.folder,
            quality=request.quality if request.quality is not None else self.config.default_quality,
            filename=request.filename or None,
            content_type=(
                f"image/{self.constraints_for(request).output_format}" if transcoded else request.mime_type
            ),
        )
        return apply_destination_policy(options, request.category, self._policies)

    async def store(self, request: UploadRequest) -> StoredObjectDescriptor:
        self.validate(request)
        size = request.declared_size
        logger.info(
            "upload_started",
            filename=request.filename,
            mime_type=request.mime_type,
            size=size,
            size_mb=_size_mb(size),
            folder=request.folder,
        )
        if size > self.config.oversize_warning_threshold:
            logger.warning("upload_exceeds_service_limit", size_mb=_size_mb(size))

        try:
            source: UploadSource = request.data if request.data is not None else request.path
            transcoded = self.should_transcode(request)
            if transcoded:
                if size > self.config.large_image_threshold:
                    logger.info("large_image_detected", size_mb=_size_mb(size))
                raw = source if isinstance(source, bytes) else await asyncio.to_thread(source.read_bytes)
                source = await self._transcode(raw, self.constraints_for(request))
            options = self.build_options(request, transcoded)
            return await self.uploader.upload_with_folder_fallback(source, options)
        except Exception as e:
            logger.error("upload_failed", filename=request.filename, error=str(e))
            if is_entity_too_large(e):
                raise EntityTooLargeError(
                    f"File too large for upload ({_size_mb(size)}MB). "
                    "The media service account has upload limits. "
                    "Please try a smaller file or upgrade your media service account.",
                    e,
                ) from e
            raise UploadFailedError(f"Failed to upload file: {e}", e) from e


def get_media_storage() -> MediaStorage:
    global _storage
    if _storage is None:
        config = UploadConfig.from_settings(settings)
        uploader = RemoteUploader(
            get_cloudinary_client(),
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )
        _storage = MediaStorage(uploader, config)
    return _storage


async def upload_image(
    file: UploadedFile,
    folder: str | None,
    target_height: int | None = None,
    quality: str | int | None = None,
) -> StoredObjectDescriptor:
    if not isinstance(file, UploadedFile):
        raise InvalidInputError("Invalid file buffer")
    try:
        request = UploadRequest(
            **file.model_dump(),
            folder=folder,
            target_height=target_height,
            quality=quality,
        )
    except ValidationError as e:
        raise InvalidInputError(f"Invalid upload request: {e.errors()[0]['msg']}") from e
    return await get_media_storage().store(request)
