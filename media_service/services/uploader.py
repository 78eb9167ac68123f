import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from media_service.core.exceptions import EntityTooLargeError, TransientUploadError, is_entity_too_large
from media_service.schemas.media import StoredObjectDescriptor, UploadOptions
from media_service.services.cloudinary_client import CloudinaryClient

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]
UploadSource = bytes | Path


def has_folder(folder: str | None) -> bool:
    return bool(folder) and folder != "undefined" and folder.strip() != ""


class RemoteUploader:
    """Pushes payloads to Cloudinary with a bounded, fixed-delay retry loop."""

    def __init__(
        self,
        client: CloudinaryClient,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def send(self, source: UploadSource, options: UploadOptions) -> StoredObjectDescriptor:
        """Single upload attempt, no retry."""
        on_progress = None
        if options.resource_type == "video":
            on_progress = _log_progress
        payload = await self.client.upload(
            source,
            options.to_params(),
            resource_type=options.resource_type,
            filename=options.filename,
            content_type=options.content_type,
            on_progress=on_progress,
        )
        descriptor = StoredObjectDescriptor.from_response(payload, secure=options.secure)
        logger.info(
            "upload_succeeded",
            public_id=descriptor.public_id,
            format=descriptor.format,
            resource_type=descriptor.resource_type,
            duration=descriptor.duration,
        )
        return descriptor

    async def upload(self, source: UploadSource, options: UploadOptions) -> StoredObjectDescriptor:
        retries = 0
        while True:
            try:
                return await self.send(source, options)
            except Exception as e:
                logger.warning("upload_attempt_failed", attempt=retries + 1, error=str(e))
                if is_entity_too_large(e):
                    raise EntityTooLargeError(str(e), e) from e
                if retries >= self.max_retries:
                    raise TransientUploadError(e, attempts=retries + 1) from e
                logger.info("upload_retry_scheduled", delay=self.retry_delay, retry=retries + 1)
                await self._sleep(self.retry_delay)
                retries += 1

    async def upload_with_folder_fallback(
        self, source: UploadSource, options: UploadOptions
    ) -> StoredObjectDescriptor:
        """Try a folderless upload first, then the folder-qualified one.

        The first attempt goes out once without the folder. If it fails and a
        folder was requested, exactly one more attempt is made with the folder
        attached. Without a folder the first error is raised as is.
        """
        try:
            return await self.send(source, options.without_folder())
        except Exception as first_error:
            logger.warning("upload_without_folder_failed", error=str(first_error))
            if is_entity_too_large(first_error) or not has_folder(options.folder):
                raise
            logger.info("upload_retrying_with_folder", folder=options.folder)
            return await self.send(source, options)


def _log_progress(percent: int) -> None:
    logger.info("upload_progress", percent=percent)
