import re
from urllib.parse import urlparse

import structlog

from media_service.core.exceptions import DeletionError
from media_service.schemas.media import ResourceDeleteResult
from media_service.services.cloudinary_client import CloudinaryClient, get_cloudinary_client

logger = structlog.get_logger()

# /<cloud_name>/<resource_type>/upload/... or, on private CDN hosts, /<resource_type>/upload/...
HOSTED_PATH_RE = re.compile(r"^/(?:[^/]+/)?(image|video|raw)/upload/.+")
VERSION_RE = re.compile(r"^v\d+$")
EXTENSION_RE = re.compile(r"\.[^/.]+$")

_deleter: "ResourceDeleter | None" = None


def _hosted_path(url: str) -> str | None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return parsed.path if HOSTED_PATH_RE.match(parsed.path) else None


def is_hosted_url(url: str) -> bool:
    return _hosted_path(url) is not None


def resource_type_for_url(url: str) -> str:
    path = _hosted_path(url)
    match = HOSTED_PATH_RE.match(path) if path else None
    return match.group(1) if match else "image"


def extract_public_id(url: str) -> str:
    """Rebuild the public id a delivery URL was uploaded under.

    Anything that is not a hosted delivery URL is taken to be a public id
    already and returned unchanged. Raises ``ValueError`` for URLs that
    cannot be parsed at all.
    """
    path = _hosted_path(url)
    if path is None:
        return url
    parts = path.split("/")
    upload_index = parts.index("upload")
    after_upload = parts[upload_index + 1 :]
    if after_upload and VERSION_RE.match(after_upload[0]):
        after_upload = after_upload[1:]
    if not after_upload or not after_upload[-1]:
        return url
    return EXTENSION_RE.sub("", "/".join(after_upload))


class ResourceDeleter:
    def __init__(self, client: CloudinaryClient) -> None:
        self.client = client

    async def _purge(self, public_id: str, resource_type: str) -> dict:
        try:
            result = await self.client.destroy(public_id, resource_type=resource_type, invalidate=True)
            await self.client.delete_derived_resources(public_id, resource_type=resource_type)
        except Exception as e:
            raise DeletionError(str(e)) from e
        return result

    async def delete(self, url: str | None) -> ResourceDeleteResult | None:
        if not url:
            return None
        try:
            public_id = extract_public_id(url)
            result = await self._purge(public_id, resource_type_for_url(url))
        except (DeletionError, ValueError) as e:
            # media cleanup must never block account or entity deletion
            logger.error("resource_delete_failed", url=url, error=str(e))
            return None

        logger.info("resource_deleted", public_id=public_id, result=result.get("result"))
        return ResourceDeleteResult(public_id=public_id, result=result.get("result"))


def get_resource_deleter() -> ResourceDeleter:
    global _deleter
    if _deleter is None:
        _deleter = ResourceDeleter(get_cloudinary_client())
    return _deleter


async def delete_resource(url: str | None) -> ResourceDeleteResult | None:
    if not url:
        return None
    return await get_resource_deleter().delete(url)
