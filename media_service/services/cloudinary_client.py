import hashlib
import mimetypes
import time
from collections.abc import Callable
from contextlib import ExitStack
from io import BytesIO
from pathlib import Path
from typing import IO, Any

import httpx
import structlog

from media_service.config import settings
from media_service.core.exceptions import CloudinaryError

logger = structlog.get_logger()

UNSIGNED_PARAMS = frozenset({"file", "api_key", "resource_type", "cloud_name"})

ProgressCallback = Callable[[int], None]

_client: "CloudinaryClient | None" = None


def api_sign_request(params: dict[str, Any], api_secret: str) -> str:
    to_sign = "&".join(
        f"{key}={value}"
        for key, value in sorted(params.items())
        if key not in UNSIGNED_PARAMS and value not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()


class _ProgressReader:
    """File wrapper that reports whole-percent progress while httpx reads it."""

    def __init__(self, fileobj: IO[bytes], total: int, on_progress: ProgressCallback) -> None:
        self._file = fileobj
        self._total = total
        self._on_progress = on_progress
        self._sent = 0
        self._last_percent = -1

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        self._sent += len(chunk)
        if self._total > 0:
            percent = min(100, self._sent * 100 // self._total)
            if percent != self._last_percent:
                self._last_percent = percent
                self._on_progress(percent)
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        if offset == 0 and whence == 0:
            self._sent = 0
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()


class CloudinaryClient:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        api_base: str = "https://api.cloudinary.com",
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_base = api_base.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _url(self, *parts: str) -> str:
        return "/".join([self.api_base, "v1_1", self.cloud_name, *parts])

    def _signed(self, params: dict[str, Any]) -> dict[str, str]:
        payload = {k: str(v) for k, v in params.items() if v is not None}
        payload["timestamp"] = str(int(time.time()))
        payload["signature"] = api_sign_request(payload, self.api_secret)
        payload["api_key"] = self.api_key
        return payload

    async def upload(
        self,
        source: bytes | Path,
        params: dict[str, Any],
        resource_type: str = "auto",
        filename: str | None = None,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """Send one signed upload and return the service's JSON answer.

        In-memory bytes go out as a single multipart body. A path is opened and
        read in chunks by httpx while the request streams.
        """
        with ExitStack() as stack:
            if isinstance(source, Path):
                fileobj: Any = stack.enter_context(source.open("rb"))
                total = source.stat().st_size
                name = filename or source.name
            else:
                fileobj = source
                total = len(source)
                name = filename or "file"
            if on_progress is not None:
                if isinstance(fileobj, bytes):
                    fileobj = BytesIO(fileobj)
                fileobj = _ProgressReader(fileobj, total, on_progress)

            mime = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
            response = await self._http.post(
                self._url(resource_type, "upload"),
                data=self._signed(params),
                files={"file": (name, fileobj, mime)},
            )
        return self._parse(response)

    async def destroy(
        self,
        public_id: str,
        resource_type: str = "image",
        invalidate: bool = True,
        delivery_type: str = "upload",
    ) -> dict[str, Any]:
        params = {
            "public_id": public_id,
            "invalidate": "true" if invalidate else "false",
            "type": delivery_type,
        }
        response = await self._http.post(
            self._url(resource_type, "destroy"),
            data=self._signed(params),
        )
        return self._parse(response)

    async def delete_derived_resources(
        self,
        public_id: str,
        resource_type: str = "image",
        delivery_type: str = "upload",
    ) -> dict[str, Any]:
        """Purge the transformed copies of ``public_id`` while keeping the original."""
        response = await self._http.delete(
            self._url("resources", resource_type, delivery_type),
            params={"public_ids[]": public_id, "keep_original": "true"},
            auth=(self.api_key, self.api_secret),
        )
        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = response.text or response.reason_phrase
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message = body["error"].get("message", message)
            logger.warning(
                "cloudinary_request_failed",
                url=str(response.request.url),
                status=response.status_code,
                error=message,
            )
            raise CloudinaryError(response.status_code, message)
        return body

    async def aclose(self) -> None:
        await self._http.aclose()


def get_cloudinary_client() -> CloudinaryClient:
    global _client
    if _client is None:
        _client = CloudinaryClient(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            api_base=settings.cloudinary_api_base,
            timeout=settings.upload_timeout,
        )
    return _client


async def close_client() -> None:
    global _client
    if _client:
        await _client.aclose()
        _client = None
