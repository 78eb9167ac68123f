from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBytes

ResourceKind = Literal["image", "video", "raw", "auto"]


class UploadedFile(BaseModel):
    """A file as received from the admin console's upload form."""

    data: StrictBytes | None = None
    path: Path | None = None
    filename: str = ""
    mime_type: str = "application/octet-stream"
    size: int | None = None


class UploadRequest(UploadedFile):
    folder: str | None = None
    category: str | None = None
    target_height: int | None = Field(default=None, gt=0)
    quality: str | int | None = None

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")

    @property
    def declared_size(self) -> int:
        if self.size is not None:
            return self.size
        if self.data is not None:
            return len(self.data)
        if self.path is not None and self.path.is_file():
            return self.path.stat().st_size
        return 0


class ImageConstraints(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_width: int = Field(default=1920, gt=0)
    max_height: int = Field(default=1080, gt=0)
    quality: int = Field(default=85, ge=1, le=100)
    output_format: Literal["jpeg", "webp"] = "jpeg"


class StoredObjectDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    secure_url: str
    public_id: str
    format: str | None = None
    resource_type: ResourceKind = "auto"
    duration: float | None = None
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_response(cls, payload: dict[str, Any], secure: bool = True) -> "StoredObjectDescriptor":
        url = payload.get("secure_url") if secure else payload.get("url")
        return cls(
            secure_url=url or payload.get("secure_url") or payload.get("url") or "",
            public_id=payload["public_id"],
            format=payload.get("format"),
            resource_type=payload.get("resource_type", "auto"),
            duration=payload.get("duration"),
            width=payload.get("width"),
            height=payload.get("height"),
        )


class EagerVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    crop: str = "scale"

    def to_transformation(self) -> str:
        return f"w_{self.width},c_{self.crop}"


class UploadOptions(BaseModel):
    resource_type: ResourceKind = "auto"
    folder: str | None = None
    use_filename: bool = True
    unique_filename: bool = True
    overwrite: bool = True
    invalidate: bool = True
    secure: bool = True
    quality: str | int | None = "auto:good"
    eager: list[EagerVariant] = []
    eager_async: bool = False
    deferred: bool | None = None
    filename: str | None = None
    # multipart part type only, not a Cloudinary parameter
    content_type: str | None = None

    def without_folder(self) -> "UploadOptions":
        return self.model_copy(update={"folder": None})

    def to_params(self) -> dict[str, str]:
        """Render the options as Cloudinary upload form fields.

        ``resource_type`` is part of the endpoint path and never appears here.
        Optional directives are only emitted when set.
        """
        params: dict[str, str] = {
            "use_filename": _flag(self.use_filename),
            "unique_filename": _flag(self.unique_filename),
            "overwrite": _flag(self.overwrite),
            "invalidate": _flag(self.invalidate),
        }
        if self.folder:
            params["folder"] = self.folder
        if self.quality is not None:
            params["transformation"] = f"q_{self.quality}"
        if self.eager:
            params["eager"] = "|".join(v.to_transformation() for v in self.eager)
            params["eager_async"] = _flag(self.eager_async)
        if self.deferred is not None:
            params["async"] = _flag(self.deferred)
        return params


class ResourceDeleteResult(BaseModel):
    public_id: str
    result: str | None = None


class ResourceDeleteRequest(BaseModel):
    url: str | None = None


class ResourceDeleteResponse(BaseModel):
    deleted: bool
    public_id: str | None = None


def _flag(value: bool) -> str:
    return "true" if value else "false"
