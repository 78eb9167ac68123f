from fastapi import APIRouter, File, Form, UploadFile

from media_service.core.exceptions import AppError
from media_service.schemas.media import (
    ResourceDeleteRequest,
    ResourceDeleteResponse,
    StoredObjectDescriptor,
    UploadRequest,
)
from media_service.services import deletion, media_storage

router = APIRouter(prefix="/media")


def _validate_folder(folder: str) -> None:
    if not folder or ".." in folder or folder.startswith("/"):
        raise AppError(status_code=400, detail="Invalid folder")


@router.post("/{folder:path}", response_model=StoredObjectDescriptor)
async def upload_media(
    folder: str,
    file: UploadFile = File(...),
    target_height: int | None = Form(default=None, gt=0),
    quality: str | None = Form(default=None),
    category: str | None = Form(default=None),
) -> StoredObjectDescriptor:
    _validate_folder(folder)
    try:
        data = await file.read()
    finally:
        await file.close()

    request = UploadRequest(
        data=data,
        filename=file.filename or "",
        mime_type=file.content_type or "application/octet-stream",
        size=file.size if file.size is not None else len(data),
        folder=folder,
        category=category,
        target_height=target_height,
        quality=quality,
    )
    return await media_storage.get_media_storage().store(request)


@router.delete("", response_model=ResourceDeleteResponse)
async def delete_media(body: ResourceDeleteRequest) -> ResourceDeleteResponse:
    result = await deletion.delete_resource(body.url)
    if result is None:
        return ResourceDeleteResponse(deleted=False)
    return ResourceDeleteResponse(deleted=True, public_id=result.public_id)
