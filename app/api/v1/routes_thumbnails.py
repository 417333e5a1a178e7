from __future__ import annotations

from fastapi import APIRouter, File, UploadFile, status
from fastapi.responses import FileResponse

from app.api import deps

from . import schemas


router = APIRouter(tags=["thumbnails"])


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=schemas.VideoResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": schemas.ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse},
    },
)
async def upload_thumbnail(
    video_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
    thumbnail: UploadFile | None = File(default=None),
) -> schemas.VideoResponse:
    upload = deps.uploaded_file(thumbnail, "thumbnail")
    record = await service.upload_thumbnail(video_id=video_id, user_id=context.user_id, upload=upload)
    return schemas.VideoResponse.model_validate(record)


@router.get(
    "/thumbnails/{video_id}",
    response_class=FileResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse}},
)
async def get_thumbnail(video_id: str, service: deps.MediaServiceDependency) -> FileResponse:
    path, media_type = await service.thumbnail_path(video_id)
    return FileResponse(path, media_type=media_type, headers={"Cache-Control": "no-store"})


__all__ = ["router"]
