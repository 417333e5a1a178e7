from __future__ import annotations

from fastapi import APIRouter, File, UploadFile, status

from app.api import deps

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])

_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": schemas.ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
}


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.model_validate(video)


@router.get("", response_model=list[schemas.VideoResponse])
async def list_videos(service: deps.MediaServiceDependency, context: deps.AuthDependency) -> list[schemas.VideoResponse]:
    videos = await service.list_videos(user_id=context.user_id)
    return [schemas.VideoResponse.model_validate(video) for video in videos]


@router.get("/{video_id}", response_model=schemas.VideoResponse, responses=_ERRORS)
async def get_video(
    video_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.get_owned_video(video_id=video_id, user_id=context.user_id)
    return schemas.VideoResponse.model_validate(video)


@router.post(
    "/{video_id}/upload",
    response_model=schemas.VideoResponse,
    summary="Ingest an MP4 for a video record",
    responses={
        **_ERRORS,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse},
        422: {"model": schemas.ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": schemas.ErrorResponse},
    },
)
async def upload_video(
    video_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
    video: UploadFile | None = File(default=None),
) -> schemas.VideoResponse:
    upload = deps.uploaded_file(video, "video")
    record = await service.upload_video(video_id=video_id, user_id=context.user_id, upload=upload)
    return schemas.VideoResponse.model_validate(record)


__all__ = ["router"]
