"""Error taxonomy for the media ingestion pipeline.

Every stage of an ingestion raises one of these. The HTTP layer renders them
with :func:`media_error_handler`; nothing in the pipeline retries on them.
"""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse


class MediaError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "media_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class BadRequestError(MediaError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"


class ForbiddenError(MediaError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(MediaError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class PayloadTooLargeError(MediaError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "payload_too_large"


class UnsupportedMediaTypeError(MediaError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = "unsupported_media_type"


class ProbeError(MediaError):
    """ffprobe failed or did not report the first video stream's geometry."""

    status_code = 422
    code = "probe_failed"


class RemuxError(MediaError):
    status_code = 422
    code = "remux_failed"


class UploadError(MediaError):
    """Object storage rejected the upload or the transport failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upload_failed"


class MediaIOError(MediaError, OSError):
    """Local filesystem failure while staging or storing media."""

    code = "local_io_failed"


class RecordPersistError(MediaError):
    code = "record_persist_failed"


async def media_error_handler(request: Request, exc: MediaError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.code, "message": exc.message},
    )


__all__ = [
    "MediaError",
    "BadRequestError",
    "ForbiddenError",
    "NotFoundError",
    "PayloadTooLargeError",
    "UnsupportedMediaTypeError",
    "ProbeError",
    "RemuxError",
    "UploadError",
    "MediaIOError",
    "RecordPersistError",
    "media_error_handler",
]
