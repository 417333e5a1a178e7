from __future__ import annotations

import os
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import AuthContext, get_auth_context, require_scope
from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError
from app.core.storage import ObjectStorage
from app.ingest.process import ProcessRunner
from app.services.media_service import MediaService, UploadedFile


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_object_storage(request: Request) -> ObjectStorage:
    storage: ObjectStorage = request.app.state.object_storage
    return storage


def get_process_runner(request: Request) -> ProcessRunner:
    runner: ProcessRunner = request.app.state.process_runner
    return runner


def get_app_settings() -> Settings:
    return get_settings()


async def get_media_service(
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    runner: ProcessRunner = Depends(get_process_runner),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[MediaService]:
    service = MediaService(settings, storage, session, runner)
    yield service


MediaServiceDependency = Annotated[MediaService, Depends(get_media_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]
AdminDependency = Annotated[AuthContext, Depends(require_scope("admin"))]


def uploaded_file(upload: UploadFile | None, field: str) -> UploadedFile:
    """Adapt a multipart field to the service's :class:`UploadedFile`.

    Starlette has already parsed the body by now and spools parts over 1 MiB to
    its own temporary file. The size, type and ownership checks therefore run
    before anything reaches the service's staging directory, not before the
    request body touches disk.
    """
    if upload is None:
        raise BadRequestError(f"{field}_file_missing")
    size = upload.size
    if size is None:
        upload.file.seek(0, os.SEEK_END)
        size = upload.file.tell()
        upload.file.seek(0)
    return UploadedFile(
        filename=upload.filename,
        content_type=upload.content_type,
        size=size,
        file=upload.file,
    )


__all__ = [
    "get_session",
    "get_object_storage",
    "get_process_runner",
    "get_app_settings",
    "get_media_service",
    "MediaServiceDependency",
    "AuthDependency",
    "AdminDependency",
    "uploaded_file",
]
