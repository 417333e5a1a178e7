from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import (
    BadRequestError,
    ForbiddenError,
    MediaIOError,
    NotFoundError,
    PayloadTooLargeError,
    RecordPersistError,
    UnsupportedMediaTypeError,
    UploadError,
)
from app.core.logging import get_logger
from app.core.storage import ObjectStorage
from app.db.models import Video
from app.db.repository import VideoRepository
from app.ingest import (
    ProcessRunner,
    StorageKey,
    TemporaryArtifacts,
    classify_aspect,
    derive_storage_key,
    faststart_remux,
    probe_geometry,
    random_path_id,
)
from app.ingest.remux import faststart_output_path

VIDEO_CONTENT_TYPES: Mapping[str, str] = {"video/mp4": "mp4"}
THUMBNAIL_CONTENT_TYPES: Mapping[str, str] = {"image/png": "png", "image/jpeg": "jpeg"}

COPY_CHUNK_BYTES = 1024 * 1024


@dataclass(slots=True)
class UploadedFile:
    """A request-scoped upload: declared metadata plus a readable binary handle."""

    filename: str | None
    content_type: str | None
    size: int
    file: BinaryIO


class MediaService:
    def __init__(
        self,
        settings: Settings,
        storage: ObjectStorage,
        session: AsyncSession,
        runner: ProcessRunner,
    ):
        self.settings = settings
        self.storage = storage
        self.session = session
        self.runner = runner
        self.videos = VideoRepository(session)
        self.logger = get_logger(component="media_service")

    async def create_video(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = await self.videos.create(user_id=user_id, title=title, description=description)
        self.logger.info("video_created", video_id=video.id, user_id=user_id)
        return video

    async def list_videos(self, *, user_id: str) -> Sequence[Video]:
        return await self.videos.list_for_user(user_id)

    async def get_owned_video(self, *, video_id: str, user_id: str) -> Video:
        video = await self._fetch(video_id)
        _authorize(video, user_id)
        return video

    async def upload_video(self, *, video_id: str, user_id: str, upload: UploadedFile) -> Video:
        """Validate, probe, remux and publish a video, then point the record at it.

        The record is only written after the object upload succeeded. Local
        temporary files are released on every exit path.
        """
        logger = self.logger.bind(video_id=video_id, user_id=user_id)
        video = await self._fetch(video_id)
        _authorize(video, user_id)
        content_type, extension = _validate_upload(
            upload,
            max_bytes=self.settings.max_video_upload_bytes,
            allowed=VIDEO_CONTENT_TYPES,
        )
        logger.info("video_upload_started", size_bytes=upload.size, content_type=content_type)

        with TemporaryArtifacts() as artifacts:
            staged = artifacts.register(self._staging_path(extension))
            await self._stage(upload.file, staged)

            geometry = await probe_geometry(
                staged,
                self.runner,
                ffprobe=self.settings.ffprobe_binary,
                timeout=self.settings.tool_timeout_seconds,
            )
            aspect = classify_aspect(geometry.width, geometry.height)
            logger.info("video_probed", width=geometry.width, height=geometry.height, aspect=aspect.value)

            artifacts.register(faststart_output_path(staged))
            processed = await faststart_remux(
                staged,
                self.runner,
                ffmpeg=self.settings.ffmpeg_binary,
                timeout=self.settings.tool_timeout_seconds,
            )

            key = derive_storage_key(aspect, extension=extension)
            await self._publish(key, processed, content_type)
            logger.info("video_object_uploaded", key=str(key))

            video.video_url = self.storage.public_url(str(key))
            try:
                video = await self.videos.update(video)
            except RecordPersistError:
                logger.error("record_persist_failed_orphaned_object", key=str(key))
                raise

        logger.info("video_upload_completed", video_url=video.video_url)
        return video

    async def upload_thumbnail(self, *, video_id: str, user_id: str, upload: UploadedFile) -> Video:
        logger = self.logger.bind(video_id=video_id, user_id=user_id)
        video = await self._fetch(video_id)
        _authorize(video, user_id)
        content_type, extension = _validate_upload(
            upload,
            max_bytes=self.settings.max_thumbnail_upload_bytes,
            allowed=THUMBNAIL_CONTENT_TYPES,
        )

        target = await asyncio.to_thread(self._store_thumbnail, video.id, extension, upload.file)
        video.thumbnail_url = f"{self.settings.service_base_url}/assets/{target.name}"
        video = await self.videos.update(video)

        # Only drop a previous thumbnail of another type once the record no longer references it.
        await asyncio.to_thread(self._remove_stale_thumbnails, video.id, keep=target)
        logger.info("thumbnail_stored", path=str(target), content_type=content_type)
        return video

    async def thumbnail_path(self, video_id: str) -> tuple[Path, str]:
        """Resolve the stored thumbnail of a record from disk.

        Returns:
            The file path and its media type.
        """
        video = await self._fetch(video_id)
        candidates = [
            (self._thumbnail_target(video.id, extension), content_type)
            for content_type, extension in THUMBNAIL_CONTENT_TYPES.items()
        ]
        if video.thumbnail_url:
            candidates.sort(key=lambda item: not video.thumbnail_url.endswith(item[0].name))
        for path, content_type in candidates:
            if path.is_file():
                return path, content_type
        raise NotFoundError("thumbnail_not_found")

    async def _fetch(self, video_id: str) -> Video:
        try:
            canonical = str(UUID(video_id))
        except (TypeError, ValueError) as exc:
            raise BadRequestError("invalid_video_id") from exc
        video = await self.videos.get_by_id(canonical)
        if video is None:
            raise NotFoundError("video_not_found")
        return video

    def _staging_path(self, extension: str) -> Path:
        root = Path(self.settings.temp_dir) if self.settings.temp_dir else Path(tempfile.gettempdir())
        return root / f"{random_path_id()}.{extension}"

    async def _stage(self, source: BinaryIO, target: Path) -> None:
        try:
            await asyncio.to_thread(_copy_stream, source, target)
        except OSError as exc:
            raise MediaIOError(f"failed to stage upload: {exc}") from exc

    async def _publish(self, key: StorageKey, source: Path, content_type: str) -> None:
        """Upload ``source`` within ``upload_timeout_seconds``.

        On timeout or cancellation the worker thread is signalled through
        ``cancel`` and awaited, so no object is written once the caller has
        seen the failure and the staged file is not removed underneath it.
        """
        cancel = threading.Event()
        upload = asyncio.ensure_future(
            asyncio.to_thread(self.storage.put_object, str(key), source, content_type=content_type, cancel=cancel)
        )
        try:
            done, _ = await asyncio.wait({upload}, timeout=self.settings.upload_timeout_seconds)
        except asyncio.CancelledError:
            cancel.set()
            await _drain(upload)
            raise
        if not done:
            cancel.set()
            await _drain(upload)
            if upload.exception() is None:
                # The last chunk landed before the cancel was observed; the object is complete.
                self.logger.warning("video_upload_finished_after_deadline", key=str(key))
                return
            self.logger.warning("video_upload_timed_out", key=str(key), timeout_s=self.settings.upload_timeout_seconds)
            raise UploadError(f"upload of {key} exceeded {self.settings.upload_timeout_seconds:.0f}s")
        upload.result()

    def _thumbnail_target(self, video_id: str, extension: str) -> Path:
        return Path(self.settings.assets_root) / f"{video_id}.{extension}"

    def _store_thumbnail(self, video_id: str, extension: str, source: BinaryIO) -> Path:
        target = self._thumbnail_target(video_id, extension)
        partial: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=target.parent, prefix=f".{video_id}.", suffix=".part", delete=False) as handle:
                partial = Path(handle.name)
                source.seek(0)
                shutil.copyfileobj(source, handle, COPY_CHUNK_BYTES)
            os.replace(partial, target)
        except OSError as exc:
            if partial is not None:
                partial.unlink(missing_ok=True)
            raise MediaIOError(f"failed to store thumbnail: {exc}") from exc
        return target

    def _remove_stale_thumbnails(self, video_id: str, *, keep: Path) -> None:
        for extension in THUMBNAIL_CONTENT_TYPES.values():
            path = self._thumbnail_target(video_id, extension)
            if path == keep:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self.logger.warning("stale_thumbnail_cleanup_failed", path=str(path), error=str(exc))


async def _drain(upload: asyncio.Future) -> None:
    await asyncio.wait({upload})
    if not upload.cancelled():
        upload.exception()


def _authorize(video: Video, user_id: str) -> None:
    if video.user_id != user_id:
        raise ForbiddenError("not_video_owner")


def _validate_upload(upload: UploadedFile, *, max_bytes: int, allowed: Mapping[str, str]) -> tuple[str, str]:
    if upload.size > max_bytes:
        raise PayloadTooLargeError(f"upload of {upload.size} bytes exceeds limit of {max_bytes}")
    content_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
    extension = allowed.get(content_type)
    if extension is None:
        raise UnsupportedMediaTypeError(f"{content_type or 'missing content type'} is not one of {', '.join(allowed)}")
    return content_type, extension


def _copy_stream(source: BinaryIO, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    source.seek(0)
    with target.open("wb") as handle:
        shutil.copyfileobj(source, handle, COPY_CHUNK_BYTES)


__all__ = [
    "MediaService",
    "UploadedFile",
    "VIDEO_CONTENT_TYPES",
    "THUMBNAIL_CONTENT_TYPES",
]
