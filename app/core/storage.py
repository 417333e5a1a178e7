from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

import boto3
from boto3.s3.transfer import TransferConfig
from boto3.exceptions import Boto3Error
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import UploadError
from .logging import get_logger

COPY_CHUNK_BYTES = 1024 * 1024
MULTIPART_CHUNK_BYTES = 8 * 1024 * 1024


class ObjectStorage(ABC):
    """Durable object storage that uploaded media is published to."""

    def __init__(self, public_base: str):
        self.public_base = public_base.rstrip("/")

    @abstractmethod
    def put_object(
        self,
        key: str,
        source: Path,
        *,
        content_type: str,
        cancel: threading.Event | None = None,
    ) -> None:
        """Stream ``source`` to ``key``; raises :class:`UploadError` on any failure.

        Implementations check ``cancel`` between chunks and abandon the upload,
        leaving no object behind, once it is set.
        """

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key}"


def _raise_if_cancelled(cancel: threading.Event | None, key: str) -> None:
    if cancel is not None and cancel.is_set():
        raise UploadError(f"upload of {key} cancelled")


def _validate_key(key: str) -> PurePosixPath:
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"Invalid object key: {key!r}")
    return path


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed object storage suitable for development."""

    def __init__(self, base_path: Path, public_base: str):
        super().__init__(public_base)
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(component="storage", backend="local")

    def _resolve(self, key: str) -> Path:
        return self.base_path.joinpath(*_validate_key(key).parts)

    def put_object(
        self,
        key: str,
        source: Path,
        *,
        content_type: str,
        cancel: threading.Event | None = None,
    ) -> None:
        target = self._resolve(key)
        partial = target.with_name(f".{target.name}.part")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with source.open("rb") as reader, partial.open("wb") as writer:
                while chunk := reader.read(COPY_CHUNK_BYTES):
                    _raise_if_cancelled(cancel, key)
                    writer.write(chunk)
            _raise_if_cancelled(cancel, key)
            os.replace(partial, target)
        except UploadError:
            partial.unlink(missing_ok=True)
            raise
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise UploadError(f"local put failed for {key}: {exc}") from exc
        self.logger.info("object_stored", key=key, content_type=content_type, size_bytes=target.stat().st_size)

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()


class S3ObjectStorage(ObjectStorage):
    """S3 (or S3 compatible) object storage using boto3 managed multipart uploads."""

    def __init__(
        self,
        *,
        bucket: str,
        public_base: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        timeout_s: float = 60.0,
    ):
        super().__init__(public_base)
        session = boto3.session.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )
        # Failed uploads surface immediately; the pipeline never retries.
        self.s3 = session.client(
            "s3",
            endpoint_url=endpoint_url,
            config=Config(
                signature_version="s3v4",
                connect_timeout=timeout_s,
                read_timeout=timeout_s,
                retries={"total_max_attempts": 1},
            ),
        )
        self.bucket = bucket
        self.transfer_config = TransferConfig(
            multipart_threshold=MULTIPART_CHUNK_BYTES,
            multipart_chunksize=MULTIPART_CHUNK_BYTES,
            max_concurrency=4,
        )
        self.logger = get_logger(component="storage", backend="s3", bucket=bucket)

    def put_object(
        self,
        key: str,
        source: Path,
        *,
        content_type: str,
        cancel: threading.Event | None = None,
    ) -> None:
        _validate_key(key)
        _raise_if_cancelled(cancel, key)

        def progress(_: int) -> None:
            # Raising here aborts the managed transfer; a multipart upload is aborted server side.
            _raise_if_cancelled(cancel, key)

        try:
            self.s3.upload_file(
                str(source),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
                Callback=progress,
                Config=self.transfer_config,
            )
        except (Boto3Error, BotoCoreError, ClientError, OSError) as exc:
            raise UploadError(f"s3 put failed for {key}: {exc}") from exc
        self.logger.info("object_stored", key=key, content_type=content_type)

    def exists(self, key: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise
        return True


def get_object_storage(settings: Settings) -> ObjectStorage:
    if settings.storage_backend == "local":
        return LocalObjectStorage(
            base_path=Path(settings.local_storage_base_path),
            public_base=settings.object_public_base,
        )
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("TUBELY_S3_BUCKET is required for the s3 storage backend")
        return S3ObjectStorage(
            bucket=settings.s3_bucket,
            public_base=settings.object_public_base,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.secrets.aws_access_key_id,
            secret_access_key=settings.secrets.aws_secret_access_key,
            timeout_s=settings.upload_timeout_seconds,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStorage",
    "LocalObjectStorage",
    "S3ObjectStorage",
    "get_object_storage",
]
