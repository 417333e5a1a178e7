"""Media ingestion building blocks: probing, classification, remuxing and key derivation."""

from .artifacts import TemporaryArtifacts
from .aspect import AspectClass, classify_aspect
from .keys import StorageKey, derive_storage_key, random_path_id
from .probe import VideoGeometry, probe_geometry
from .process import AsyncProcessRunner, ProcessResult, ProcessRunner
from .remux import faststart_remux

__all__ = [
    "AspectClass",
    "AsyncProcessRunner",
    "ProcessResult",
    "ProcessRunner",
    "StorageKey",
    "TemporaryArtifacts",
    "VideoGeometry",
    "classify_aspect",
    "derive_storage_key",
    "faststart_remux",
    "probe_geometry",
    "random_path_id",
]
