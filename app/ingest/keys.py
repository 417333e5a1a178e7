from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional

from .aspect import AspectClass

__all__ = [
    "RANDOM_ID_BYTES",
    "StorageKey",
    "random_path_id",
    "derive_storage_key",
]

RANDOM_ID_BYTES = 32


@dataclass(slots=True, frozen=True)
class StorageKey:
    """Object storage address of one uploaded video."""

    random_id: str
    extension: str
    aspect: Optional[AspectClass] = None

    @property
    def filename(self) -> str:
        return f"{self.random_id}.{self.extension}"

    def __str__(self) -> str:
        if self.aspect is None:
            return self.filename
        return f"{self.aspect.value}/{self.filename}"


def random_path_id() -> str:
    """Return 256 bits from the OS CSPRNG, base64url encoded without padding."""
    return secrets.token_urlsafe(RANDOM_ID_BYTES)


def derive_storage_key(
    aspect: Optional[AspectClass],
    *,
    extension: str = "mp4",
    random_id: Optional[str] = None,
) -> StorageKey:
    """Compose ``{aspect}/{random}.{extension}``, or ``{random}.{extension}`` without an aspect.

    Args:
        aspect: Aspect class of the video, used as the leading path segment.
        extension: File extension without the dot.
        random_id: Pre-generated random segment; a fresh one is drawn when omitted.

    Returns:
        The immutable storage key.
    """
    return StorageKey(
        random_id=random_id if random_id is not None else random_path_id(),
        extension=extension.lstrip("."),
        aspect=aspect,
    )
