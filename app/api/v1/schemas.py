from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Boots and the lost keyboard"})
    description: Optional[str] = Field(default=None, json_schema_extra={"example": "Shot on a phone, 1080p."})


class VideoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = Field(default=None, description="Public URL of the published video, once ingested.")
    thumbnail_url: Optional[str] = Field(default=None, description="Served thumbnail URL, once uploaded.")
    created_at: datetime
    updated_at: datetime


class ErrorResponse(BaseModel):
    detail: str = Field(..., json_schema_extra={"example": "unsupported_media_type"})
    message: Optional[str] = None
