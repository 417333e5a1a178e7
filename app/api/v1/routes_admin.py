from __future__ import annotations

import asyncio
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import AdminDependency, get_process_runner
from app.core.auth import issue_access_token
from app.core.config import Settings, get_settings
from app.ingest.process import ProcessRunner, ProcessTimeoutError

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])

DEV_ENVIRONMENTS = {"development", "dev"}


class DevTokenRequest(BaseModel):
    user_id: str = Field(..., min_length=1, examples=["user-123"])
    scopes: list[str] = Field(default_factory=list)
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    token: str
    expires_in: int


async def _tool_available(runner: ProcessRunner, binary: str) -> bool:
    try:
        result = await runner.run([binary, "-version"], timeout=10)
    except ProcessTimeoutError:
        return False
    return result.ok


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate the ffmpeg toolchain")
async def env_check(
    _: AdminDependency,
    settings: Settings = Depends(get_settings),
    runner: ProcessRunner = Depends(get_process_runner),
) -> EnvCheckResponse:
    ffmpeg, ffprobe = await asyncio.gather(
        _tool_available(runner, settings.ffmpeg_binary),
        _tool_available(runner, settings.ffprobe_binary),
    )
    return EnvCheckResponse(ffmpeg=ffmpeg, ffprobe=ffprobe)


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint a development bearer token")
async def mint_dev_token(payload: DevTokenRequest, settings: Settings = Depends(get_settings)) -> DevTokenResponse:
    if settings.environment_lower not in DEV_ENVIRONMENTS:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    ttl = timedelta(minutes=payload.ttl_minutes)
    token = issue_access_token(settings, payload.user_id, scopes=payload.scopes, ttl=ttl)
    return DevTokenResponse(token=token, expires_in=int(ttl.total_seconds()))


__all__ = ["router"]
