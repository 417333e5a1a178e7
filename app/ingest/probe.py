from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.core.errors import ProbeError

from .process import ProcessRunner, ProcessTimeoutError


@dataclass(slots=True, frozen=True)
class VideoGeometry:
    """Pixel dimensions of the first video stream."""

    width: int
    height: int


def ffprobe_geometry_command(path: Path, *, ffprobe: str = "ffprobe") -> List[str]:
    return [
        ffprobe,
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height",
        "-of",
        "json",
        str(path),
    ]


async def probe_geometry(
    path: Path,
    runner: ProcessRunner,
    *,
    ffprobe: str = "ffprobe",
    timeout: float | None = None,
) -> VideoGeometry:
    """Run ffprobe against ``path`` and return the first video stream's geometry.

    Args:
        path: A local, fully written media file.
        runner: Process capability used to spawn ffprobe.
        ffprobe: ffprobe binary name or path.
        timeout: Seconds before the probe is killed.

    Returns:
        The width and height of stream ``v:0``.

    Raises:
        ProbeError: ffprobe exited non-zero, timed out, or the output lacks the
            stream or its dimensions.
    """
    try:
        result = await runner.run(ffprobe_geometry_command(path, ffprobe=ffprobe), timeout=timeout)
    except ProcessTimeoutError as exc:
        raise ProbeError(str(exc)) from exc
    if not result.ok:
        raise ProbeError(result.stderr.strip() or f"ffprobe exited with status {result.exit_code}")
    return parse_geometry(result.stdout)


def parse_geometry(stdout: str) -> VideoGeometry:
    """Extract ``width``/``height`` from ffprobe's JSON ``streams`` payload."""
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise ProbeError(f"unparseable ffprobe output: {exc}") from exc

    streams = payload.get("streams") if isinstance(payload, dict) else None
    if not streams or not isinstance(streams, list) or not isinstance(streams[0], dict):
        raise ProbeError("no video stream found")

    stream: Dict[str, Any] = streams[0]
    width = _positive_int_or_none(stream.get("width"))
    height = _positive_int_or_none(stream.get("height"))
    if width is None or height is None:
        raise ProbeError("video stream is missing width/height")
    return VideoGeometry(width=width, height=height)


def _positive_int_or_none(value: Any) -> Optional[int]:
    if value in (None, "N/A", "") or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


__all__ = ["VideoGeometry", "ffprobe_geometry_command", "probe_geometry", "parse_geometry"]
