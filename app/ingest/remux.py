from __future__ import annotations

from pathlib import Path
from typing import List

from app.core.errors import RemuxError

from .process import ProcessRunner, ProcessTimeoutError

PROCESSED_SUFFIX = ".processed"


def faststart_output_path(input_path: Path) -> Path:
    return input_path.with_name(input_path.name + PROCESSED_SUFFIX)


def faststart_command(input_path: Path, output_path: Path, *, ffmpeg: str = "ffmpeg") -> List[str]:
    return [
        ffmpeg,
        "-nostdin",
        "-v",
        "error",
        "-y",
        "-i",
        str(input_path),
        "-movflags",
        "faststart",
        "-map_metadata",
        "0",
        "-codec",
        "copy",
        "-f",
        "mp4",
        str(output_path),
    ]


async def faststart_remux(
    input_path: Path,
    runner: ProcessRunner,
    *,
    ffmpeg: str = "ffmpeg",
    timeout: float | None = None,
) -> Path:
    """Rewrite ``input_path`` with the moov atom first, copying streams untouched.

    Returns the path of the remuxed file. On failure any partial output is left
    in place for the caller to discard.
    """
    output_path = faststart_output_path(input_path)
    try:
        result = await runner.run(faststart_command(input_path, output_path, ffmpeg=ffmpeg), timeout=timeout)
    except ProcessTimeoutError as exc:
        raise RemuxError(str(exc)) from exc
    if not result.ok:
        raise RemuxError(result.stderr.strip() or f"ffmpeg exited with status {result.exit_code}")
    return output_path


__all__ = ["PROCESSED_SUFFIX", "faststart_output_path", "faststart_command", "faststart_remux"]
