from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from app.core.errors import ProbeError
from app.ingest.probe import VideoGeometry, ffprobe_geometry_command, parse_geometry, probe_geometry
from app.ingest.process import AsyncProcessRunner, ProcessResult, ProcessTimeoutError


class ScriptedRunner:
    def __init__(self, result: ProcessResult | None = None, *, raises: Exception | None = None):
        self.result = result
        self.raises = raises
        self.calls: list[tuple[list[str], float | None]] = []

    async def run(self, args, *, timeout=None):
        self.calls.append((list(args), timeout))
        if self.raises:
            raise self.raises
        return self.result


def _ok(payload: dict) -> ProcessResult:
    return ProcessResult(exit_code=0, stdout=json.dumps(payload), stderr="")


def test_command_selects_first_video_stream_geometry_as_json():
    command = ffprobe_geometry_command(Path("/tmp/clip.mp4"), ffprobe="/usr/bin/ffprobe")
    assert command == [
        "/usr/bin/ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height",
        "-of",
        "json",
        "/tmp/clip.mp4",
    ]


def test_probe_geometry_parses_width_and_height():
    runner = ScriptedRunner(_ok({"programs": [], "streams": [{"width": 1280, "height": 720}]}))

    geometry = asyncio.run(probe_geometry(Path("clip.mp4"), runner, timeout=5.0))

    assert geometry == VideoGeometry(width=1280, height=720)
    assert runner.calls[0][1] == 5.0


def test_probe_geometry_propagates_stderr_on_failure():
    runner = ScriptedRunner(
        ProcessResult(exit_code=1, stdout="", stderr="clip.mp4: Invalid data found when processing input\n")
    )

    with pytest.raises(ProbeError) as excinfo:
        asyncio.run(probe_geometry(Path("clip.mp4"), runner))

    assert "Invalid data found" in excinfo.value.message


def test_probe_geometry_timeout_is_probe_error():
    runner = ScriptedRunner(raises=ProcessTimeoutError(["ffprobe"], 1.0))

    with pytest.raises(ProbeError):
        asyncio.run(probe_geometry(Path("clip.mp4"), runner, timeout=1.0))


@pytest.mark.parametrize(
    "stdout",
    [
        "",
        "not json",
        json.dumps([]),
        json.dumps({}),
        json.dumps({"streams": []}),
        json.dumps({"streams": [{}]}),
        json.dumps({"streams": [{"width": 1920}]}),
        json.dumps({"streams": [{"width": 0, "height": 1080}]}),
        json.dumps({"streams": [{"width": "N/A", "height": 1080}]}),
    ],
)
def test_parse_geometry_rejects_incomplete_output(stdout):
    with pytest.raises(ProbeError):
        parse_geometry(stdout)


def test_parse_geometry_accepts_numeric_strings():
    assert parse_geometry(json.dumps({"streams": [{"width": "720", "height": "1280"}]})) == VideoGeometry(720, 1280)


def test_unexecutable_ffprobe_is_probe_error(tmp_path):
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"movie")

    with pytest.raises(ProbeError) as excinfo:
        asyncio.run(probe_geometry(clip, AsyncProcessRunner(), ffprobe=str(tmp_path), timeout=5.0))

    assert excinfo.value.status_code == 422
