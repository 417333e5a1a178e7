from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol, Sequence

from app.core.logging import get_logger


@dataclass(slots=True, frozen=True)
class ProcessResult:
    """Outcome of one external tool invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessTimeoutError(TimeoutError):
    def __init__(self, args: Sequence[str], timeout: float):
        super().__init__(f"{args[0]} exceeded {timeout:.0f}s")
        self.command = list(args)
        self.timeout = timeout


class ProcessRunner(Protocol):
    async def run(self, args: Sequence[str], *, timeout: float | None = None) -> ProcessResult: ...


class AsyncProcessRunner:
    """Spawn a child process, capture stdout/stderr, and await its exit code.

    The child is killed when ``timeout`` elapses or the awaiting task is
    cancelled, so a stalled ffprobe/ffmpeg never outlives its request.
    """

    def __init__(self) -> None:
        self.logger = get_logger(component="process_runner")

    async def run(self, args: Sequence[str], *, timeout: float | None = None) -> ProcessResult:
        command = [str(arg) for arg in args]
        self.logger.debug("process_spawn", command=command)
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return ProcessResult(exit_code=127, stdout="", stderr=f"{command[0]}: command not found")
        except OSError as exc:
            self.logger.warning("process_spawn_failed", command=command, error=str(exc))
            return ProcessResult(exit_code=126, stdout="", stderr=f"{command[0]}: {exc.strerror or exc}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            self.logger.warning("process_timeout", command=command, timeout_s=timeout)
            raise ProcessTimeoutError(command, timeout or 0.0) from None
        except asyncio.CancelledError:
            await _kill(proc)
            self.logger.info("process_cancelled", command=command)
            raise

        result = ProcessResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        self.logger.debug("process_exit", command=command, exit_code=result.exit_code)
        return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


__all__ = ["ProcessResult", "ProcessRunner", "AsyncProcessRunner", "ProcessTimeoutError"]
