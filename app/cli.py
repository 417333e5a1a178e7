from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from rich.console import Console
from rich.table import Table

from .core.config import get_settings
from .core.db import create_engine, create_schema
from .core.errors import ProbeError, RemuxError
from .ingest.aspect import classify_aspect
from .ingest.keys import derive_storage_key
from .ingest.probe import probe_geometry
from .ingest.process import AsyncProcessRunner
from .ingest.remux import faststart_remux

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Tubely media developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Probe a video's geometry and aspect class")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Remux a local MP4 for progressive playback")
    faststart_parser.add_argument("--file", required=True, help="Path to the source media file")
    faststart_parser.set_defaults(func=_cmd_faststart)

    key_parser = subparsers.add_parser("key", help="Print a storage key for the given frame size")
    key_parser.add_argument("--width", type=int, required=True)
    key_parser.add_argument("--height", type=int, required=True)
    key_parser.add_argument("--extension", default="mp4")
    key_parser.set_defaults(func=_cmd_key)

    serve_parser = subparsers.add_parser("serve", help="Run the API with uvicorn")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=None, help="Defaults to TUBELY_PORT")
    serve_parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    serve_parser.set_defaults(func=_cmd_serve)

    init_db_parser = subparsers.add_parser("init-db", help="Create the metadata tables (development only)")
    init_db_parser.set_defaults(func=_cmd_init_db)
    return parser


def _cmd_probe(args: argparse.Namespace) -> None:
    """Probe a video and print its geometry and aspect class.

    Args:
        args: The command-line arguments.
    """
    media_path = _existing_file(args.file)
    settings = get_settings()
    try:
        geometry = asyncio.run(
            probe_geometry(
                media_path,
                AsyncProcessRunner(),
                ffprobe=settings.ffprobe_binary,
                timeout=settings.tool_timeout_seconds,
            )
        )
    except ProbeError as exc:
        console.print(f"[red]ffprobe failed:[/] {exc.message}")
        sys.exit(3)

    aspect = classify_aspect(geometry.width, geometry.height)
    console.print_json(data={"width": geometry.width, "height": geometry.height, "aspect": aspect.value})


def _cmd_faststart(args: argparse.Namespace) -> None:
    media_path = _existing_file(args.file)
    settings = get_settings()
    try:
        output = asyncio.run(
            faststart_remux(
                media_path,
                AsyncProcessRunner(),
                ffmpeg=settings.ffmpeg_binary,
                timeout=settings.tool_timeout_seconds,
            )
        )
    except RemuxError as exc:
        console.print(f"[red]ffmpeg failed:[/] {exc.message}")
        sys.exit(3)
    console.print(f"[green]Remuxed to {output}[/]")


def _cmd_key(args: argparse.Namespace) -> None:
    aspect = classify_aspect(args.width, args.height)
    console.print(str(derive_storage_key(aspect, extension=args.extension)))


def _cmd_serve(args: argparse.Namespace) -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=args.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


def _cmd_init_db(args: argparse.Namespace) -> None:
    settings = get_settings()
    engine = create_engine(settings)

    async def run() -> None:
        await create_schema(engine)
        await engine.dispose()

    asyncio.run(run())
    console.print(f"[green]Schema created for {settings.database_url}[/]")


def _existing_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.is_file():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    checks = {
        "ffmpeg": [settings.ffmpeg_binary, "-version"],
        "ffprobe": [settings.ffprobe_binary, "-version"],
    }
    results = {}
    for label, cmd in checks.items():
        try:
            subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True, timeout=10)
            results[label] = True
        except (OSError, subprocess.SubprocessError):
            results[label] = False

    table = Table(title="Environment Check")
    table.add_column("Tool")
    table.add_column("Available")
    for label, ok in results.items():
        table.add_row(label, "yes" if ok else "[red]no[/]")
    console.print(table)

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg (which ships ffprobe).[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
