"""
Wrappers for the libwebp decoder command-line tools.

- dwebp decodes a still WebP straight to PNG.
- anim_dump writes every animation frame as a PNG into a folder.

Both run as subprocesses. anim_dump exiting does not mean its frame files are
listable yet; callers wait for them with FrameSynchronizer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .config import DecoderConfig
from .container import AnimationMetadata, read_animation_metadata
from .errors import ContainerError, ExternalProcessError

logger = logging.getLogger(__name__)


class Decoder(Protocol):
    """What the converter needs from a WebP decoder."""

    async def decode_static(self, input_path: Path, output_path: Path) -> Path:
        ...

    async def dump_animation_frames(
        self, input_path: Path, workspace_dir: Path
    ) -> AnimationMetadata:
        ...


async def run_tool(args: list[str], timeout: float) -> tuple[int, str, str]:
    """Run a decoder executable and return (returncode, stdout, stderr)."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return 127, "", f"{args[0]} not found. Install the webp package."
    except PermissionError as e:
        return 126, "", f"{args[0]} is not executable: {e}"

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return 124, "", f"TimeoutExpired after {timeout}s"

    return (
        proc.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


class LibwebpDecoder:
    """Decoder backed by the dwebp and anim_dump executables."""

    def __init__(self, config: DecoderConfig | None = None):
        self._config = config or DecoderConfig()

    @property
    def config(self) -> DecoderConfig:
        return self._config

    async def _run(self, cmd: list[str]) -> None:
        logger.debug("Running: %s", " ".join(cmd))
        returncode, _stdout, stderr = await run_tool(cmd, self._config.timeout)
        if returncode != 0:
            raise ExternalProcessError(cmd, returncode, stderr)

    async def decode_static(self, input_path: Path, output_path: Path) -> Path:
        """
        Decode a still WebP to PNG.

        Raises ExternalProcessError: If dwebp is missing or fails
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        await self._run([self._config.dwebp, str(input_path), "-o", str(output_path)])
        if not output_path.exists():
            raise ExternalProcessError(
                [self._config.dwebp, str(input_path)], 0, f"no output written to {output_path}"
            )
        return output_path

    async def dump_animation_frames(
        self, input_path: Path, workspace_dir: Path
    ) -> AnimationMetadata:
        """
        Dump every frame of `input_path` into `workspace_dir` as PNG.

        Returns the animation metadata read from the container.

        Raises ExternalProcessError: If the container is unreadable or
            anim_dump is missing or fails
        """
        try:
            metadata = await asyncio.to_thread(read_animation_metadata, input_path)
        except ContainerError as e:
            raise ExternalProcessError([self._config.anim_dump, str(input_path)], 1, str(e)) from e

        await self._run([self._config.anim_dump, "-folder", str(workspace_dir), str(input_path)])
        return metadata


@dataclass(frozen=True)
class ToolStatus:
    """Availability of one decoder executable."""

    name: str
    available: bool
    version: str | None = None


async def check_tool(executable: str, timeout: float = 5.0) -> ToolStatus:
    """Run `<executable> -version` and report whether it works."""
    returncode, stdout, stderr = await run_tool([executable, "-version"], timeout)
    if returncode != 0:
        logger.debug("%s -version failed (rc=%d): %s", executable, returncode, stderr.strip())
        return ToolStatus(name=executable, available=False)

    version = (stdout.strip() or stderr.strip()).splitlines()
    return ToolStatus(name=executable, available=True, version=version[0] if version else None)
