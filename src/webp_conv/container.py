"""
WebP container inspection.

Walks the RIFF chunk list without decoding any pixels. Used to decide the
output format when none is given and to read the animation metadata
(canvas size, loop count, per-frame delay) for the GIF encoder.

Pillow's lazy `is_animated`/`n_frames` would answer the first question, but
it exposes per-frame delays only by seeking (and decoding) every frame. The
chunk walk reads all of it from the ANMF headers in one pass.

Layout:
    "RIFF" <u32 size> "WEBP" then chunks of <fourcc> <u32 size> <payload>,
    each payload padded to an even length.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from PIL import Image

from .errors import ContainerError

logger = logging.getLogger(__name__)

VP8X_ANIMATION_FLAG = 0x02


@dataclass(frozen=True)
class FrameInfo:
    """Per-frame metadata taken from an ANMF chunk."""
    delay_ms: int
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class AnimationMetadata:
    """Canvas size, loop count and frame delays of a WebP file."""
    width: int
    height: int
    loop_count: int
    frames: tuple[FrameInfo, ...]

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def delays(self) -> list[int]:
        return [f.delay_ms for f in self.frames]


def _u24(data: bytes, offset: int) -> int:
    return data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)


def _iter_chunks(fh: BinaryIO, peek: int = 16) -> Iterator[tuple[bytes, int, bytes]]:
    """Yield (fourcc, size, first `peek` payload bytes) for each chunk."""
    header = fh.read(12)
    if len(header) < 12 or header[:4] != b"RIFF" or header[8:12] != b"WEBP":
        raise ContainerError("Not a RIFF/WEBP container")

    riff_end = 8 + struct.unpack("<I", header[4:8])[0]
    pos = 12
    while pos + 8 <= riff_end:
        chunk_header = fh.read(8)
        if len(chunk_header) == 0:
            break
        if len(chunk_header) < 8:
            raise ContainerError(f"Truncated chunk header at offset {pos}")

        fourcc = chunk_header[:4]
        size = struct.unpack("<I", chunk_header[4:8])[0]
        head = fh.read(min(size, peek))
        if len(head) < min(size, peek):
            raise ContainerError(f"Truncated {fourcc!r} chunk at offset {pos}")

        yield fourcc, size, head

        pos += 8 + size + (size & 1)
        fh.seek(pos)


def is_animated(path: Path) -> bool:
    """True if the container declares an animation."""
    with open(path, "rb") as fh:
        for fourcc, _size, head in _iter_chunks(fh):
            if fourcc in (b"ANIM", b"ANMF"):
                return True
            if fourcc == b"VP8X" and head and head[0] & VP8X_ANIMATION_FLAG:
                return True
    return False


def read_animation_metadata(path: Path) -> AnimationMetadata:
    """
    Read the canvas size, loop count and frame delays.

    A still image reports a single frame with zero delay.

    Raises ContainerError: If the file is not a readable WebP
    """
    width = height = None
    loop_count = 0
    frames: list[FrameInfo] = []

    try:
        with open(path, "rb") as fh:
            for fourcc, size, head in _iter_chunks(fh):
                if fourcc == b"VP8X":
                    if size < 10:
                        raise ContainerError("VP8X chunk too short")
                    width = _u24(head, 4) + 1
                    height = _u24(head, 7) + 1
                elif fourcc == b"ANIM":
                    if size < 6:
                        raise ContainerError("ANIM chunk too short")
                    loop_count = struct.unpack("<H", head[4:6])[0]
                elif fourcc == b"ANMF":
                    if size < 16:
                        raise ContainerError("ANMF chunk too short")
                    frames.append(FrameInfo(
                        delay_ms=_u24(head, 12),
                        x=_u24(head, 0) * 2,
                        y=_u24(head, 3) * 2,
                        width=_u24(head, 6) + 1,
                        height=_u24(head, 9) + 1,
                    ))
    except OSError as e:
        raise ContainerError(f"Cannot read {path}: {e}") from e

    if width is None or height is None:
        # Simple format (VP8/VP8L only): the bitstream header holds the size.
        try:
            with Image.open(path) as img:
                width, height = img.size
        except OSError as e:
            raise ContainerError(f"Cannot read image size of {path}: {e}") from e

    if not frames:
        frames.append(FrameInfo(delay_ms=0, width=width, height=height))

    logger.debug(
        "Metadata for %s: %dx%d, %d frame(s), loop=%d",
        path.name, width, height, len(frames), loop_count,
    )
    return AnimationMetadata(
        width=width,
        height=height,
        loop_count=loop_count,
        frames=tuple(frames),
    )


def resolve_output_path(input_path: Path, output: Path | None = None) -> Path:
    """
    Return the output path, inferring it from the input when not given.

    Animated inputs become `<stem>.gif` and still ones `<stem>.png` next to
    the input. An unreadable container is treated as still.
    """
    if output is not None:
        return Path(output)

    try:
        animated = is_animated(input_path)
    except (OSError, ContainerError) as e:
        logger.debug("Cannot classify %s, assuming still image: %s", input_path, e)
        animated = False

    ext = ".gif" if animated else ".png"
    return input_path.with_name(f"{input_path.stem}{ext}")
