"""
Frame compositing for GIF output.

Each dumped frame is drawn onto a transparent canvas the size of the whole
animation. GIF transparency is on/off only, so alpha values in (0, threshold)
are snapped to 0; otherwise the encoder would render those soft edge pixels
as solid colour fringes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Sequence

import numpy as np
from PIL import Image

from .config import ALPHA_THRESHOLD
from .container import AnimationMetadata, FrameInfo
from .errors import ExternalProcessError

logger = logging.getLogger(__name__)


@dataclass
class CompositedFrame:
    """A full-canvas RGBA frame ready for the encoder."""
    index: int
    pixels: np.ndarray
    delay_ms: int

    @property
    def size(self) -> tuple[int, int]:
        h, w = self.pixels.shape[:2]
        return w, h


def threshold_alpha(pixels: np.ndarray, threshold: int = ALPHA_THRESHOLD) -> np.ndarray:
    """Zero every alpha value in (0, threshold), in place. RGB is left alone."""
    alpha = pixels[..., 3]
    alpha[(alpha > 0) & (alpha < threshold)] = 0
    return pixels


class FrameCompositor:
    """Turns dumped frame files into thresholded full-canvas frames."""

    def __init__(self, width: int, height: int, alpha_threshold: int = ALPHA_THRESHOLD):
        self.width = width
        self.height = height
        self.alpha_threshold = alpha_threshold

    def composite(self, frame_path: Path, info: FrameInfo | None = None) -> np.ndarray:
        """
        Load one frame file and return its thresholded RGBA pixels.

        Raises ExternalProcessError: If the decoder left an unreadable file
        """
        try:
            with Image.open(frame_path) as img:
                frame = img.convert("RGBA")
        except OSError as e:
            raise ExternalProcessError([], 0, f"Unreadable frame {frame_path}: {e}") from e

        size = (self.width, self.height)
        if frame.size != size:
            declared = (
                f" (declared {info.width}x{info.height} at {info.x},{info.y})"
                if info is not None and info.width else ""
            )
            logger.warning(
                "Frame %s is %dx%d%s, canvas is %dx%d; scaling to canvas",
                frame_path.name, frame.width, frame.height, declared, self.width, self.height,
            )
            frame = frame.resize(size, Image.Resampling.LANCZOS)

        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        canvas.alpha_composite(frame, (0, 0))

        pixels = np.array(canvas, dtype=np.uint8)
        return threshold_alpha(pixels, self.alpha_threshold)

    async def frames(
        self, frame_paths: Sequence[Path], metadata: AnimationMetadata
    ) -> AsyncIterator[CompositedFrame]:
        """Yield composited frames in order, each paired with its original delay."""
        if len(frame_paths) != metadata.frame_count:
            raise ValueError(
                f"Got {len(frame_paths)} frame files for {metadata.frame_count} frames"
            )

        for index, path in enumerate(frame_paths):
            info = metadata.frames[index]
            pixels = await asyncio.to_thread(self.composite, path, info)
            yield CompositedFrame(
                index=index,
                pixels=pixels,
                delay_ms=info.delay_ms,
            )
