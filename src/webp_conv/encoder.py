"""
Animated GIF encoder.

Frames are palettized as they arrive and written out in one pass by
`finish()`. Index 255 of every frame palette is reserved for transparency.
Fully transparent pixels are mapped onto it, and so are visible pixels whose
palette entry is the one nearest the configured transparent colour, as long
as that entry lies within TRANSPARENT_TOLERANCE of it.

Quality is the palette sampling interval: 1 samples every visible pixel
when building the palette, 10 every tenth one, and so on. 0 behaves as 1.

Frames are written one by one through GifImagePlugin's header/frame writers
rather than `Image.save(save_all=True)`, which folds identical consecutive
frames into one.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import numpy as np
from PIL import GifImagePlugin, Image

from .compositor import CompositedFrame
from .errors import EncodingError
from .jobs import DEFAULT_QUALITY, DEFAULT_TRANSPARENT, parse_color

logger = logging.getLogger(__name__)

TRANSPARENT_INDEX = 255
PALETTE_COLORS = 255

# Largest per-channel distance at which a palette entry still counts as the
# configured transparent colour.
TRANSPARENT_TOLERANCE = 16

# Restore to background between frames; every frame covers the full canvas.
DISPOSAL_BACKGROUND = 2


class GifStreamEncoder:
    """Collects frames in index order and writes one animated GIF."""

    def __init__(
        self,
        output: Path,
        width: int,
        height: int,
        quality: int = DEFAULT_QUALITY,
        transparent: str = DEFAULT_TRANSPARENT,
        loop: int = 0,
    ):
        self.output = Path(output)
        self.width = width
        self.height = height
        self.quality = quality
        self.transparent_rgb = parse_color(transparent)
        self.loop = loop

        self._sample = max(1, quality)
        self._frames: list[Image.Image] = []
        self._durations: list[int] = []
        self._last_index = -1
        self._finished = False

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def add_frame(self, frame: CompositedFrame) -> None:
        """Palettize and buffer one frame. Indices must strictly increase."""
        if self._finished:
            raise EncodingError("Encoder already finished")
        if frame.index <= self._last_index:
            raise EncodingError(
                f"Frame {frame.index} added after frame {self._last_index}"
            )
        if frame.size != (self.width, self.height):
            raise EncodingError(
                f"Frame {frame.index} is {frame.size[0]}x{frame.size[1]}, "
                f"expected {self.width}x{self.height}"
            )

        self._frames.append(self._palettize(frame.pixels))
        self._durations.append(frame.delay_ms)
        self._last_index = frame.index

    def _palettize(self, pixels: np.ndarray) -> Image.Image:
        rgb = np.ascontiguousarray(pixels[..., :3])
        visible = pixels[..., 3] > 0

        sample = rgb[visible][:: self._sample]
        if sample.size == 0:
            sample = np.array([self.transparent_rgb], dtype=np.uint8)
        sample_img = Image.fromarray(sample.reshape(-1, 1, 3))

        palette = sample_img.quantize(
            colors=PALETTE_COLORS, method=Image.Quantize.MEDIANCUT
        ).getpalette()[: PALETTE_COLORS * 3]
        palette += [0] * (PALETTE_COLORS * 3 - len(palette))

        palette_img = Image.new("P", (1, 1))
        palette_img.putpalette(palette)
        indexed = np.array(
            Image.fromarray(rgb).quantize(palette=palette_img, dither=Image.Dither.NONE),
            dtype=np.uint8,
        )
        keyed = self._transparent_entry(palette, indexed[visible])
        if keyed is not None:
            visible &= indexed != keyed
        indexed[~visible] = TRANSPARENT_INDEX

        frame = Image.frombytes("P", (self.width, self.height), indexed.tobytes())
        frame.putpalette(palette + list(self.transparent_rgb))
        return frame

    def _transparent_entry(self, palette: list[int], used: np.ndarray) -> int | None:
        """Index of the used palette entry nearest the transparent colour, if close enough."""
        if used.size == 0:
            return None
        candidates = np.unique(used)
        entries = np.array(palette, dtype=np.int16).reshape(-1, 3)[candidates]
        distance = np.abs(entries - np.array(self.transparent_rgb, dtype=np.int16)).max(axis=1)
        nearest = int(distance.argmin())
        if distance[nearest] > TRANSPARENT_TOLERANCE:
            return None
        return int(candidates[nearest])

    async def finish(self) -> Path:
        """Write the GIF. Returns once the file is flushed and in place."""
        if self._finished:
            raise EncodingError("Encoder already finished")
        if not self._frames:
            raise EncodingError("No frames to encode")

        await asyncio.to_thread(self._write)
        self._finished = True
        logger.info("Wrote %s: %d frames", self.output, len(self._frames))
        self._frames.clear()
        return self.output

    def _write(self) -> None:
        part = self.output.with_name(f".{self.output.name}.part")
        try:
            self.output.parent.mkdir(parents=True, exist_ok=True)
            with open(part, "wb") as fh:
                self._write_frames(fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(part, self.output)
        except (OSError, ValueError) as e:
            try:
                part.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove partial file %s", part)
            raise EncodingError(f"Failed to write {self.output}: {e}") from e

    def _write_frames(self, fh) -> None:
        # Each frame carries its own colour table; the first one doubles as
        # the global table.
        header, _ = GifImagePlugin.getheader(
            self._frames[0],
            info={"loop": self.loop, "transparency": TRANSPARENT_INDEX, "optimize": False},
        )
        for chunk in header:
            fh.write(chunk)

        for frame, duration in zip(self._frames, self._durations):
            for chunk in GifImagePlugin.getdata(
                frame,
                duration=duration,
                disposal=DISPOSAL_BACKGROUND,
                transparency=TRANSPARENT_INDEX,
                include_color_table=True,
            ):
                fh.write(chunk)

        fh.write(b";")
