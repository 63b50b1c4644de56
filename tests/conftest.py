import asyncio
from pathlib import Path

import pytest
from PIL import Image, ImageSequence

from webp_conv.config import ConverterConfig
from webp_conv.container import read_animation_metadata

FRAME_COLORS = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]
FRAME_DELAYS = [100, 150, 100]
REPEATED_COLORS = [(255, 0, 0), (0, 255, 0), (0, 255, 0)]


def make_rgba_frame(color, size=(16, 16), soft_alpha=64) -> Image.Image:
    """Solid frame with a transparent left column and a soft-alpha second column."""
    frame = Image.new("RGBA", size, color + (255,))
    px = frame.load()
    for y in range(size[1]):
        px[0, y] = color + (0,)
        px[1, y] = color + (soft_alpha,)
    return frame


def write_animated_webp(path: Path, colors=FRAME_COLORS, delays=FRAME_DELAYS, loop=0,
                        size=(16, 16), soft_alphas=None) -> Path:
    soft_alphas = soft_alphas or [64] * len(colors)
    frames = [make_rgba_frame(c, size, a) for c, a in zip(colors, soft_alphas)]
    frames[0].save(
        path,
        format="WEBP",
        save_all=True,
        append_images=frames[1:],
        duration=list(delays),
        loop=loop,
        lossless=True,
    )
    return path


def write_static_webp(path: Path, size=(10, 6)) -> Path:
    Image.new("RGB", size, (10, 200, 30)).save(path, format="WEBP", lossless=True)
    return path


def dump_frames(input_path: Path, folder: Path) -> list[tuple[Path, Image.Image]]:
    """Decode every frame like anim_dump would, without writing anything yet."""
    out = []
    with Image.open(input_path) as img:
        for i, frame in enumerate(ImageSequence.Iterator(img)):
            out.append((folder / f"dump_{i}.png", frame.convert("RGBA")))
    return out


class FakeDecoder:
    """
    In-process stand-in for dwebp/anim_dump.

    `late_frames` delays writing all but the first frame until after
    dump_animation_frames returns, like a decoder whose output is not yet
    visible when the process exits. `junk_frame` is the index of a frame
    written as garbage bytes instead of a PNG.
    """

    def __init__(self, late_frames=False, write_frames=True, dump_error=None, static_error=None,
                 junk_frame=None):
        self.late_frames = late_frames
        self.write_frames = write_frames
        self.dump_error = dump_error
        self.static_error = static_error
        self.junk_frame = junk_frame
        self.static_calls = []
        self.dump_calls = []
        self.workspaces = []
        self._pending = []

    async def decode_static(self, input_path, output_path):
        self.static_calls.append((input_path, output_path))
        if self.static_error is not None:
            raise self.static_error
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with Image.open(input_path) as img:
            img.save(output_path, format="PNG")
        return output_path

    async def dump_animation_frames(self, input_path, workspace_dir):
        self.dump_calls.append((input_path, workspace_dir))
        self.workspaces.append(workspace_dir)
        if self.dump_error is not None:
            raise self.dump_error

        metadata = read_animation_metadata(input_path)
        if not self.write_frames:
            return metadata

        frames = dump_frames(input_path, workspace_dir)
        if self.late_frames:
            first, rest = frames[:1], frames[1:]
            self._write(first)
            self._pending.append(asyncio.get_running_loop().create_task(self._write_later(rest)))
        else:
            self._write(frames)
        if self.junk_frame is not None:
            frames[self.junk_frame][0].write_bytes(b"junk")
        return metadata

    @staticmethod
    def _write(frames):
        for path, image in frames:
            image.save(path, format="PNG")

    async def _write_later(self, frames):
        for path, image in frames:
            await asyncio.sleep(0.02)
            image.save(path, format="PNG")


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def animated_webp(tmp_path):
    return write_animated_webp(tmp_path / "animated.webp")


@pytest.fixture
def repeated_webp(tmp_path):
    # Frames 1 and 2 differ only in a soft-alpha column, so they are distinct
    # in the WebP but identical once thresholded.
    return write_animated_webp(
        tmp_path / "repeated.webp", colors=REPEATED_COLORS, soft_alphas=[64, 64, 65]
    )


@pytest.fixture
def static_webp(tmp_path):
    return write_static_webp(tmp_path / "static.webp")


@pytest.fixture
def fake_decoder():
    return FakeDecoder()


@pytest.fixture
def fast_config(tmp_path):
    return ConverterConfig(
        temp_root=tmp_path / "workspaces",
        poll_interval=0.01,
        sync_timeout=2.0,
        cleanup_attempts=2,
        cleanup_delay=0.0,
        settle_delay=0.0,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


def read_gif(path: Path) -> tuple[int, list[int], int | None]:
    """Return (frame count, per-frame durations, loop) of a GIF."""
    with Image.open(path) as gif:
        durations = []
        for i in range(gif.n_frames):
            gif.seek(i)
            durations.append(gif.info.get("duration"))
        return gif.n_frames, durations, gif.info.get("loop")
