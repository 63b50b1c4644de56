"""Tests for webp_conv.encoder."""

import asyncio
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from conftest import read_gif
from webp_conv.compositor import CompositedFrame
from webp_conv.encoder import GifStreamEncoder
from webp_conv.errors import EncodingError, ValidationError


def _frame(index, color, delay=100, size=(8, 8), transparent_cols=0):
    pixels = np.zeros((size[1], size[0], 4), dtype=np.uint8)
    pixels[...] = color + (255,)
    if transparent_cols:
        pixels[:, :transparent_cols, 3] = 0
    return CompositedFrame(index=index, pixels=pixels, delay_ms=delay)


class TestGifStreamEncoder:
    def test_writes_frames_with_delays(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8, quality=10, loop=0)
        for i, (color, delay) in enumerate(
            [((255, 0, 0), 100), ((0, 255, 0), 150), ((0, 0, 255), 100)]
        ):
            encoder.add_frame(_frame(i, color, delay))

        assert asyncio.run(encoder.finish()) == out

        n_frames, durations, loop = read_gif(out)
        assert n_frames == 3
        assert durations == [100, 150, 100]
        assert loop == 0

    def test_identical_consecutive_frames_are_kept(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8)
        for i, (color, delay) in enumerate(
            [((255, 0, 0), 100), ((0, 255, 0), 150), ((0, 255, 0), 100)]
        ):
            encoder.add_frame(_frame(i, color, delay))
        asyncio.run(encoder.finish())

        assert read_gif(out) == (3, [100, 150, 100], 0)

    def test_opaque_pixels_of_transparent_colour(self, tmp_path):
        out = tmp_path / "out.gif"
        pixels = np.full((4, 4, 4), 255, dtype=np.uint8)
        pixels[:, :2, :3] = (255, 0, 0)
        encoder = GifStreamEncoder(out, 4, 4, transparent="0xFFFFFF")
        encoder.add_frame(CompositedFrame(0, pixels, 100))
        asyncio.run(encoder.finish())

        with Image.open(out) as gif:
            rgba = np.array(gif.convert("RGBA"))

        assert (rgba[:, 2:, 3] == 0).all()
        assert (rgba[:, :2, 3] == 255).all()
        assert rgba[0, 0].tolist() == [255, 0, 0, 255]

    def test_near_transparent_colour_is_keyed(self, tmp_path):
        out = tmp_path / "out.gif"
        pixels = np.full((4, 4, 4), 255, dtype=np.uint8)
        pixels[..., :3] = (250, 250, 250)
        pixels[:, :2, :3] = (0, 0, 255)
        encoder = GifStreamEncoder(out, 4, 4, transparent="0xFFFFFF")
        encoder.add_frame(CompositedFrame(0, pixels, 100))
        asyncio.run(encoder.finish())

        with Image.open(out) as gif:
            rgba = np.array(gif.convert("RGBA"))

        assert (rgba[:, 2:, 3] == 0).all()
        assert (rgba[:, :2, 3] == 255).all()

    def test_distant_colours_stay_opaque(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8, transparent="0x000000")
        encoder.add_frame(_frame(0, (200, 40, 40)))
        asyncio.run(encoder.finish())

        with Image.open(out) as gif:
            assert (np.array(gif.convert("RGBA"))[..., 3] == 255).all()

    def test_loop_count(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8, loop=4)
        encoder.add_frame(_frame(0, (255, 0, 0)))
        encoder.add_frame(_frame(1, (0, 0, 255)))
        asyncio.run(encoder.finish())

        assert read_gif(out)[2] == 4

    def test_transparent_pixels(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8, transparent="0x00FF00")
        encoder.add_frame(_frame(0, (255, 0, 0), transparent_cols=3))
        asyncio.run(encoder.finish())

        with Image.open(out) as gif:
            rgba = np.array(gif.convert("RGBA"))

        assert (rgba[:, :3, 3] == 0).all()
        assert (rgba[:, 3:, 3] == 255).all()
        assert rgba[4, 6].tolist() == [255, 0, 0, 255]

    def test_fully_transparent_frame(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 4, 4)
        encoder.add_frame(_frame(0, (9, 9, 9), size=(4, 4), transparent_cols=4))
        asyncio.run(encoder.finish())

        with Image.open(out) as gif:
            assert (np.array(gif.convert("RGBA"))[..., 3] == 0).all()

    @pytest.mark.parametrize("quality", [0, 1, 10, 100])
    def test_quality_range(self, tmp_path, quality):
        out = tmp_path / f"q{quality}.gif"
        rng = np.random.default_rng(quality)
        pixels = np.full((8, 8, 4), 255, dtype=np.uint8)
        pixels[..., :3] = rng.integers(0, 256, size=(8, 8, 3), dtype=np.uint8)

        encoder = GifStreamEncoder(out, 8, 8, quality=quality)
        encoder.add_frame(CompositedFrame(0, pixels, 50))
        asyncio.run(encoder.finish())

        assert read_gif(out)[0] == 1

    def test_out_of_order_frame(self, tmp_path):
        encoder = GifStreamEncoder(tmp_path / "out.gif", 8, 8)
        encoder.add_frame(_frame(1, (255, 0, 0)))

        with pytest.raises(EncodingError, match="after frame 1"):
            encoder.add_frame(_frame(0, (0, 255, 0)))
        with pytest.raises(EncodingError):
            encoder.add_frame(_frame(1, (0, 255, 0)))

    def test_wrong_frame_size(self, tmp_path):
        encoder = GifStreamEncoder(tmp_path / "out.gif", 8, 8)
        with pytest.raises(EncodingError, match="expected 8x8"):
            encoder.add_frame(_frame(0, (255, 0, 0), size=(4, 4)))

    def test_finish_without_frames(self, tmp_path):
        encoder = GifStreamEncoder(tmp_path / "out.gif", 8, 8)
        with pytest.raises(EncodingError, match="No frames"):
            asyncio.run(encoder.finish())

    def test_finish_twice(self, tmp_path):
        encoder = GifStreamEncoder(tmp_path / "out.gif", 8, 8)
        encoder.add_frame(_frame(0, (255, 0, 0)))
        asyncio.run(encoder.finish())

        with pytest.raises(EncodingError, match="already finished"):
            asyncio.run(encoder.finish())
        with pytest.raises(EncodingError, match="already finished"):
            encoder.add_frame(_frame(1, (0, 255, 0)))

    def test_creates_output_directory(self, tmp_path):
        out = tmp_path / "nested" / "dir" / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8)
        encoder.add_frame(_frame(0, (255, 0, 0)))
        asyncio.run(encoder.finish())

        assert out.is_file()
        assert list(out.parent.iterdir()) == [out]

    def test_write_failure_is_encoding_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        encoder = GifStreamEncoder(blocker / "out.gif", 8, 8)
        encoder.add_frame(_frame(0, (255, 0, 0)))

        with pytest.raises(EncodingError):
            asyncio.run(encoder.finish())

    def test_failed_rename_leaves_no_partial_file(self, tmp_path):
        out = tmp_path / "out.gif"
        encoder = GifStreamEncoder(out, 8, 8)
        encoder.add_frame(_frame(0, (255, 0, 0)))

        with patch("webp_conv.encoder.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(EncodingError, match="disk full"):
                asyncio.run(encoder.finish())

        assert list(tmp_path.iterdir()) == []

    def test_invalid_transparent_color(self, tmp_path):
        with pytest.raises(ValidationError):
            GifStreamEncoder(tmp_path / "out.gif", 8, 8, transparent="red")
