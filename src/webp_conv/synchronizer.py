"""
Wait for the frame dump to land on disk.

anim_dump can exit before every frame file is visible in its output folder.
FrameSynchronizer polls the folder until the expected number of entries is
there, or gives up after a fixed bound.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Awaitable, Callable

from .errors import SynchronizationTimeoutError

logger = logging.getLogger(__name__)

_INDEX_RE = re.compile(r"(\d+)(?!.*\d)")


def frame_index(path: Path) -> int | None:
    """Return the last number in the file name, e.g. 12 for dump_0012.png."""
    match = _INDEX_RE.search(path.stem)
    return int(match.group(1)) if match else None


def order_frames(paths: list[Path]) -> list[Path]:
    """Sort frame files by their numeric index. Unnumbered files go last."""
    def key(p: Path) -> tuple[int, float, str]:
        idx = frame_index(p)
        return (0, idx, p.name) if idx is not None else (1, 0, p.name)

    return sorted(paths, key=key)


class FrameSynchronizer:
    """Polls a folder until `expected` frame files exist."""

    def __init__(
        self,
        interval: float = 0.05,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {timeout}")
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    async def wait(self, folder: Path, expected: int) -> list[Path]:
        """
        Return the first `expected` frame files in index order.

        Raises SynchronizationTimeoutError: If the count is not reached in time
        """
        deadline = self._clock() + self.timeout
        entries = self._list(folder)

        while len(entries) < expected:
            if self._clock() >= deadline:
                raise SynchronizationTimeoutError(expected, len(entries), self.timeout)
            await self._sleep(self.interval)
            entries = self._list(folder)

        frames = order_frames(entries)
        if len(frames) > expected:
            logger.warning(
                "Found %d frame files in %s, expected %d; using the first %d",
                len(frames), folder, expected, expected,
            )
            frames = frames[:expected]

        logger.debug("Frames ready in %s: %d", folder, len(frames))
        return frames

    @staticmethod
    def _list(folder: Path) -> list[Path]:
        try:
            return [p for p in folder.iterdir() if p.is_file()]
        except FileNotFoundError:
            return []
