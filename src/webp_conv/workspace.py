"""Per-job temporary directory for dumped animation frames."""

from __future__ import annotations

import asyncio
import enum
import hashlib
import logging
import shutil
import warnings
from pathlib import Path
from typing import Awaitable, Callable

from werkzeug.utils import secure_filename

from .errors import CleanupWarning

logger = logging.getLogger(__name__)


class WorkspaceState(enum.Enum):
    NEW = "new"
    CREATED = "created"
    POPULATED = "populated"
    SYNCED = "synced"
    CONSUMED = "consumed"
    RELEASED = "released"


def workspace_name(input_path: Path) -> str:
    """Directory name for an input: sanitized basename plus a path digest."""
    safe = secure_filename(input_path.name) or "input"
    digest = hashlib.sha1(str(input_path.resolve()).encode("utf-8")).hexdigest()[:8]
    return f"{safe}-{digest}"


class Workspace:
    """
    Scoped directory owned by one job.

    Used as an async context manager. The directory is removed on exit
    whether the body succeeded or raised; removal failures are logged and
    reported as CleanupWarning, never raised.
    """

    def __init__(
        self,
        root: Path,
        input_path: Path,
        cleanup_attempts: int = 5,
        cleanup_delay: float = 0.1,
        settle_delay: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.path = Path(root) / workspace_name(input_path)
        self.state = WorkspaceState.NEW
        self._attempts = max(1, cleanup_attempts)
        self._cleanup_delay = cleanup_delay
        self._settle_delay = settle_delay
        self._sleep = sleep

    def create(self) -> Path:
        """Create the directory, force-removing leftovers from a crashed run."""
        if self.path.exists():
            logger.info("Removing stale workspace %s", self.path)
            try:
                shutil.rmtree(self.path)
            except OSError as e:
                logger.warning("Could not remove stale workspace %s: %s", self.path, e)
        self.path.mkdir(parents=True, exist_ok=True)
        self.state = WorkspaceState.CREATED
        return self.path

    def advance(self, state: WorkspaceState) -> None:
        logger.debug("Workspace %s: %s -> %s", self.path.name, self.state.value, state.value)
        self.state = state

    async def release(self) -> bool:
        """Remove the directory tree, retrying a few times. Never raises OSError."""
        last_error: OSError | None = None
        for attempt in range(1, self._attempts + 1):
            try:
                if self.path.exists():
                    shutil.rmtree(self.path)
                self.state = WorkspaceState.RELEASED
                return True
            except OSError as e:
                last_error = e
                logger.debug(
                    "Cleanup attempt %d/%d for %s failed: %s",
                    attempt, self._attempts, self.path, e,
                )
                if attempt < self._attempts:
                    await self._sleep(self._cleanup_delay)

        logger.warning(
            "Could not remove workspace %s after %d attempts: %s",
            self.path, self._attempts, last_error,
        )
        warnings.warn(
            f"Workspace {self.path} was not removed: {last_error}",
            CleanupWarning,
            stacklevel=2,
        )
        return False

    async def __aenter__(self) -> Workspace:
        self.create()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None and self._settle_delay > 0:
            await self._sleep(self._settle_delay)
        await self.release()
        return False
