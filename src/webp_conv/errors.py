"""Exception types raised by the conversion pipeline."""

from __future__ import annotations


class WebpConvError(Exception):
    """Base class for conversion failures."""


class ValidationError(WebpConvError, ValueError):
    """Raised when a job or its settings fail validation. No work has started."""


class ExternalProcessError(WebpConvError):
    """Raised when a decoder executable is missing, fails or times out."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        tool = command[0] if command else "decoder"
        super().__init__(f"{tool} failed (rc={returncode}): {stderr.strip()}")


class ContainerError(WebpConvError, ValueError):
    """Raised when a file is not a readable WebP RIFF container."""


class SynchronizationTimeoutError(WebpConvError):
    """Raised when the decoder never writes the expected number of frames."""

    def __init__(self, expected: int, observed: int, timeout: float):
        self.expected = expected
        self.observed = observed
        self.timeout = timeout
        super().__init__(
            f"Expected {expected} frame files, found {observed} after {timeout:.2f}s"
        )


class EncodingError(WebpConvError):
    """Raised when the GIF output cannot be produced."""


class CleanupWarning(UserWarning):
    """Emitted when a workspace could not be removed. Never fatal."""
