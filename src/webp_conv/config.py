"""Configuration for the converter and the libwebp decoder tools."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

ALPHA_THRESHOLD = 128


def _default_temp_root() -> Path:
    return Path(tempfile.gettempdir()) / "webp-conv"


@dataclass(frozen=True)
class DecoderConfig:
    """Locations of the libwebp executables."""

    dwebp: str = "dwebp"
    anim_dump: str = "anim_dump"
    timeout: float = 120.0

    @classmethod
    def load(cls) -> DecoderConfig:
        """Load from environment variables."""
        return cls(
            dwebp=os.getenv("WEBP_CONV_DWEBP", "dwebp"),
            anim_dump=os.getenv("WEBP_CONV_ANIM_DUMP", "anim_dump"),
            timeout=float(os.getenv("WEBP_CONV_DECODER_TIMEOUT", "120.0")),
        )


@dataclass(frozen=True)
class ConverterConfig:
    """Pipeline tuning: workspace location, polling, cleanup and thresholds."""

    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    temp_root: Path = field(default_factory=_default_temp_root)
    poll_interval: float = 0.05
    sync_timeout: float = 30.0
    cleanup_attempts: int = 5
    cleanup_delay: float = 0.1
    settle_delay: float = 0.1
    alpha_threshold: int = ALPHA_THRESHOLD

    @classmethod
    def load(cls) -> ConverterConfig:
        """Load from environment variables."""
        temp_root = os.getenv("WEBP_CONV_TEMP_ROOT")
        return cls(
            decoder=DecoderConfig.load(),
            temp_root=Path(temp_root) if temp_root else _default_temp_root(),
            poll_interval=float(os.getenv("WEBP_CONV_POLL_INTERVAL", "0.05")),
            sync_timeout=float(os.getenv("WEBP_CONV_SYNC_TIMEOUT", "30.0")),
            cleanup_attempts=int(os.getenv("WEBP_CONV_CLEANUP_ATTEMPTS", "5")),
            cleanup_delay=float(os.getenv("WEBP_CONV_CLEANUP_DELAY", "0.1")),
            settle_delay=float(os.getenv("WEBP_CONV_SETTLE_DELAY", "0.1")),
            alpha_threshold=int(os.getenv("WEBP_CONV_ALPHA_THRESHOLD", str(ALPHA_THRESHOLD))),
        )
