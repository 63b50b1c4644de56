"""
Job and settings definitions for the conversion pipeline.

A job is one input file, an optional output path and optional settings
overrides. Jobs arrive as plain mappings:

    {"input": "in.webp", "output": "out.gif", "settings": {"quality": 80}}

Settings resolve in three layers: job overrides, converter defaults, then the
hardcoded defaults below.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 10
DEFAULT_TRANSPARENT = "0x000000"

INPUT_EXT = ".webp"
OUTPUT_EXTS: frozenset[str] = frozenset({".gif", ".png"})

_COLOR_RE = re.compile(r"^0x([0-9a-fA-F]{6})([0-9a-fA-F]{2})?$")


def parse_color(value: str) -> tuple[int, int, int]:
    """Parse "0xRRGGBB" or "0xRRGGBBAA" into an RGB tuple. Alpha is dropped."""
    match = _COLOR_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(
            f"Transparent color must be '0xRRGGBB' or '0xRRGGBBAA', got {value!r}"
        )
    rgb = match.group(1)
    return int(rgb[0:2], 16), int(rgb[2:4], 16), int(rgb[4:6], 16)


@dataclass(frozen=True)
class Settings:
    """Effective encoder settings for one job."""

    quality: int = DEFAULT_QUALITY
    transparent: str = DEFAULT_TRANSPARENT

    def __post_init__(self) -> None:
        if isinstance(self.quality, bool) or not isinstance(self.quality, int):
            raise ValidationError(f"quality must be an integer, got {self.quality!r}")
        if not 0 <= self.quality <= 100:
            raise ValidationError(f"quality must be within 0..100, got {self.quality}")
        parse_color(self.transparent)

    @property
    def transparent_rgb(self) -> tuple[int, int, int]:
        return parse_color(self.transparent)

    def merged(self, overrides: Mapping[str, Any] | None) -> Settings:
        """Return a copy with the given keys replaced."""
        if not overrides:
            return self
        return replace(self, **dict(overrides))


SETTING_KEYS: frozenset[str] = frozenset(f.name for f in fields(Settings))


def check_settings(data: Any, strict: bool = True) -> dict[str, Any]:
    """
    Validate a settings mapping and return the recognized keys.

    Unknown keys raise ValidationError in strict mode and are dropped
    otherwise. Values are validated against the Settings rules.
    """
    if data is None:
        return {}
    if isinstance(data, Settings):
        return {f.name: getattr(data, f.name) for f in fields(Settings)}
    if not isinstance(data, Mapping):
        raise ValidationError(f"Settings must be a mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - SETTING_KEYS)
    if unknown:
        if strict:
            raise ValidationError(f"Unrecognized setting(s): {', '.join(map(str, unknown))}")
        logger.warning("Ignoring unrecognized setting(s): %s", ", ".join(map(str, unknown)))

    known = {k: v for k, v in data.items() if k in SETTING_KEYS}
    Settings().merged(known)
    return known


@dataclass(frozen=True)
class ConversionJob:
    """A single validated conversion request."""

    input: Path
    output: Path | None = None
    settings: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, strict: bool = True) -> ConversionJob:
        """Build a job from a mapping or pass a ConversionJob through."""
        if isinstance(data, ConversionJob):
            job = data
        elif isinstance(data, Mapping):
            if not data.get("input"):
                raise ValidationError(
                    "Job must have an 'input' property with the path to the input file"
                )
            if not isinstance(data["input"], (str, os.PathLike)):
                raise ValidationError("Job 'input' must be a path")
            output = data.get("output")
            job = cls(
                input=Path(data["input"]),
                output=Path(output) if output else None,
                settings=data.get("settings") or {},
            )
        else:
            raise ValidationError("Job must be a mapping")

        job.validate(strict=strict)
        return replace(job, settings=check_settings(job.settings, strict=strict))

    def validate(self, strict: bool = True) -> None:
        """Check the input file and output suffix. Writes nothing."""
        validate_input(self.input)
        if self.output is not None:
            validate_output(self.output)
        check_settings(self.settings, strict=strict)


def validate_input(path: Path) -> None:
    if not path.exists():
        raise ValidationError(f"Input file does not exist ({path})")
    if not path.is_file():
        raise ValidationError(f"Input is not a file ({path})")
    if path.suffix != INPUT_EXT:
        raise ValidationError(f"Input file is not a webp file ({path})")


def validate_output(path: Path) -> None:
    if path.suffix not in OUTPUT_EXTS:
        raise ValidationError(f"Output file must be a gif or png ({path})")
