"""
Conversion orchestration.

`Converter.convert_jobs` takes one job or a list of jobs:
1. Validate every job before touching anything
2. Resolve each output path (inferring .gif/.png from the container)
3. Run the jobs one after another

Still images go straight through dwebp. Animations go through the frame
pipeline: dump -> synchronize -> composite -> encode, inside a Workspace.
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Mapping, Sequence

from .compositor import FrameCompositor
from .config import ConverterConfig
from .container import resolve_output_path
from .decoder import Decoder, LibwebpDecoder
from .encoder import GifStreamEncoder
from .errors import ValidationError
from .jobs import (
    ConversionJob,
    Settings,
    check_settings,
    validate_input,
    validate_output,
)
from .synchronizer import FrameSynchronizer
from .workspace import Workspace, WorkspaceState

logger = logging.getLogger(__name__)


class Converter:
    """
    Converts WebP files to GIF (animated) or PNG (still).

    Jobs in a batch are processed sequentially: they share the decoder and
    the workspace root.
    """

    def __init__(
        self,
        defaults: Mapping[str, Any] | Settings | None = None,
        config: ConverterConfig | None = None,
        decoder: Decoder | None = None,
        synchronizer: FrameSynchronizer | None = None,
        strict: bool = True,
    ):
        self._config = config or ConverterConfig()
        self._strict = strict
        self._defaults = Settings().merged(check_settings(defaults, strict=strict))
        self._decoder: Decoder = decoder or LibwebpDecoder(self._config.decoder)
        self._synchronizer = synchronizer or FrameSynchronizer(
            interval=self._config.poll_interval,
            timeout=self._config.sync_timeout,
        )

    @property
    def defaults(self) -> Settings:
        return self._defaults

    @property
    def config(self) -> ConverterConfig:
        return self._config

    async def convert_jobs(self, jobs: Any) -> Path | list[Path]:
        """
        Convert one job or a sequence of jobs.

        Returns the output path for a single job, or the list of output paths
        in job order for a sequence.

        Raises ValidationError: If any job is invalid; nothing is converted
        """
        if jobs is None:
            raise ValidationError("Jobs parameter is required")

        is_batch = isinstance(jobs, Sequence) and not isinstance(jobs, (str, bytes))
        job_list = list(jobs) if is_batch else [jobs]

        validated = [self.validate_job(job) for job in job_list]

        results: list[Path] = []
        for job in validated:
            results.append(await self._process_job(job))

        return results if is_batch else results[0]

    def validate_job(self, job: Any) -> ConversionJob:
        return ConversionJob.from_dict(job, strict=self._strict)

    async def _process_job(self, job: ConversionJob) -> Path:
        output = resolve_output_path(job.input, job.output)
        settings = self._defaults.merged(job.settings)
        logger.info("Converting %s -> %s", job.input, output)
        return await self._convert(job.input, output, settings)

    async def convert(
        self,
        input: str | Path,
        output: str | Path,
        options: Mapping[str, Any] | None = None,
    ) -> Path:
        """Convert a single file. Deprecated: use convert_jobs()."""
        warnings.warn(
            "Converter.convert() is deprecated; use convert_jobs() instead",
            DeprecationWarning,
            stacklevel=2,
        )
        if not input:
            raise ValidationError("Input is required")
        if not output:
            raise ValidationError("Output is required")

        input_path, output_path = Path(input), Path(output)
        validate_input(input_path)
        validate_output(output_path)
        settings = self._defaults.merged(check_settings(options, strict=self._strict))
        return await self._convert(input_path, output_path, settings)

    async def _convert(self, input_path: Path, output_path: Path, settings: Settings) -> Path:
        if output_path.suffix == ".png":
            return await self._decoder.decode_static(input_path, output_path)
        return await self._convert_animated(input_path, output_path, settings)

    async def _convert_animated(
        self, input_path: Path, output_path: Path, settings: Settings
    ) -> Path:
        cfg = self._config
        workspace = Workspace(
            cfg.temp_root,
            input_path,
            cleanup_attempts=cfg.cleanup_attempts,
            cleanup_delay=cfg.cleanup_delay,
            settle_delay=cfg.settle_delay,
        )

        async with workspace:
            metadata = await self._decoder.dump_animation_frames(input_path, workspace.path)
            workspace.advance(WorkspaceState.POPULATED)

            frame_paths = await self._synchronizer.wait(workspace.path, metadata.frame_count)
            workspace.advance(WorkspaceState.SYNCED)

            compositor = FrameCompositor(metadata.width, metadata.height, cfg.alpha_threshold)
            encoder = GifStreamEncoder(
                output_path,
                metadata.width,
                metadata.height,
                quality=settings.quality,
                transparent=settings.transparent,
                loop=metadata.loop_count,
            )
            async for frame in compositor.frames(frame_paths, metadata):
                encoder.add_frame(frame)
            workspace.advance(WorkspaceState.CONSUMED)

            await encoder.finish()

        return output_path
