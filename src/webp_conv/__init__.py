"""
WebP to GIF/PNG conversion.

Still WebP files are decoded to PNG with dwebp. Animated ones are dumped
frame by frame with anim_dump, composited and encoded into an animated GIF.

Deployment:
    pip install webp-conv
    apt install webp  # for dwebp and anim_dump
"""

from .compositor import CompositedFrame, FrameCompositor, threshold_alpha
from .config import ConverterConfig, DecoderConfig
from .container import AnimationMetadata, FrameInfo, is_animated, resolve_output_path
from .converter import Converter
from .decoder import Decoder, LibwebpDecoder, ToolStatus, check_tool
from .encoder import GifStreamEncoder
from .errors import (
    CleanupWarning,
    ContainerError,
    EncodingError,
    ExternalProcessError,
    SynchronizationTimeoutError,
    ValidationError,
    WebpConvError,
)
from .jobs import ConversionJob, Settings
from .synchronizer import FrameSynchronizer
from .workspace import Workspace, WorkspaceState

__all__ = [
    # Orchestration
    "Converter",
    "ConversionJob",
    "Settings",
    "ConverterConfig",
    "DecoderConfig",
    # Pipeline
    "Decoder",
    "LibwebpDecoder",
    "FrameSynchronizer",
    "FrameCompositor",
    "CompositedFrame",
    "GifStreamEncoder",
    "Workspace",
    "WorkspaceState",
    "threshold_alpha",
    # Container
    "AnimationMetadata",
    "FrameInfo",
    "is_animated",
    "resolve_output_path",
    # Tools
    "ToolStatus",
    "check_tool",
    # Errors
    "WebpConvError",
    "ValidationError",
    "ContainerError",
    "ExternalProcessError",
    "SynchronizationTimeoutError",
    "EncodingError",
    "CleanupWarning",
]
