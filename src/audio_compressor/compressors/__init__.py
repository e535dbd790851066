"""Compression backends."""

from .base import AudioCompressor
from .factory import select_compressor
from .ffmpeg import FfmpegCompressor
from .loader import FfmpegLoader, FfmpegTool, LoaderState
from .native import NativeCompressor

__all__ = [
    "AudioCompressor",
    "FfmpegCompressor",
    "FfmpegLoader",
    "FfmpegTool",
    "LoaderState",
    "NativeCompressor",
    "select_compressor",
]
