from __future__ import annotations

import logging
from typing import Optional

from ..settings import Settings
from .base import AudioCompressor
from .ffmpeg import FfmpegCompressor
from .loader import FfmpegLoader
from .native import NativeCompressor

logger = logging.getLogger(__name__)


def select_compressor(cfg: Settings, *, loader: Optional[FfmpegLoader] = None) -> AudioCompressor:
    """Pick the backend named by ``COMPRESSOR_BACKEND``, probing when it is ``auto``."""

    tool_loader = loader or FfmpegLoader.from_settings(cfg.ffmpeg)
    backend = (cfg.compression.backend or "auto").strip().lower()

    if backend in {"native", "lame", "in-process"}:
        return NativeCompressor.from_settings(cfg.compression)
    if backend == "ffmpeg":
        return FfmpegCompressor.from_settings(cfg.ffmpeg, loader=tool_loader)
    if backend != "auto":
        raise RuntimeError(f"unsupported compressor backend: {cfg.compression.backend}")

    native = NativeCompressor.from_settings(cfg.compression)
    if native.is_supported():
        return native
    external = FfmpegCompressor.from_settings(cfg.ffmpeg, loader=tool_loader)
    if external.is_supported():
        logger.info("compressor.select.fallback", extra={"backend": external.name})
        return external
    logger.warning("compressor.select.unsupported", extra={"backend": native.name})
    return native


__all__ = ["select_compressor"]
