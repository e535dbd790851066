from __future__ import annotations

"""Runtime configuration helpers for audio-compressor."""

import os
from dataclasses import dataclass

_BOOL_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _env_list(name: str) -> tuple[str, ...]:
    value = os.getenv(name)
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(os.pathsep) if part.strip())


@dataclass(frozen=True)
class CompressionSettings:
    backend: str
    target_sample_rate: int
    bitrate_kbps: int
    pcm_bitrate_kbps: int
    block_size: int
    quality: int
    max_bytes: int


@dataclass(frozen=True)
class FfmpegSettings:
    binary: str | None
    search_paths: tuple[str, ...]
    sample_rate: int
    bitrate_kbps: int
    timeout_seconds: float
    scratch_dir: str | None


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    file: str | None


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    reload: bool


@dataclass(frozen=True)
class Settings:
    compression: CompressionSettings
    ffmpeg: FfmpegSettings
    logging: LoggingSettings
    server: ServerSettings


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""

    compression_settings = CompressionSettings(
        backend=os.getenv("COMPRESSOR_BACKEND", "auto").strip().lower(),
        target_sample_rate=_env_int("COMPRESSOR_TARGET_SAMPLE_RATE", 22050),
        bitrate_kbps=_env_int("COMPRESSOR_BITRATE_KBPS", 64),
        pcm_bitrate_kbps=_env_int("COMPRESSOR_PCM_BITRATE_KBPS", 32),
        block_size=_env_int("COMPRESSOR_BLOCK_SIZE", 1152),
        quality=_env_int("COMPRESSOR_QUALITY", 2),
        max_bytes=_env_int("COMPRESSOR_MAX_BYTES", 100 * 1024 * 1024),
    )

    ffmpeg_settings = FfmpegSettings(
        binary=os.getenv("FFMPEG_BINARY"),
        search_paths=_env_list("FFMPEG_SEARCH_PATHS"),
        sample_rate=_env_int("FFMPEG_SAMPLE_RATE", 24000),
        bitrate_kbps=_env_int("FFMPEG_BITRATE_KBPS", 64),
        timeout_seconds=_env_float("FFMPEG_TIMEOUT_SECONDS", 300.0),
        scratch_dir=os.getenv("FFMPEG_SCRATCH_DIR"),
    )

    logging_settings = LoggingSettings(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        file=os.getenv("LOG_FILE"),
    )

    server_settings = ServerSettings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8110),
        reload=_env_bool("RELOAD", False),
    )

    return Settings(
        compression=compression_settings,
        ffmpeg=ffmpeg_settings,
        logging=logging_settings,
        server=server_settings,
    )


settings = load_settings()

__all__ = [
    "Settings",
    "CompressionSettings",
    "FfmpegSettings",
    "LoggingSettings",
    "ServerSettings",
    "settings",
    "load_settings",
]
