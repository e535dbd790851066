from __future__ import annotations

import math

KIBIBYTE = 1024
MEBIBYTE = 1024 * 1024

# Observed output/input size ratios for speech re-encoded to mono MP3.
ESTIMATE_RATIO_32_KBPS = 0.10
ESTIMATE_RATIO_64_KBPS = 0.15


def estimate_ratio_for_bitrate(bitrate_kbps: int) -> float:
    return ESTIMATE_RATIO_32_KBPS if bitrate_kbps <= 32 else ESTIMATE_RATIO_64_KBPS


def estimate_compressed_size(original_size: int, *, bitrate_kbps: int = 64) -> int:
    """Approximate output size of a compression run, in bytes."""

    if original_size < 0:
        raise ValueError("size must be non-negative")
    return math.floor(original_size * estimate_ratio_for_bitrate(bitrate_kbps) + 0.5)


def format_file_size(size: int) -> str:
    if size < KIBIBYTE:
        return f"{size} B"
    if size < MEBIBYTE:
        return f"{size / KIBIBYTE:.1f} KB"
    return f"{size / MEBIBYTE:.1f} MB"


__all__ = ["estimate_compressed_size", "estimate_ratio_for_bitrate", "format_file_size"]
