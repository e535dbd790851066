from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

MP3_CONTENT_TYPE = "audio/mpeg"

ProgressCallback = Callable[[int], None]

_TRAILING_EXTENSION = re.compile(r"\.[^/.]+$")


@dataclass(slots=True)
class SourceAudio:
    """Encoded audio supplied by a caller, in any container."""

    data: bytes
    filename: str
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        match = _TRAILING_EXTENSION.search(self.filename)
        return match.group(0) if match else ""


@dataclass(slots=True)
class DecodedAudio:
    """Per-channel float samples produced by the decoder."""

    channels: Tuple[np.ndarray, ...]
    sample_rate: int

    @property
    def num_channels(self) -> int:
        return len(self.channels)

    @property
    def num_frames(self) -> int:
        return int(self.channels[0].shape[0]) if self.channels else 0

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.num_frames / float(self.sample_rate)


@dataclass(slots=True)
class CompressionResult:
    """Compressed artifact returned to callers."""

    data: bytes
    filename: str
    content_type: str = MP3_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class UploadCandidate:
    """File chosen for upload once compression has been attempted."""

    data: bytes
    filename: str
    content_type: str
    compressed: bool
    original_size: int
    error: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def savings_percent(self) -> int:
        if not self.compressed or self.original_size <= 0:
            return 0
        return int(np.floor((1 - self.size / self.original_size) * 100 + 0.5))


def mp3_filename(filename: str) -> str:
    """Swap the trailing extension of ``filename`` for ``.mp3``."""

    return f"{_TRAILING_EXTENSION.sub('', filename)}.mp3"
