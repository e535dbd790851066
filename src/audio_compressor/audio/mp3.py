from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Protocol

import numpy as np

try:  # pragma: no cover - optional dependency guard
    import lameenc
except Exception:  # pragma: no cover
    lameenc = None  # type: ignore[assignment]

from ..errors import EncodeError
from .types import ProgressCallback

logger = logging.getLogger(__name__)

MP3_GRANULE_SIZE = 576
DEFAULT_BLOCK_SIZE = 1152


class Mp3FrameEncoder(Protocol):
    def encode(self, pcm: bytes) -> bytes: ...

    def flush(self) -> bytes: ...


EncoderFactory = Callable[[int, int, int], Mp3FrameEncoder]


def encoding_available() -> bool:
    return lameenc is not None


def lame_encoder_factory(sample_rate: int, bitrate_kbps: int, quality: int) -> Mp3FrameEncoder:
    if lameenc is None:
        raise EncodeError("MP3 encoding is unavailable: lameenc could not be loaded")
    encoder = lameenc.Encoder()
    encoder.set_bit_rate(bitrate_kbps)
    encoder.set_in_sample_rate(sample_rate)
    encoder.set_channels(1)
    encoder.set_quality(quality)
    return encoder


class Mp3EncoderDriver:
    """Streams mono 16-bit PCM through a stateful MP3 frame encoder."""

    def __init__(
        self,
        *,
        sample_rate: int,
        bitrate_kbps: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
        quality: int = 2,
        encoder_factory: Optional[EncoderFactory] = None,
    ) -> None:
        if block_size <= 0 or block_size % MP3_GRANULE_SIZE != 0:
            raise ValueError(f"block size must be a positive multiple of {MP3_GRANULE_SIZE}")
        if sample_rate <= 0:
            raise ValueError("sample rate must be positive")
        if bitrate_kbps <= 0:
            raise ValueError("bitrate must be positive")
        self._sample_rate = sample_rate
        self._bitrate_kbps = bitrate_kbps
        self._block_size = block_size
        self._quality = quality
        self._encoder_factory = encoder_factory or lame_encoder_factory

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def bitrate_kbps(self) -> int:
        return self._bitrate_kbps

    @property
    def block_size(self) -> int:
        return self._block_size

    def encode(self, pcm: np.ndarray, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Encode ``pcm`` block by block, flush once, and join the output.

        Progress is reported synchronously after each block and stays below
        100 until the trailing flush has been emitted. Empty input produces
        no bytes; LAME refuses to flush an encoder that was never fed.
        """

        samples = np.ascontiguousarray(pcm, dtype="<i2")
        total_blocks = math.ceil(samples.shape[0] / self._block_size)
        chunks: list[bytes] = []

        if total_blocks:
            encoder = self._call_encoder(
                self._encoder_factory, self._sample_rate, self._bitrate_kbps, self._quality
            )
            for index in range(total_blocks):
                start = index * self._block_size
                block = samples[start : start + self._block_size]
                emitted = self._call_encoder(encoder.encode, block.tobytes())
                if emitted:
                    chunks.append(bytes(emitted))
                if on_progress is not None:
                    on_progress(min(99, math.floor(100 * (index + 1) / total_blocks + 0.5)))
            trailing = self._call_encoder(encoder.flush)
            if trailing:
                chunks.append(bytes(trailing))

        if on_progress is not None:
            on_progress(100)

        data = b"".join(chunks)
        logger.debug(
            "mp3.encode.complete",
            extra={"blocks": total_blocks, "chunks": len(chunks), "bytes": len(data)},
        )
        return data

    @staticmethod
    def _call_encoder(func, *args):
        try:
            return func(*args)
        except EncodeError:
            raise
        except Exception as exc:
            raise EncodeError(f"MP3 encoder failed ({exc})") from exc


__all__ = [
    "DEFAULT_BLOCK_SIZE",
    "MP3_GRANULE_SIZE",
    "Mp3EncoderDriver",
    "Mp3FrameEncoder",
    "encoding_available",
    "lame_encoder_factory",
]
