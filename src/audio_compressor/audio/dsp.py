from __future__ import annotations

"""Sample-level transforms: downmix, linear resampling and 16-bit quantization."""

import logging
from typing import Optional

import numpy as np

from .types import DecodedAudio

logger = logging.getLogger(__name__)

INT16_NEGATIVE_SCALE = 32768.0
INT16_POSITIVE_SCALE = 32767.0


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def downmix(decoded: DecodedAudio) -> np.ndarray:
    """Reduce ``decoded`` to a single channel by per-sample averaging.

    Mono input is returned as-is. Inputs with more than two channels are
    averaged across every channel rather than only the first two.
    """

    channels = decoded.channels
    if not channels:
        return np.zeros(0, dtype=np.float32)
    if len(channels) == 1:
        return channels[0]
    if len(channels) == 2:
        left, right = channels
        return ((left + right) / 2).astype(np.float32)

    logger.debug("dsp.downmix.multichannel", extra={"channels": len(channels)})
    stacked = np.stack(channels, axis=0)
    return np.mean(stacked, axis=0, dtype=np.float64).astype(np.float32)


def resample_linear(
    samples: np.ndarray,
    from_rate: int,
    to_rate: int,
    *,
    out_length: Optional[int] = None,
) -> np.ndarray:
    """Resample ``samples`` with linear interpolation.

    The output holds ``round(len / ratio)`` samples unless ``out_length`` is
    given. No anti-aliasing filter runs before downsampling; the pipeline is
    tuned for speech, where the lost high band is acceptable.
    """

    if from_rate <= 0 or to_rate <= 0:
        raise ValueError("sample rates must be positive")
    if from_rate == to_rate:
        return samples

    length = int(samples.shape[0])
    if length == 0:
        return samples[:0].astype(np.float64)

    ratio = from_rate / to_rate
    if out_length is None:
        out_length = int(_round_half_up(np.float64(length * to_rate / from_rate)))
    source_positions = np.arange(out_length, dtype=np.float64) * ratio
    floor_index = np.floor(source_positions).astype(np.int64)
    fraction = source_positions - floor_index
    # Positions past the end clamp onto the final sample.
    floor_index = np.minimum(floor_index, length - 1)
    ceil_index = np.minimum(floor_index + 1, length - 1)

    values = samples.astype(np.float64, copy=False)
    return values[floor_index] * (1.0 - fraction) + values[ceil_index] * fraction


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """Map float samples onto signed 16-bit PCM.

    Values are clamped to [-1, 1] first. Negative samples scale by 32768 and
    non-negative ones by 32767, so +1.0 lands on 32767 without overflowing.
    """

    clamped = np.clip(samples.astype(np.float64, copy=False), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * INT16_NEGATIVE_SCALE, clamped * INT16_POSITIVE_SCALE)
    return _round_half_up(scaled).astype(np.int16)


def round_to_int16(values: np.ndarray) -> np.ndarray:
    """Round int16-domain floats half-up and saturate into the int16 range."""

    return np.clip(_round_half_up(values), -32768, 32767).astype(np.int16)


__all__ = ["downmix", "resample_linear", "quantize_pcm16", "round_to_int16"]
