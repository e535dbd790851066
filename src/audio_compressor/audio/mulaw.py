from __future__ import annotations

"""G.711 mu-law WAV encoding for speech audio.

Mu-law halves 16-bit PCM to 8 bits per sample and is cheap to compute. An
optional speech-safe downsample before encoding shrinks it further.
"""

import math
from functools import lru_cache
from typing import Optional

import numpy as np

from .dsp import resample_linear, round_to_int16
from .wav import WAVE_FORMAT_MULAW, build_wav_header, pcm_bytes_to_int16

MULAW_BIAS = 0x84
MULAW_CLIP = 32635


def linear_to_mulaw(sample: int) -> int:
    """Convert one signed 16-bit sample to an 8-bit mu-law code."""

    sign = 0x80 if sample < 0 else 0
    magnitude = min(-sample if sample < 0 else sample, MULAW_CLIP) + MULAW_BIAS

    exponent = 7
    mask = 0x4000
    while not magnitude & mask and exponent > 0:
        exponent -= 1
        mask >>= 1

    mantissa = (magnitude >> (exponent + 3)) & 0x0F
    return ~(sign | (exponent << 4) | mantissa) & 0xFF


@lru_cache(maxsize=1)
def _mulaw_table() -> np.ndarray:
    return np.array([linear_to_mulaw(value) for value in range(-32768, 32768)], dtype=np.uint8)


def int16_to_mulaw(samples: np.ndarray) -> np.ndarray:
    indices = samples.astype(np.int32) + 32768
    return _mulaw_table()[indices]


def pcm_to_mulaw(pcm_bytes: bytes) -> bytes:
    return int16_to_mulaw(pcm_bytes_to_int16(pcm_bytes)).tobytes()


def downsample_int16(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    if not from_rate or not to_rate or from_rate == to_rate:
        return samples
    out_length = max(1, math.ceil(samples.shape[0] * to_rate / from_rate))
    return round_to_int16(resample_linear(samples, from_rate, to_rate, out_length=out_length))


def create_mulaw_wav(
    pcm_bytes: bytes,
    sample_rate: int,
    target_sample_rate: Optional[int] = None,
) -> bytes:
    """Build a mu-law WAV (format 7, 8-bit mono) from 16-bit PCM."""

    output_rate = target_sample_rate if target_sample_rate and target_sample_rate > 0 else sample_rate
    samples = pcm_bytes_to_int16(pcm_bytes)
    if samples.size and output_rate != sample_rate:
        samples = downsample_int16(samples, sample_rate, output_rate)
    encoded = int16_to_mulaw(samples).tobytes()

    header = build_wav_header(
        data_size=len(encoded),
        sample_rate=output_rate,
        audio_format=WAVE_FORMAT_MULAW,
        bits_per_sample=8,
    )
    return header + encoded


__all__ = [
    "create_mulaw_wav",
    "downsample_int16",
    "int16_to_mulaw",
    "linear_to_mulaw",
    "pcm_to_mulaw",
]
