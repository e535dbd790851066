from __future__ import annotations

"""Minimal RIFF/WAVE helpers for raw 16-bit PCM produced by TTS providers."""

import struct
from typing import Tuple

import numpy as np

from ..errors import DecodeError

WAV_HEADER_SIZE = 44
WAVE_FORMAT_PCM = 1
WAVE_FORMAT_MULAW = 7


def build_wav_header(
    *,
    data_size: int,
    sample_rate: int,
    audio_format: int,
    bits_per_sample: int,
    channels: int = 1,
) -> bytes:
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        WAV_HEADER_SIZE + data_size - 8,
        b"WAVE",
        b"fmt ",
        16,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_size,
    )


def create_pcm_wav(pcm_bytes: bytes, sample_rate: int) -> bytes:
    """Wrap mono 16-bit little-endian PCM in a standard WAV container."""

    header = build_wav_header(
        data_size=len(pcm_bytes),
        sample_rate=sample_rate,
        audio_format=WAVE_FORMAT_PCM,
        bits_per_sample=16,
    )
    return header + bytes(pcm_bytes)


def parse_wav(wav_bytes: bytes) -> Tuple[bytes, int]:
    """Return ``(pcm_bytes, sample_rate)`` from a WAV file.

    Only the fields the PCM encoder needs are read: the sample rate from the
    canonical fmt offset and the payload after the first ``data`` marker.
    """

    if len(wav_bytes) < 28 or wav_bytes[:4] != b"RIFF":
        raise DecodeError("Invalid WAV file: missing RIFF header")

    (sample_rate,) = struct.unpack_from("<I", wav_bytes, 24)
    if sample_rate == 0:
        raise DecodeError("Invalid WAV file: sample rate is zero")
    marker = wav_bytes.find(b"data", 12)
    data_offset = marker + 8 if marker != -1 else WAV_HEADER_SIZE
    return bytes(wav_bytes[data_offset:]), int(sample_rate)


def pcm_bytes_to_int16(pcm_bytes: bytes) -> np.ndarray:
    usable = len(pcm_bytes) - (len(pcm_bytes) % 2)
    return np.frombuffer(pcm_bytes[:usable], dtype="<i2").astype(np.int16)


__all__ = [
    "WAV_HEADER_SIZE",
    "WAVE_FORMAT_MULAW",
    "WAVE_FORMAT_PCM",
    "build_wav_header",
    "create_pcm_wav",
    "parse_wav",
    "pcm_bytes_to_int16",
]
