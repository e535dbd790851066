from __future__ import annotations

import io
import logging

import numpy as np

try:  # pragma: no cover - optional dependency guard
    import soundfile as sf
except Exception:  # pragma: no cover - libsndfile missing
    sf = None  # type: ignore[assignment]

from ..errors import DecodeError
from .types import DecodedAudio

logger = logging.getLogger(__name__)


def decoding_available() -> bool:
    return sf is not None


def decode_audio(data: bytes) -> DecodedAudio:
    """Decode an encoded container into per-channel float32 samples.

    The libsndfile handle is opened as a context manager so it is closed on
    every exit path, including decode failures.
    """

    if sf is None:
        raise DecodeError("audio decoding is unavailable: soundfile could not be loaded")
    if not data:
        raise DecodeError("audio input is empty")

    try:
        with sf.SoundFile(io.BytesIO(data)) as handle:
            sample_rate = int(handle.samplerate)
            frames = handle.read(dtype="float32", always_2d=True)
    except Exception as exc:
        raise DecodeError(f"unsupported audio encoding ({exc})") from exc

    if sample_rate <= 0:
        raise DecodeError("decoded audio reports no sample rate")

    channels = tuple(np.ascontiguousarray(frames[:, index]) for index in range(frames.shape[1]))
    logger.debug(
        "decode.complete",
        extra={"sample_rate": sample_rate, "channels": len(channels), "frames": frames.shape[0]},
    )
    return DecodedAudio(channels=channels, sample_rate=sample_rate)
