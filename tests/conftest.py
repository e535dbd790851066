"""
Shared fixtures for audio-compressor tests.
"""

import io

import numpy as np
import pytest
import soundfile as sf


def sine_wave(*, seconds: float, sample_rate: int, frequency: float = 440.0, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(seconds * sample_rate), dtype=np.float64) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def encode_wav(samples: np.ndarray, sample_rate: int, subtype: str = "PCM_16") -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype=subtype)
    return buffer.getvalue()


class RecordingEncoder:
    """Stands in for lameenc.Encoder and records every call in order."""

    def __init__(self, *, emit_every: int = 1, fail_on_block: int | None = None) -> None:
        self.calls: list[tuple[str, int]] = []
        self._emit_every = emit_every
        self._fail_on_block = fail_on_block
        self._blocks = 0

    def encode(self, pcm: bytes) -> bytes:
        self._blocks += 1
        self.calls.append(("encode", len(pcm) // 2))
        if self._fail_on_block == self._blocks:
            raise RuntimeError("encoder exploded")
        if self._blocks % self._emit_every == 0:
            return f"<b{self._blocks}>".encode("ascii")
        return b""

    def flush(self) -> bytes:
        self.calls.append(("flush", 0))
        if not self._blocks:
            raise RuntimeError("Not currently encoding")
        return b"<flush>"


@pytest.fixture
def recording_encoder():
    return RecordingEncoder()


@pytest.fixture
def encoder_factory(recording_encoder):
    created: list[tuple[int, int, int]] = []

    def factory(sample_rate: int, bitrate_kbps: int, quality: int) -> RecordingEncoder:
        created.append((sample_rate, bitrate_kbps, quality))
        return recording_encoder

    factory.created = created  # type: ignore[attr-defined]
    return factory


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: tests that need external binaries")


@pytest.fixture
def make_sine():
    return sine_wave


@pytest.fixture
def make_wav():
    return encode_wav
