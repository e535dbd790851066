from __future__ import annotations

import asyncio
import base64
import logging
import math
import time
from typing import Optional

from ..audio.decoder import decode_audio, decoding_available
from ..audio.dsp import downmix, quantize_pcm16, resample_linear, round_to_int16
from ..audio.mp3 import DEFAULT_BLOCK_SIZE, EncoderFactory, Mp3EncoderDriver, encoding_available
from ..audio.types import CompressionResult, ProgressCallback, SourceAudio, mp3_filename
from ..audio.wav import parse_wav, pcm_bytes_to_int16
from ..errors import CompressionError, DecodeError, wrap_failure
from ..settings import CompressionSettings
from .base import AudioCompressor

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 22050
DEFAULT_PCM_SAMPLE_RATE = 24000


class NativeCompressor(AudioCompressor):
    """Decode, downmix, resample and MP3-encode inside this process."""

    name = "native"

    def __init__(
        self,
        *,
        target_sample_rate: int = TARGET_SAMPLE_RATE,
        bitrate_kbps: int = 64,
        pcm_bitrate_kbps: int = 32,
        block_size: int = DEFAULT_BLOCK_SIZE,
        quality: int = 2,
        encoder_factory: Optional[EncoderFactory] = None,
    ) -> None:
        self._target_sample_rate = target_sample_rate
        self.bitrate_kbps = bitrate_kbps
        self._driver = Mp3EncoderDriver(
            sample_rate=target_sample_rate,
            bitrate_kbps=bitrate_kbps,
            block_size=block_size,
            quality=quality,
            encoder_factory=encoder_factory,
        )
        self._pcm_driver = Mp3EncoderDriver(
            sample_rate=target_sample_rate,
            bitrate_kbps=pcm_bitrate_kbps,
            block_size=block_size,
            quality=quality,
            encoder_factory=encoder_factory,
        )

    @classmethod
    def from_settings(cls, cfg: CompressionSettings) -> "NativeCompressor":
        return cls(
            target_sample_rate=cfg.target_sample_rate,
            bitrate_kbps=cfg.bitrate_kbps,
            pcm_bitrate_kbps=cfg.pcm_bitrate_kbps,
            block_size=cfg.block_size,
            quality=cfg.quality,
        )

    @property
    def target_sample_rate(self) -> int:
        return self._target_sample_rate

    def is_supported(self) -> bool:
        return decoding_available() and encoding_available()

    async def compress(
        self,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CompressionResult:
        started = time.perf_counter()
        try:
            data = await asyncio.to_thread(self._transcode, source.data, on_progress)
        except CompressionError as exc:
            logger.warning(
                "compress.native.failed",
                extra={"audio_filename": source.filename, "error": repr(exc)},
            )
            raise wrap_failure(exc) from exc

        result = CompressionResult(data=data, filename=mp3_filename(source.filename))
        logger.info(
            "compress.native.complete",
            extra={
                "audio_filename": result.filename,
                "original_bytes": source.size,
                "compressed_bytes": result.size,
                "elapsed_ms": round((time.perf_counter() - started) * 1000.0, 1),
            },
        )
        return result

    def _transcode(self, data: bytes, on_progress: Optional[ProgressCallback]) -> bytes:
        decoded = decode_audio(data)
        mono = downmix(decoded)
        if mono.shape[0] == 0:
            raise DecodeError("no audio samples")
        resampled = resample_linear(mono, decoded.sample_rate, self._target_sample_rate)
        pcm = quantize_pcm16(resampled)
        return self._driver.encode(pcm, on_progress)

    def compress_pcm16(self, pcm_bytes: bytes, sample_rate: int = DEFAULT_PCM_SAMPLE_RATE) -> bytes:
        """Encode raw mono 16-bit little-endian PCM straight to MP3.

        Used for TTS output, which arrives as headerless PCM; resampling stays
        in the int16 domain and the output length rounds up.
        """

        if sample_rate <= 0:
            raise ValueError("sample rate must be positive")
        samples = pcm_bytes_to_int16(pcm_bytes)
        if samples.size == 0:
            raise DecodeError("no audio samples")
        if sample_rate != self._target_sample_rate:
            out_length = math.ceil(samples.shape[0] * self._target_sample_rate / sample_rate)
            resampled = resample_linear(
                samples,
                sample_rate,
                self._target_sample_rate,
                out_length=out_length,
            )
            samples = round_to_int16(resampled)
        return self._pcm_driver.encode(samples)

    def compress_wav(self, wav_bytes: bytes) -> bytes:
        pcm_bytes, sample_rate = parse_wav(wav_bytes)
        return self.compress_pcm16(pcm_bytes, sample_rate)

    def compress_pcm_base64(self, pcm_base64: str, sample_rate: int = DEFAULT_PCM_SAMPLE_RATE) -> bytes:
        return self.compress_pcm16(base64.b64decode(pcm_base64), sample_rate)


__all__ = ["NativeCompressor", "TARGET_SAMPLE_RATE", "DEFAULT_PCM_SAMPLE_RATE"]
