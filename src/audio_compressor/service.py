from __future__ import annotations

import logging
from typing import Optional

from .audio.types import CompressionResult, ProgressCallback, SourceAudio, UploadCandidate
from .compressors import AudioCompressor, FfmpegLoader, NativeCompressor, select_compressor
from .errors import CompressionError
from .settings import Settings
from .sizes import format_file_size

logger = logging.getLogger(__name__)


class AudioCompressionService:
    """Coordinates compressor backend usage."""

    def __init__(self, *, compressor: Optional[AudioCompressor] = None) -> None:
        self._compressor = compressor or NativeCompressor()

    @classmethod
    def from_settings(cls, cfg: Settings, *, loader: Optional[FfmpegLoader] = None) -> "AudioCompressionService":
        return cls(compressor=select_compressor(cfg, loader=loader))

    @property
    def compressor(self) -> AudioCompressor:
        return self._compressor

    def is_compression_supported(self) -> bool:
        return self._compressor.is_supported()

    def estimate_compressed_size(self, original_size: int) -> int:
        return self._compressor.estimate_compressed_size(original_size)

    async def compress_audio(
        self,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CompressionResult:
        return await self._compressor.compress(source, on_progress)

    async def prepare_upload(
        self,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadCandidate:
        """Compress ``source`` when possible, otherwise hand back the original.

        Compression only saves storage; a failure here never blocks the upload.
        """

        original = UploadCandidate(
            data=source.data,
            filename=source.filename,
            content_type=source.content_type,
            compressed=False,
            original_size=source.size,
        )
        if not self.is_compression_supported():
            logger.info("upload.compression.unsupported", extra={"backend": self._compressor.name})
            return original

        try:
            result = await self.compress_audio(source, on_progress)
        except CompressionError as exc:
            logger.warning(
                "upload.compression.failed",
                extra={"audio_filename": source.filename, "error": str(exc)},
            )
            original.error = str(exc)
            return original

        candidate = UploadCandidate(
            data=result.data,
            filename=result.filename,
            content_type=result.content_type,
            compressed=True,
            original_size=source.size,
        )
        logger.info(
            "upload.compression.complete",
            extra={
                "original": format_file_size(candidate.original_size),
                "compressed": format_file_size(candidate.size),
                "savings_percent": candidate.savings_percent,
            },
        )
        return candidate

    async def shutdown(self) -> None:
        await self._compressor.shutdown()


__all__ = ["AudioCompressionService"]
