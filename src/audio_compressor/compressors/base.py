from __future__ import annotations

import abc
from typing import Optional

from ..audio.types import CompressionResult, ProgressCallback, SourceAudio
from ..sizes import estimate_compressed_size


class AudioCompressor(abc.ABC):
    """Interface shared by the in-process and external-tool backends."""

    name: str
    bitrate_kbps: int

    @abc.abstractmethod
    def is_supported(self) -> bool:
        """Report whether this backend can run in the current process."""
        raise NotImplementedError

    @abc.abstractmethod
    async def compress(
        self,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CompressionResult:
        """Re-encode ``source`` as mono MP3.

        Implementations raise ``CompressionError`` prefixed with
        ``Failed to compress audio:`` and never return partial output.
        """
        raise NotImplementedError

    def estimate_compressed_size(self, original_size: int) -> int:
        return estimate_compressed_size(original_size, bitrate_kbps=self.bitrate_kbps)

    async def shutdown(self) -> None:
        """Allow backends to release resources if needed."""
        return None
