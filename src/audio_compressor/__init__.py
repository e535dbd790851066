"""Speech-tuned audio compression for exam recordings and TTS output."""

from .audio.types import CompressionResult, SourceAudio, UploadCandidate
from .errors import CompressionError, DecodeError, EncodeError, LoaderFailure
from .service import AudioCompressionService
from .sizes import estimate_compressed_size, format_file_size

__all__ = [
    "AudioCompressionService",
    "CompressionError",
    "CompressionResult",
    "DecodeError",
    "EncodeError",
    "LoaderFailure",
    "SourceAudio",
    "UploadCandidate",
    "estimate_compressed_size",
    "format_file_size",
]
