"""Audio decoding, sample transforms and container encoders."""

from .decoder import decode_audio, decoding_available
from .dsp import downmix, quantize_pcm16, resample_linear
from .mp3 import Mp3EncoderDriver, encoding_available
from .types import (
    MP3_CONTENT_TYPE,
    CompressionResult,
    DecodedAudio,
    ProgressCallback,
    SourceAudio,
    UploadCandidate,
    mp3_filename,
)

__all__ = [
    "MP3_CONTENT_TYPE",
    "CompressionResult",
    "DecodedAudio",
    "Mp3EncoderDriver",
    "ProgressCallback",
    "SourceAudio",
    "UploadCandidate",
    "decode_audio",
    "decoding_available",
    "downmix",
    "encoding_available",
    "mp3_filename",
    "quantize_pcm16",
    "resample_linear",
]
