import base64
import logging

import numpy as np
import pytest

from audio_compressor.audio.types import MP3_CONTENT_TYPE, SourceAudio
from audio_compressor.audio.wav import create_pcm_wav
from audio_compressor.compressors.native import NativeCompressor
from audio_compressor.errors import CompressionError, DecodeError, EncodeError


@pytest.mark.asyncio
async def test_compress_ten_second_sine_end_to_end(make_sine, make_wav):
    wav = make_wav(make_sine(seconds=10.0, sample_rate=44100), 44100)
    progress: list[int] = []

    result = await NativeCompressor().compress(
        SourceAudio(data=wav, filename="listening-part1.wav", content_type="audio/wav"),
        progress.append,
    )

    assert result.size > 0
    assert result.size < len(wav)
    assert result.content_type == MP3_CONTENT_TYPE
    assert result.filename == "listening-part1.mp3"
    assert progress[-1] == 100
    assert progress.count(100) == 1
    assert progress == sorted(progress)


@pytest.mark.asyncio
async def test_compress_downmixes_stereo_input(make_sine, make_wav):
    stereo = np.stack([make_sine(seconds=1.0, sample_rate=48000)] * 2, axis=1)

    result = await NativeCompressor(bitrate_kbps=32).compress(
        SourceAudio(data=make_wav(stereo, 48000), filename="answer.webm.wav")
    )

    assert result.filename == "answer.webm.mp3"
    assert result.size > 0


@pytest.mark.asyncio
async def test_compress_wraps_decode_failures():
    with pytest.raises(CompressionError) as excinfo:
        await NativeCompressor().compress(SourceAudio(data=b"\x00\x01garbage" * 50, filename="broken.mp3"))

    assert str(excinfo.value).startswith("Failed to compress audio: ")
    assert isinstance(excinfo.value.__cause__, DecodeError)
    assert type(excinfo.value) is CompressionError


@pytest.mark.asyncio
async def test_compress_wraps_encoder_failures(make_sine, make_wav):
    def broken_factory(sample_rate, bitrate_kbps, quality):
        raise RuntimeError("lame init failed")

    compressor = NativeCompressor(encoder_factory=broken_factory)

    with pytest.raises(CompressionError) as excinfo:
        await compressor.compress(SourceAudio(data=make_wav(make_sine(seconds=0.2, sample_rate=22050), 22050), filename="a.wav"))

    assert "lame init failed" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, EncodeError)


def test_estimate_matches_configured_bitrate():
    assert NativeCompressor(bitrate_kbps=32).estimate_compressed_size(1_000_000) == 100_000
    assert NativeCompressor(bitrate_kbps=64).estimate_compressed_size(1_000_000) == 150_000


def test_native_backend_is_supported_with_dependencies_installed():
    assert NativeCompressor().is_supported()


def test_native_backend_unsupported_without_decoder(monkeypatch):
    monkeypatch.setattr("audio_compressor.audio.decoder.sf", None)

    assert not NativeCompressor().is_supported()


def test_compress_pcm16_resamples_and_encodes(encoder_factory, recording_encoder):
    pcm = np.zeros(24000, dtype="<i2").tobytes()

    data = NativeCompressor(encoder_factory=encoder_factory).compress_pcm16(pcm, 24000)

    encoded_samples = sum(count for name, count in recording_encoder.calls if name == "encode")
    assert encoded_samples == 22050
    assert data.endswith(b"<flush>")
    assert encoder_factory.created == [(22050, 32, 2)]


def test_compress_wav_reads_sample_rate_from_header(encoder_factory, recording_encoder):
    wav = create_pcm_wav(np.zeros(16000, dtype="<i2").tobytes(), 16000)

    NativeCompressor(encoder_factory=encoder_factory).compress_wav(wav)

    encoded_samples = sum(count for name, count in recording_encoder.calls if name == "encode")
    assert encoded_samples == 22050


def test_compress_wav_rejects_missing_riff_header():
    with pytest.raises(DecodeError, match="missing RIFF header"):
        NativeCompressor().compress_wav(b"WAVE" + b"\x00" * 60)


def test_compress_pcm_base64_produces_mp3():
    t = np.arange(24000, dtype=np.float64) / 24000
    pcm = (0.3 * np.sin(2 * np.pi * 200 * t) * 32767).astype("<i2").tobytes()

    data = NativeCompressor().compress_pcm_base64(base64.b64encode(pcm).decode("ascii"))

    assert 0 < len(data) < len(pcm)


@pytest.mark.asyncio
async def test_compress_succeeds_with_info_logging(make_sine, make_wav, caplog):
    wav = make_wav(make_sine(seconds=1.0, sample_rate=44100), 44100)

    with caplog.at_level(logging.INFO, logger="audio_compressor"):
        result = await NativeCompressor().compress(SourceAudio(data=wav, filename="part3.wav"))

    assert result.filename == "part3.mp3"
    completed = [record for record in caplog.records if record.getMessage() == "compress.native.complete"]
    assert completed and completed[0].audio_filename == "part3.mp3"


@pytest.mark.asyncio
async def test_decode_failure_is_wrapped_with_warning_logged(caplog):
    with caplog.at_level(logging.INFO, logger="audio_compressor"):
        with pytest.raises(CompressionError, match="^Failed to compress audio: "):
            await NativeCompressor().compress(SourceAudio(data=b"not audio at all", filename="junk.wav"))

    failed = [record for record in caplog.records if record.getMessage() == "compress.native.failed"]
    assert failed and failed[0].audio_filename == "junk.wav"


@pytest.mark.asyncio
async def test_zero_frame_wav_is_a_decode_failure(make_wav):
    wav = make_wav(np.zeros(0, dtype=np.float32), 44100)

    with pytest.raises(CompressionError) as excinfo:
        await NativeCompressor().compress(SourceAudio(data=wav, filename="silence.wav"))

    assert isinstance(excinfo.value.__cause__, DecodeError)


@pytest.mark.parametrize("pcm", [b"", b"\x00"])
def test_pcm_without_whole_samples_is_rejected(pcm):
    with pytest.raises(DecodeError, match="no audio samples"):
        NativeCompressor().compress_pcm16(pcm)


def test_header_only_wav_is_rejected():
    with pytest.raises(DecodeError, match="no audio samples"):
        NativeCompressor().compress_wav(create_pcm_wav(b"", 16000))
