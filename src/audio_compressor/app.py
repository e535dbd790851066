import asyncio
import base64
import binascii
import logging
import math
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request

from .audio.mulaw import create_mulaw_wav
from .audio.types import SourceAudio
from .audio.wav import create_pcm_wav
from .compressors import FfmpegLoader, NativeCompressor
from .errors import CompressionError
from .service import AudioCompressionService
from .settings import settings as runtime_settings
from .sizes import format_file_size

app = FastAPI()
logger = logging.getLogger(__name__)

compression_cfg = runtime_settings.compression
tool_loader = FfmpegLoader.from_settings(runtime_settings.ffmpeg)

try:
    compression_service = AudioCompressionService.from_settings(runtime_settings, loader=tool_loader)
except Exception:  # pragma: no cover - fall back to the in-process backend if config is invalid
    logger.exception("compress.backend_init_failed")
    compression_service = AudioCompressionService()

pcm_encoder = NativeCompressor.from_settings(compression_cfg)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _decode_b64_field(body: Dict[str, Any], field: str) -> bytes:
    raw = body.get(field)
    if not isinstance(raw, str) or not raw.strip():
        raise HTTPException(status_code=400, detail=f"{field} required")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, TypeError):
        raise HTTPException(status_code=400, detail=f"invalid {field} encoding")


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="invalid json")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="invalid json")
    return body


async def _prepare_compress_request(body: Dict[str, Any]) -> SourceAudio:
    audio_bytes = _decode_b64_field(body, "audio")
    if len(audio_bytes) > compression_cfg.max_bytes:
        raise HTTPException(status_code=413, detail="audio payload too large")

    filename = str(body.get("filename") or "audio.mp3")
    content_type = str(body.get("contentType") or "application/octet-stream")
    return SourceAudio(data=audio_bytes, filename=filename, content_type=content_type)


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "service": "audio-compressor",
        "backend": compression_service.compressor.name,
        "supported": compression_service.is_compression_supported(),
    }


@app.post("/audio/compress")
async def compress(request: Request) -> Dict[str, Any]:
    body = await _read_json(request)
    source = await _prepare_compress_request(body)
    allow_fallback = body.get("allowFallback", False)
    if not isinstance(allow_fallback, bool):
        raise HTTPException(status_code=400, detail="allowFallback must be a boolean")
    progress_marks: list[int] = []

    if allow_fallback:
        candidate = await compression_service.prepare_upload(source, progress_marks.append)
        return {
            "audio": _b64(candidate.data),
            "filename": candidate.filename,
            "contentType": candidate.content_type,
            "originalSize": candidate.original_size,
            "compressedSize": candidate.size,
            "savingsPercent": candidate.savings_percent,
            "compressed": candidate.compressed,
            "error": candidate.error,
        }

    if not compression_service.is_compression_supported():
        raise HTTPException(status_code=503, detail="audio compression unavailable")

    try:
        result = await compression_service.compress_audio(source, progress_marks.append)
    except CompressionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    savings = math.floor((1 - result.size / source.size) * 100 + 0.5) if source.size else 0
    logger.info(
        "compress.request.complete",
        extra={"audio_filename": result.filename, "progress_updates": len(progress_marks)},
    )
    return {
        "audio": _b64(result.data),
        "filename": result.filename,
        "contentType": result.content_type,
        "originalSize": source.size,
        "compressedSize": result.size,
        "savingsPercent": savings,
        "compressed": True,
        "error": None,
    }


@app.post("/audio/estimate")
async def estimate(request: Request) -> Dict[str, Any]:
    body = await _read_json(request)
    size = body.get("size")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise HTTPException(status_code=400, detail="size must be a non-negative integer")

    estimated = compression_service.estimate_compressed_size(size)
    return {
        "originalSize": size,
        "estimatedSize": estimated,
        "original": format_file_size(size),
        "estimated": format_file_size(estimated),
        "backend": compression_service.compressor.name,
    }


@app.post("/audio/pcm")
async def encode_pcm(request: Request) -> Dict[str, Any]:
    body = await _read_json(request)
    pcm_bytes = _decode_b64_field(body, "pcm")
    if len(pcm_bytes) > compression_cfg.max_bytes:
        raise HTTPException(status_code=413, detail="audio payload too large")

    sample_rate = body.get("sampleRate", 24000)
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, int) or sample_rate <= 0:
        raise HTTPException(status_code=400, detail="sampleRate must be a positive integer")
    target_rate: Optional[int] = body.get("targetSampleRate")
    output_format = str(body.get("format") or "mp3").lower()

    if output_format == "wav":
        return {"audio": _b64(create_pcm_wav(pcm_bytes, sample_rate)), "contentType": "audio/wav"}
    if output_format == "mulaw":
        if target_rate is not None and (not isinstance(target_rate, int) or target_rate <= 0):
            raise HTTPException(status_code=400, detail="targetSampleRate must be a positive integer")
        data = create_mulaw_wav(pcm_bytes, sample_rate, target_rate)
        return {"audio": _b64(data), "contentType": "audio/wav"}
    if output_format != "mp3":
        raise HTTPException(status_code=400, detail="unsupported format")

    if not pcm_encoder.is_supported():
        raise HTTPException(status_code=503, detail="audio compression unavailable")
    try:
        data = await asyncio.to_thread(pcm_encoder.compress_pcm16, pcm_bytes, sample_rate)
    except CompressionError as exc:
        raise HTTPException(status_code=422, detail=f"Failed to compress audio: {exc}") from exc
    return {"audio": _b64(data), "contentType": "audio/mpeg"}


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await compression_service.shutdown()
