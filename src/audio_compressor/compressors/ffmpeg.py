from __future__ import annotations

import asyncio
import logging
import math
import os
import re
import tempfile
import time
from contextlib import suppress
from pathlib import Path
from typing import List, Optional

from ..audio.types import CompressionResult, ProgressCallback, SourceAudio, mp3_filename
from ..errors import CompressionError, EncodeError, wrap_failure
from ..settings import FfmpegSettings
from .base import AudioCompressor
from .loader import FfmpegLoader

logger = logging.getLogger(__name__)

OUTPUT_NAME = "output.mp3"

_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_PROGRESS_TIME_KEYS = ("out_time_us=", "out_time_ms=")
_PROGRESS_LINE = re.compile(r"^\w+=")


def parse_duration_seconds(line: str) -> Optional[float]:
    match = _DURATION_PATTERN.search(line)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_progress_seconds(line: str) -> Optional[float]:
    # ffmpeg reports both keys in microseconds.
    for key in _PROGRESS_TIME_KEYS:
        if line.startswith(key):
            try:
                return int(line[len(key) :]) / 1_000_000
            except ValueError:
                return None
    return None


class FfmpegCompressor(AudioCompressor):
    """Transcode through an ffmpeg subprocess inside a private scratch directory."""

    name = "ffmpeg"

    def __init__(
        self,
        *,
        loader: FfmpegLoader,
        sample_rate: int = 24000,
        bitrate_kbps: int = 64,
        timeout_seconds: float = 300.0,
        scratch_dir: Optional[str] = None,
    ) -> None:
        self._loader = loader
        self._sample_rate = sample_rate
        self.bitrate_kbps = bitrate_kbps
        self._timeout_seconds = timeout_seconds
        self._scratch_dir = scratch_dir

    @classmethod
    def from_settings(cls, cfg: FfmpegSettings, *, loader: FfmpegLoader) -> "FfmpegCompressor":
        return cls(
            loader=loader,
            sample_rate=cfg.sample_rate,
            bitrate_kbps=cfg.bitrate_kbps,
            timeout_seconds=cfg.timeout_seconds,
            scratch_dir=cfg.scratch_dir,
        )

    @property
    def loader(self) -> FfmpegLoader:
        return self._loader

    def is_supported(self) -> bool:
        if self._loader.failed:
            return False
        scratch_root = self._scratch_dir or tempfile.gettempdir()
        return os.path.isdir(scratch_root) and os.access(scratch_root, os.W_OK | os.X_OK)

    def build_arguments(self, input_name: str, output_name: str = OUTPUT_NAME) -> List[str]:
        return [
            "-hide_banner",
            "-nostdin",
            "-y",
            "-i",
            input_name,
            "-ac",
            "1",
            "-ar",
            str(self._sample_rate),
            "-b:a",
            f"{self.bitrate_kbps}k",
            "-map_metadata",
            "-1",
            "-progress",
            "pipe:2",
            output_name,
        ]

    async def compress(
        self,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CompressionResult:
        started = time.perf_counter()
        try:
            tool = await self._loader.ensure_loaded()
            data = await self._transcode(tool.path, source, on_progress)
        except CompressionError as exc:
            logger.warning(
                "compress.ffmpeg.failed",
                extra={"audio_filename": source.filename, "error": repr(exc)},
            )
            raise wrap_failure(exc) from exc

        result = CompressionResult(data=data, filename=mp3_filename(source.filename))
        logger.info(
            "compress.ffmpeg.complete",
            extra={
                "audio_filename": result.filename,
                "original_bytes": source.size,
                "compressed_bytes": result.size,
                "elapsed_ms": round((time.perf_counter() - started) * 1000.0, 1),
            },
        )
        return result

    async def _transcode(
        self,
        binary: str,
        source: SourceAudio,
        on_progress: Optional[ProgressCallback],
    ) -> bytes:
        input_name = f"input{source.extension or '.mp3'}"
        with tempfile.TemporaryDirectory(prefix="audio-compress-", dir=self._scratch_dir) as workdir:
            input_path = Path(workdir) / input_name
            output_path = Path(workdir) / OUTPUT_NAME
            input_path.write_bytes(source.data)

            try:
                process = await asyncio.create_subprocess_exec(
                    binary,
                    *self.build_arguments(str(input_path), str(output_path)),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise EncodeError(f"could not start ffmpeg ({exc})") from exc
            try:
                last_line = await asyncio.wait_for(
                    self._follow_progress(process, on_progress),
                    timeout=self._timeout_seconds,
                )
                returncode = await process.wait()
            except asyncio.TimeoutError as exc:
                raise EncodeError(f"ffmpeg timed out after {self._timeout_seconds:.0f}s") from exc
            finally:
                if process.returncode is None:
                    with suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()

            if returncode != 0:
                raise EncodeError(f"ffmpeg exited with status {returncode}: {last_line}")
            if not output_path.is_file():
                raise EncodeError("ffmpeg produced no output file")
            data = output_path.read_bytes()

        if on_progress is not None:
            on_progress(100)
        return data

    async def _follow_progress(
        self,
        process: asyncio.subprocess.Process,
        on_progress: Optional[ProgressCallback],
    ) -> str:
        """Consume ffmpeg's stderr, forwarding progress and keeping the last diagnostic line."""

        if process.stderr is None:
            raise EncodeError("ffmpeg stderr is not being captured")
        duration: Optional[float] = None
        last_reported = 0
        last_line = ""
        async for raw in process.stderr:
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            if duration is None:
                duration = parse_duration_seconds(line)
            elapsed = parse_progress_seconds(line)
            if elapsed is not None:
                if on_progress is not None and duration:
                    percent = min(99, math.floor(100 * elapsed / duration + 0.5))
                    if percent > last_reported:
                        last_reported = percent
                        on_progress(percent)
                continue
            if not _PROGRESS_LINE.match(line):
                last_line = line
        return last_line


__all__ = ["FfmpegCompressor", "parse_duration_seconds", "parse_progress_seconds"]
