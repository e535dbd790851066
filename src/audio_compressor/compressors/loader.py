from __future__ import annotations

"""Single-flight loader for the external ffmpeg transcoder."""

import abc
import asyncio
import enum
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..errors import LoaderFailure
from ..settings import FfmpegSettings

logger = logging.getLogger(__name__)

VERSION_PROBE_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class FfmpegTool:
    path: str
    version: str


class LoaderState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED_PERMANENTLY = "failed_permanently"


class ToolSource(abc.ABC):
    """One place the ffmpeg binary may be retrieved from."""

    name: str

    @abc.abstractmethod
    async def locate(self) -> str:
        """Return a path to an ffmpeg executable or raise."""
        raise NotImplementedError


class ConfiguredBinarySource(ToolSource):
    name = "configured"

    def __init__(self, path: str) -> None:
        self._path = path

    async def locate(self) -> str:
        if not os.path.isfile(self._path):
            raise FileNotFoundError(f"configured ffmpeg binary not found: {self._path}")
        if not os.access(self._path, os.X_OK):
            raise PermissionError(f"configured ffmpeg binary is not executable: {self._path}")
        return self._path


class PathLookupSource(ToolSource):
    name = "path"

    def __init__(self, executable: str = "ffmpeg") -> None:
        self._executable = executable

    async def locate(self) -> str:
        found = shutil.which(self._executable)
        if not found:
            raise FileNotFoundError(f"{self._executable} not found on PATH")
        return found


class SearchDirectorySource(ToolSource):
    name = "search-dirs"

    def __init__(self, directories: Iterable[str], executable: str = "ffmpeg") -> None:
        self._directories = tuple(directories)
        self._executable = executable

    async def locate(self) -> str:
        found = shutil.which(self._executable, path=os.pathsep.join(self._directories))
        if not found:
            raise FileNotFoundError(f"{self._executable} not found in {list(self._directories)}")
        return found


async def probe_version(path: str, *, timeout: float = VERSION_PROBE_TIMEOUT_SECONDS) -> str:
    process = await asyncio.create_subprocess_exec(
        path,
        "-version",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    if process.returncode != 0:
        raise RuntimeError(f"{path} -version exited with status {process.returncode}")
    first_line = stdout.decode("utf-8", errors="replace").splitlines()
    return first_line[0].strip() if first_line else "unknown"


class FfmpegLoader:
    """Loads ffmpeg once per process and remembers a total failure.

    States move Unloaded -> Loading -> Loaded or FailedPermanently. Callers that
    arrive while a load is in flight await the same task. Once every source
    has failed, later calls raise immediately until ``reset`` is called.
    """

    def __init__(self, sources: Sequence[ToolSource], *, version_probe=probe_version) -> None:
        self._sources = list(sources)
        self._version_probe = version_probe
        self._state = LoaderState.UNLOADED
        self._tool: Optional[FfmpegTool] = None
        self._pending: Optional[asyncio.Future[FfmpegTool]] = None
        self._failure: Optional[str] = None

    @classmethod
    def from_settings(cls, cfg: FfmpegSettings) -> "FfmpegLoader":
        sources: list[ToolSource] = []
        if cfg.binary:
            sources.append(ConfiguredBinarySource(cfg.binary))
        sources.append(PathLookupSource())
        if cfg.search_paths:
            sources.append(SearchDirectorySource(cfg.search_paths))
        return cls(sources)

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def tool(self) -> Optional[FfmpegTool]:
        return self._tool

    @property
    def failed(self) -> bool:
        return self._state is LoaderState.FAILED_PERMANENTLY

    async def ensure_loaded(self) -> FfmpegTool:
        if self._state is LoaderState.FAILED_PERMANENTLY:
            raise LoaderFailure(
                f"ffmpeg failed to load previously; restart the service to try again ({self._failure})"
            )
        if self._tool is not None:
            return self._tool
        if self._pending is None:
            self._state = LoaderState.LOADING
            self._pending = asyncio.ensure_future(self._load_from_sources())
        return await asyncio.shield(self._pending)

    async def _load_from_sources(self) -> FfmpegTool:
        last_error: Optional[BaseException] = None
        for source in self._sources:
            try:
                logger.info("ffmpeg.load.attempt", extra={"source": source.name})
                path = await source.locate()
                version = await self._version_probe(path)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "ffmpeg.load.source_failed",
                    extra={"source": source.name, "error": repr(exc)},
                )
                continue

            self._tool = FfmpegTool(path=path, version=version)
            self._state = LoaderState.LOADED
            logger.info("ffmpeg.load.complete", extra={"source": source.name, "path": path, "version": version})
            return self._tool

        self._state = LoaderState.FAILED_PERMANENTLY
        self._failure = str(last_error) if last_error is not None else "no sources configured"
        logger.error("ffmpeg.load.exhausted", extra={"sources": [s.name for s in self._sources]})
        raise LoaderFailure(f"Failed to load ffmpeg. Original error: {self._failure}")

    def reset(self) -> None:
        """Return to the unloaded state; intended for tests."""

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._state = LoaderState.UNLOADED
        self._tool = None
        self._pending = None
        self._failure = None


__all__ = [
    "ConfiguredBinarySource",
    "FfmpegLoader",
    "FfmpegTool",
    "LoaderState",
    "PathLookupSource",
    "SearchDirectorySource",
    "ToolSource",
    "probe_version",
]
