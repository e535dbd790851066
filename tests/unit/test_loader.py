import asyncio

import pytest

from audio_compressor.compressors.loader import (
    ConfiguredBinarySource,
    FfmpegLoader,
    LoaderState,
    PathLookupSource,
    SearchDirectorySource,
    ToolSource,
)
from audio_compressor.errors import LoaderFailure
from audio_compressor.settings import FfmpegSettings


class GatedSource(ToolSource):
    def __init__(self, name: str, gate: asyncio.Event, *, path: str = "/opt/ffmpeg/bin/ffmpeg", error: Exception | None = None) -> None:
        self.name = name
        self.calls = 0
        self._gate = gate
        self._path = path
        self._error = error

    async def locate(self) -> str:
        self.calls += 1
        await self._gate.wait()
        if self._error is not None:
            raise self._error
        return self._path


async def _fake_probe(path: str) -> str:
    return f"ffmpeg version test ({path})"


def _open_gate() -> asyncio.Event:
    gate = asyncio.Event()
    gate.set()
    return gate


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_load_attempt():
    gate = asyncio.Event()
    source = GatedSource("cdn-a", gate)
    loader = FfmpegLoader([source], version_probe=_fake_probe)

    waiters = [asyncio.create_task(loader.ensure_loaded()) for _ in range(8)]
    await asyncio.sleep(0)
    assert loader.state is LoaderState.LOADING

    gate.set()
    tools = await asyncio.gather(*waiters)

    assert source.calls == 1
    assert loader.state is LoaderState.LOADED
    assert all(tool is tools[0] for tool in tools)
    assert tools[0].path == "/opt/ffmpeg/bin/ffmpeg"


@pytest.mark.asyncio
async def test_loaded_tool_is_reused_without_reloading():
    source = GatedSource("cdn-a", _open_gate())
    loader = FfmpegLoader([source], version_probe=_fake_probe)

    first = await loader.ensure_loaded()
    second = await loader.ensure_loaded()

    assert first is second
    assert source.calls == 1


@pytest.mark.asyncio
async def test_falls_through_to_next_source_on_failure():
    gate = _open_gate()
    broken = GatedSource("cdn-a", gate, error=FileNotFoundError("missing"))
    working = GatedSource("cdn-b", gate, path="/usr/local/bin/ffmpeg")
    loader = FfmpegLoader([broken, working], version_probe=_fake_probe)

    tool = await loader.ensure_loaded()

    assert tool.path == "/usr/local/bin/ffmpeg"
    assert broken.calls == 1
    assert working.calls == 1


@pytest.mark.asyncio
async def test_failed_probe_counts_as_source_failure():
    calls: list[str] = []

    async def probe(path: str) -> str:
        calls.append(path)
        if path == "/bad/ffmpeg":
            raise RuntimeError("exit status 1")
        return "ffmpeg version 6.1"

    gate = _open_gate()
    loader = FfmpegLoader(
        [GatedSource("a", gate, path="/bad/ffmpeg"), GatedSource("b", gate, path="/good/ffmpeg")],
        version_probe=probe,
    )

    tool = await loader.ensure_loaded()

    assert calls == ["/bad/ffmpeg", "/good/ffmpeg"]
    assert tool.version == "ffmpeg version 6.1"


@pytest.mark.asyncio
async def test_all_callers_see_the_same_failure_and_it_sticks():
    gate = asyncio.Event()
    sources = [
        GatedSource("cdn-a", gate, error=ConnectionError("a down")),
        GatedSource("cdn-b", gate, error=ConnectionError("b down")),
    ]
    loader = FfmpegLoader(sources, version_probe=_fake_probe)

    waiters = [asyncio.create_task(loader.ensure_loaded()) for _ in range(4)]
    await asyncio.sleep(0)
    gate.set()
    outcomes = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(outcome, LoaderFailure) for outcome in outcomes)
    assert "b down" in str(outcomes[0])
    assert loader.state is LoaderState.FAILED_PERMANENTLY
    assert [source.calls for source in sources] == [1, 1]

    with pytest.raises(LoaderFailure, match="failed to load previously"):
        await loader.ensure_loaded()
    assert [source.calls for source in sources] == [1, 1]


@pytest.mark.asyncio
async def test_reset_allows_a_fresh_load():
    source = GatedSource("cdn-a", _open_gate(), error=ConnectionError("offline"))
    loader = FfmpegLoader([source], version_probe=_fake_probe)
    with pytest.raises(LoaderFailure):
        await loader.ensure_loaded()

    loader.reset()

    assert loader.state is LoaderState.UNLOADED
    source._error = None
    tool = await loader.ensure_loaded()
    assert tool.path == "/opt/ffmpeg/bin/ffmpeg"
    assert source.calls == 2


@pytest.mark.asyncio
async def test_loader_without_sources_fails_permanently():
    loader = FfmpegLoader([], version_probe=_fake_probe)

    with pytest.raises(LoaderFailure, match="no sources configured"):
        await loader.ensure_loaded()
    assert loader.failed


@pytest.mark.asyncio
async def test_configured_source_requires_executable_file(tmp_path):
    binary = tmp_path / "ffmpeg"
    binary.write_text("#!/bin/sh\n")

    with pytest.raises(PermissionError):
        await ConfiguredBinarySource(str(binary)).locate()

    binary.chmod(0o755)
    assert await ConfiguredBinarySource(str(binary)).locate() == str(binary)

    with pytest.raises(FileNotFoundError):
        await ConfiguredBinarySource(str(tmp_path / "missing")).locate()


@pytest.mark.asyncio
async def test_search_directory_source_finds_binary(tmp_path):
    binary = tmp_path / "ffmpeg"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(0o755)

    assert await SearchDirectorySource([str(tmp_path)]).locate() == str(binary)

    with pytest.raises(FileNotFoundError):
        await SearchDirectorySource([str(tmp_path)], executable="not-ffmpeg").locate()


@pytest.mark.asyncio
async def test_path_lookup_source_reports_missing_binary(monkeypatch):
    monkeypatch.setattr("audio_compressor.compressors.loader.shutil.which", lambda name: None)

    with pytest.raises(FileNotFoundError):
        await PathLookupSource().locate()


def test_from_settings_orders_sources():
    cfg = FfmpegSettings(
        binary="/opt/ffmpeg",
        search_paths=("/srv/tools",),
        sample_rate=24000,
        bitrate_kbps=64,
        timeout_seconds=30.0,
        scratch_dir=None,
    )

    loader = FfmpegLoader.from_settings(cfg)

    assert [source.name for source in loader._sources] == ["configured", "path", "search-dirs"]
    assert loader.state is LoaderState.UNLOADED
