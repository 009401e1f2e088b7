"""
Pytest configuration and fixtures for stream engine tests.
"""

from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio

from stream_engine.broadcaster import StatusBroadcaster
from stream_engine.catalog import AssetCatalog
from stream_engine.command_builder import FFmpegCommandBuilder
from stream_engine.config import EngineConfig
from stream_engine.log_parser import FFmpegLogParser
from stream_engine.registry import StreamRegistry
from stream_engine.service import StreamService
from stream_engine.storage import LocalStorage
from stream_engine.supervisor import StreamSupervisor
from stream_engine.topology import TopologyPlanner


class RecordingTransport:
    """Observer transport that keeps every published payload."""

    def __init__(self):
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        self.published.append((topic, payload))

    def statuses(self, stream_id: str) -> List[str]:
        return [
            payload["data"]["status"]
            for topic, payload in self.published
            if payload["type"] == "stream_status" and payload["data"]["stream_id"] == stream_id
        ]

    def of_type(self, event_type: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(topic, payload) for topic, payload in self.published if payload["type"] == event_type]


@pytest.fixture
def storage(engine_config: EngineConfig) -> LocalStorage:
    """Storage with its root directories created."""
    storage = LocalStorage(engine_config.uploads_dir, engine_config.playlists_dir)
    storage.ensure_directories()
    return storage


@pytest.fixture
def catalog(storage: LocalStorage, engine_config: EngineConfig) -> AssetCatalog:
    return AssetCatalog(storage, engine_config.image_duration)


@pytest.fixture
def planner(engine_config: EngineConfig) -> TopologyPlanner:
    return TopologyPlanner(engine_config.get_encoding_config())


@pytest.fixture
def command_builder(engine_config: EngineConfig) -> FFmpegCommandBuilder:
    """Create a command builder for testing."""
    return FFmpegCommandBuilder(engine_config)


@pytest.fixture
def log_parser() -> FFmpegLogParser:
    """Create a log parser for testing."""
    return FFmpegLogParser()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def registry() -> StreamRegistry:
    return StreamRegistry()


@pytest.fixture
def broadcaster(storage, catalog, registry, transport) -> StatusBroadcaster:
    return StatusBroadcaster(storage, catalog, registry, transport)


@pytest_asyncio.fixture
async def supervisor(engine_config, storage, catalog, registry, broadcaster, worker_factory):
    """Running supervisor using fake workers; cleaned up after the test."""
    supervisor = StreamSupervisor(
        config=engine_config,
        storage=storage,
        catalog=catalog,
        registry=registry,
        broadcaster=broadcaster,
        worker_factory=worker_factory,
    )
    await supervisor.open()
    yield supervisor
    await supervisor.cleanup()


@pytest_asyncio.fixture
async def service(supervisor) -> StreamService:
    return StreamService(supervisor=supervisor)


@pytest.fixture
def sample_progress_output() -> List[str]:
    """One block of ``-progress pipe:1`` output."""
    return [
        "frame=300",
        "fps=30.00",
        "stream_0_0_q=28.0",
        "bitrate=1258.3kbits/s",
        "total_size=1572864",
        "out_time_us=10000000",
        "out_time=00:00:10.000000",
        "dup_frames=0",
        "drop_frames=0",
        "speed=1.00x",
        "progress=continue",
    ]


@pytest.fixture
def sample_error_lines() -> list:
    """Sample FFmpeg error lines for testing."""
    return [
        "[tcp @ 0x55d0c8e0] Connection refused",
        "[fatal] No such file or directory: /path/to/missing.mp4",
        "[flv @ 0x55d0c8e0] RTMP send error: stream closed",
        "[error] Error while encoding frame",
        "[concat @ 0x55d0c8e0] Impossible to open 'clip.mp4'",
    ]
