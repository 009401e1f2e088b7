"""
Pytest configuration and shared fixtures for all tests
"""

import asyncio
import itertools
import os
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from stream_engine.config import EncodingPreset, EngineConfig
from stream_engine.exceptions import LaunchError
from stream_engine.log_parser import ProgressSample
from stream_engine.models import MediaClass
from stream_engine.worker import EventSink, WorkerEvent, WorkerEventKind

_pids = itertools.count(40000)


class FakeWorker:
    """Stands in for FFmpegWorker without spawning ffmpeg.

    Lifecycle events are posted to the sink like the real worker does;
    tests drive exits with ``finish``/``crash``.
    """

    def __init__(
        self,
        stream_id: str,
        generation: int,
        command: List[str],
        sink: EventSink,
        fail_launch: bool = False,
        ignore_terminate: bool = False,
        start_gate: Optional[asyncio.Event] = None,
    ):
        self.stream_id = stream_id
        self.generation = generation
        self.command = command
        self._sink = sink
        self._fail_launch = fail_launch
        self._ignore_terminate = ignore_terminate
        self._start_gate = start_gate
        self.pid: Optional[int] = None
        self.returncode: Optional[int] = None
        self.started = False
        self.terminated = False
        self.killed = False

    @property
    def is_alive(self) -> bool:
        return self.started and self.returncode is None

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    async def start(self) -> None:
        if self._start_gate is not None:
            await self._start_gate.wait()
        if self._fail_launch:
            raise LaunchError(f"Failed to launch {self.command[0]}: [Errno 2] No such file")
        self.started = True
        self.pid = next(_pids)
        self._emit(WorkerEventKind.STARTED, command_line=self.command_line)

    def terminate(self) -> None:
        self.terminated = True
        if not self._ignore_terminate:
            # ffmpeg exits with 255 on SIGTERM
            self.crash(255, "Exiting normally, received signal 15.")

    def kill(self) -> None:
        self.killed = True
        if self.is_alive:
            self.returncode = -9

    async def wait(self) -> Optional[int]:
        return self.returncode

    def resource_usage(self) -> dict:
        return {"cpu_percent": 1.5, "memory_mb": 42.0} if self.is_alive else {}

    def progress(self, frame: int = 30) -> None:
        self._emit(
            WorkerEventKind.PROGRESS,
            progress=ProgressSample(frame=frame, fps=30.0, out_time="00:00:01.000000"),
        )

    def finish(self) -> None:
        if self.is_alive:
            self.returncode = 0
            self._emit(WorkerEventKind.ENDED, returncode=0)

    def crash(self, returncode: int = 1, message: str = "Connection refused") -> None:
        if self.is_alive:
            self.returncode = returncode
            self._emit(WorkerEventKind.ERROR, message=message, returncode=returncode)

    def _emit(self, kind: WorkerEventKind, **fields) -> None:
        self._sink(
            WorkerEvent(stream_id=self.stream_id, generation=self.generation, kind=kind, **fields)
        )


class FakeWorkerFactory:
    """Worker factory recording every worker it creates."""

    def __init__(self):
        self.workers: List[FakeWorker] = []
        self.fail_launch = False
        # Workers that survive SIGTERM
        self.ignore_terminate = False
        # Blocks worker spawn until set
        self.start_gate: Optional[asyncio.Event] = None

    def __call__(self, stream_id, generation, command, sink) -> FakeWorker:
        worker = FakeWorker(
            stream_id,
            generation,
            command,
            sink,
            fail_launch=self.fail_launch,
            ignore_terminate=self.ignore_terminate,
            start_gate=self.start_gate,
        )
        self.workers.append(worker)
        return worker

    @property
    def last(self) -> FakeWorker:
        return self.workers[-1]


@pytest.fixture
def engine_config(tmp_path: Path) -> EngineConfig:
    """Engine configuration rooted in a temporary directory."""
    return EngineConfig(
        uploads_dir=tmp_path / "uploads",
        playlists_dir=tmp_path / "streams",
        encoding_preset=EncodingPreset.PRESET_480P_TEST,
        image_duration=5.0,
        stop_grace_period=0.05,
        restart_delay=0.05,
        ffmpeg_binary="ffmpeg",
    )


@pytest.fixture
def worker_factory() -> FakeWorkerFactory:
    """Factory producing fake transcoder workers."""
    return FakeWorkerFactory()


@pytest.fixture
def add_asset(engine_config: EngineConfig) -> Callable[..., Path]:
    """Create an asset file for a stream.

    Usage: ``add_asset("demo", MediaClass.VIDEO, "clip.mp4", mtime=100)``
    """

    def _add_asset(
        stream_id: str,
        media_class: MediaClass,
        name: str,
        mtime: Optional[float] = None,
        content: bytes = b"\x00" * 16,
    ) -> Path:
        directory = Path(engine_config.uploads_dir) / stream_id / media_class.value
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _add_asset
