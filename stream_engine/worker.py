"""
Transcoder worker.

Wraps one ffmpeg process and reports its lifecycle as WorkerEvents through
an event sink. The worker never touches supervisor state; it only posts
events tagged with the stream id and generation it was created for.
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

import psutil

from stream_engine.exceptions import LaunchError, StreamEngineError, TranscoderExitError
from stream_engine.log_parser import FFmpegLogParser, ProgressSample

logger = logging.getLogger(__name__)


class WorkerEventKind(str, Enum):
    """Lifecycle signals emitted by a worker."""

    STARTED = "started"
    PROGRESS = "progress"
    ERROR = "error"
    ENDED = "ended"


@dataclass
class WorkerEvent:
    """A lifecycle signal from one worker run."""

    stream_id: str
    generation: int
    kind: WorkerEventKind
    command_line: Optional[str] = None
    progress: Optional[ProgressSample] = None
    message: Optional[str] = None
    returncode: Optional[int] = None
    error: Optional[StreamEngineError] = None


EventSink = Callable[[WorkerEvent], None]


class FFmpegWorker:
    """
    One ffmpeg process pushing a stream.

    ``start`` spawns the process and returns as soon as it exists; exit and
    progress are observed by a background watch task.
    """

    def __init__(
        self,
        stream_id: str,
        generation: int,
        command: List[str],
        sink: EventSink,
    ):
        """
        Initialize worker.

        Args:
            stream_id: Stream this worker serves
            generation: Run generation of the owning handle
            command: Full ffmpeg argument list
            sink: Callable receiving lifecycle events
        """
        self.stream_id = stream_id
        self.generation = generation
        self.command = command
        self._sink = sink
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._ps_process: Optional[psutil.Process] = None
        self.log_parser = FFmpegLogParser()
        self.started_at: Optional[datetime] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    async def start(self) -> None:
        """
        Spawn the ffmpeg process.

        Raises:
            LaunchError: If the process could not be created
        """
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchError(f"Failed to launch {self.command[0]}: {e}") from e

        self.started_at = datetime.now()
        self._ps_process = self._attach_psutil(self._process.pid)
        logger.info(f"Transcoder for {self.stream_id} started (PID: {self._process.pid})")
        self._emit(WorkerEventKind.STARTED, command_line=self.command_line)
        self._watch_task = asyncio.create_task(self._watch())

    def terminate(self) -> None:
        """Request graceful termination (SIGTERM)."""
        if self.is_alive:
            logger.info(f"Sending SIGTERM to transcoder {self.pid} ({self.stream_id})")
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def kill(self) -> None:
        """Force termination (SIGKILL)."""
        if self.is_alive:
            logger.warning(f"Sending SIGKILL to transcoder {self.pid} ({self.stream_id})")
            try:
                self._process.kill()
            except ProcessLookupError:
                pass

    async def wait(self) -> Optional[int]:
        """Wait until the watch task has seen the process exit."""
        if self._watch_task is not None:
            await self._watch_task
        return self._process.returncode if self._process else None

    def resource_usage(self) -> dict:
        """CPU and memory of the ffmpeg process."""
        if not self.is_alive or self._ps_process is None:
            return {}
        try:
            # CPU is measured since the previous call on the same Process
            return {
                "cpu_percent": self._ps_process.cpu_percent(interval=None),
                "memory_mb": round(self._ps_process.memory_info().rss / 1024 / 1024, 1),
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return {}

    @staticmethod
    def _attach_psutil(pid: int) -> Optional[psutil.Process]:
        try:
            proc = psutil.Process(pid)
            # First reading only sets the baseline
            proc.cpu_percent(interval=None)
            return proc
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

    async def _watch(self) -> None:
        process = self._process
        try:
            await asyncio.gather(
                self._read_progress(process.stdout),
                self._read_stderr(process.stderr),
            )
            returncode = await process.wait()
        except Exception as e:
            logger.error(f"Error watching transcoder {self.pid}: {e}", exc_info=True)
            self._emit(WorkerEventKind.ERROR, message=str(e))
            return

        if returncode == 0:
            logger.info(f"Transcoder for {self.stream_id} ended")
            self._emit(WorkerEventKind.ENDED, returncode=returncode)
        else:
            error = TranscoderExitError(
                self.log_parser.last_error_message() or f"ffmpeg exited with code {returncode}",
                returncode=returncode,
            )
            logger.error(f"Transcoder for {self.stream_id} failed: {error}")
            self._emit(
                WorkerEventKind.ERROR,
                message=str(error),
                returncode=returncode,
                error=error,
            )

    async def _read_progress(self, stream: Optional[asyncio.StreamReader]) -> None:
        if stream is None:
            return
        async for raw in stream:
            sample = self.log_parser.parse_progress_line(raw.decode("utf-8", errors="replace"))
            if sample is not None:
                self._emit(WorkerEventKind.PROGRESS, progress=sample)

    async def _read_stderr(self, stream: Optional[asyncio.StreamReader]) -> None:
        if stream is None:
            return
        async for raw in stream:
            error = self.log_parser.parse_line(raw.decode("utf-8", errors="replace"))
            if error:
                logger.warning(f"FFmpeg {error.level.value} ({self.stream_id}): {error.message}")

    def _emit(self, kind: WorkerEventKind, **fields) -> None:
        self._sink(
            WorkerEvent(
                stream_id=self.stream_id,
                generation=self.generation,
                kind=kind,
                **fields,
            )
        )


WorkerFactory = Callable[[str, int, List[str], EventSink], FFmpegWorker]
