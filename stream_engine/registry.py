"""
Registry of running transcoder handles.

The registry is the only place handles are stored. It enforces at most one
handle per stream id and hands out the generation numbers that tag each run.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from stream_engine.exceptions import PreconditionError
from stream_engine.models import MediaClass
from stream_engine.topology import Topology
from stream_engine.worker import FFmpegWorker

logger = logging.getLogger(__name__)


class HandleState(str, Enum):
    """Supervisor-side state of a transcoder run."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class TranscoderHandle:
    """Exclusive reference to one transcoder run of a stream."""

    stream_id: str
    generation: int
    topology: Topology
    manifests: Dict[MediaClass, Path] = field(default_factory=dict)
    state: HandleState = HandleState.STARTING
    worker: Optional[FFmpegWorker] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now() - self.created_at).total_seconds()


class StreamRegistry:
    """Stream id to handle table."""

    def __init__(self):
        self._handles: Dict[str, TranscoderHandle] = {}
        self._generations = itertools.count(1)

    def next_generation(self) -> int:
        return next(self._generations)

    def reserve(self, handle: TranscoderHandle) -> TranscoderHandle:
        """
        Insert a handle for its stream.

        Raises:
            PreconditionError: If the stream already has a handle
        """
        if handle.stream_id in self._handles:
            raise PreconditionError("Stream is already running")
        self._handles[handle.stream_id] = handle
        logger.debug(f"Registered {handle.stream_id} generation {handle.generation}")
        return handle

    def get(self, stream_id: str) -> Optional[TranscoderHandle]:
        return self._handles.get(stream_id)

    def current(self, stream_id: str, generation: int) -> Optional[TranscoderHandle]:
        """Return the handle only if it belongs to the given generation."""
        handle = self._handles.get(stream_id)
        if handle is None or handle.generation != generation:
            return None
        return handle

    def release(self, stream_id: str, generation: Optional[int] = None) -> Optional[TranscoderHandle]:
        """
        Remove and return a stream's handle.

        When a generation is given, only a handle of that generation is removed.
        """
        handle = self._handles.get(stream_id)
        if handle is None:
            return None
        if generation is not None and handle.generation != generation:
            return None
        del self._handles[stream_id]
        logger.debug(f"Released {stream_id} generation {handle.generation}")
        return handle

    def stream_ids(self) -> List[str]:
        return list(self._handles)

    def __contains__(self, stream_id: str) -> bool:
        return stream_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[TranscoderHandle]:
        return iter(list(self._handles.values()))
