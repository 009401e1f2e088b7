"""
Stream Engine

Pushes a stream's uploaded video, image and audio assets to an RTMP endpoint
as one looping live feed, with one supervised ffmpeg process per stream.

Version: 1.0.0
"""

__version__ = "1.0.0"

from stream_engine.broadcaster import StatusBroadcaster
from stream_engine.catalog import AssetCatalog
from stream_engine.config import EncodingPreset, EngineConfig
from stream_engine.exceptions import (
    LaunchError,
    PreconditionError,
    StreamEngineError,
    StreamNotFoundError,
)
from stream_engine.models import Asset, MediaClass, MediaKind, Status
from stream_engine.service import StreamService
from stream_engine.supervisor import StreamSupervisor
from stream_engine.topology import TopologyKind, TopologyPlanner

__all__ = [
    "Asset",
    "AssetCatalog",
    "EncodingPreset",
    "EngineConfig",
    "LaunchError",
    "MediaClass",
    "MediaKind",
    "PreconditionError",
    "Status",
    "StatusBroadcaster",
    "StreamEngineError",
    "StreamNotFoundError",
    "StreamService",
    "StreamSupervisor",
    "TopologyKind",
    "TopologyPlanner",
]
