"""
Status Broadcaster.

Keeps the in-memory status of every stream and fans status changes and
progress samples out to observers through a transport. There is no event
log: an observer that joins late asks for a snapshot instead.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from stream_engine.catalog import AssetCatalog
from stream_engine.log_parser import ProgressSample
from stream_engine.models import Status
from stream_engine.registry import StreamRegistry
from stream_engine.storage import LocalStorage

logger = logging.getLogger(__name__)

STATUS_TOPIC = "streams"


def stream_topic(stream_id: str) -> str:
    """Topic carrying progress samples of one stream."""
    return f"stream:{stream_id}"


class Transport(Protocol):
    """Real-time fan-out to observers."""

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        ...


class StatusBroadcaster:
    """Publishes stream state transitions and progress."""

    def __init__(
        self,
        storage: LocalStorage,
        catalog: AssetCatalog,
        registry: StreamRegistry,
        transport: Optional[Transport] = None,
    ):
        self.storage = storage
        self.catalog = catalog
        self.registry = registry
        self.transport = transport
        self._statuses: Dict[str, Status] = {}

    def status(self, stream_id: str) -> Status:
        """Current status; streams found on disk without a record are ``created``."""
        return self._statuses.get(stream_id, Status.CREATED)

    async def publish(self, event: Dict[str, Any], topic: str = STATUS_TOPIC) -> None:
        """
        Deliver an event to every observer of a topic.

        Delivery is best effort: transport failures are logged and dropped.
        """
        event.setdefault("timestamp", datetime.utcnow().isoformat())
        if self.transport is None:
            return
        try:
            await self.transport.publish(topic, event)
        except Exception as e:
            logger.error(f"Failed to publish {event.get('type')} on {topic}: {e}")

    async def publish_status(
        self,
        stream_id: str,
        status: Status,
        message: Optional[str] = None,
    ) -> None:
        """Record a status transition and announce it."""
        previous = self._statuses.get(stream_id)
        self._statuses[stream_id] = status
        logger.info(
            f"Stream {stream_id} status: {previous.value if previous else 'none'} -> {status.value}"
        )

        data: Dict[str, Any] = {"stream_id": stream_id, "status": status.value}
        if message:
            data["message"] = message
        await self.publish({"type": "stream_status", "data": data})

    async def publish_progress(self, stream_id: str, sample: ProgressSample) -> None:
        """Forward a progress sample; samples are not stored."""
        await self.publish(
            {"type": "stream_progress", "data": {"stream_id": stream_id, **sample.to_dict()}},
            topic=stream_topic(stream_id),
        )

    def summary(self, stream_id: str) -> Dict[str, Any]:
        listing = self.catalog.list_assets(stream_id)
        return {
            "stream_id": stream_id,
            "status": self.status(stream_id).value,
            "video_count": len(listing.video),
            "audio_count": len(listing.audio),
            "is_running": stream_id in self.registry,
        }

    def current_snapshot(self) -> List[Dict[str, Any]]:
        """Point-in-time summary of every known stream."""
        stream_ids = set(self.storage.list_streams()) | set(self._statuses)
        return [self.summary(stream_id) for stream_id in sorted(stream_ids)]
