"""Stream control service logic."""

import logging
from typing import Dict, List, Optional

from stream_engine.config import EngineConfig
from stream_engine.exceptions import PreconditionError, StreamNotFoundError
from stream_engine.models import MediaClass, Status
from stream_engine.supervisor import StreamSupervisor
from stream_engine.validators import require_stream_id

logger = logging.getLogger(__name__)


class StreamService:
    """Operator-facing stream operations returning success/failure results."""

    def __init__(
        self,
        supervisor: Optional[StreamSupervisor] = None,
        config: Optional[EngineConfig] = None,
    ):
        """Initialize stream service.

        Args:
            supervisor: Stream supervisor (created from config if not provided).
            config: Engine configuration used when creating the supervisor.
        """
        self.supervisor = supervisor or StreamSupervisor(config=config)
        self.storage = self.supervisor.storage
        self.catalog = self.supervisor.catalog
        self.broadcaster = self.supervisor.broadcaster

    async def open(self) -> None:
        self.storage.ensure_directories()
        await self.supervisor.open()

    async def close(self) -> None:
        await self.supervisor.cleanup()

    async def register_stream(self, stream_id: str) -> dict:
        """Create storage for a new stream.

        Args:
            stream_id: Stream identifier.

        Returns:
            dict: Registration result.
        """
        try:
            require_stream_id(stream_id)
            self.storage.create_stream(stream_id)
        except PreconditionError as e:
            return {"success": False, "message": str(e)}
        except FileExistsError:
            return {"success": False, "message": "Stream ID already exists"}

        await self.broadcaster.publish_status(stream_id, Status.CREATED)
        return {"success": True, "message": "Stream created", "stream_id": stream_id}

    async def start(self, stream_id: str, destination_url: str, credential: str) -> dict:
        """Start pushing a stream to an RTMP destination.

        Returns:
            dict: Start result.
        """
        try:
            handle = await self.supervisor.start(stream_id, destination_url, credential)
        except PreconditionError as e:
            logger.info(f"Start of {stream_id} rejected: {e}")
            return {"success": False, "message": str(e)}

        return {
            "success": True,
            "message": "Stream started successfully",
            "topology": handle.topology.kind.value,
        }

    async def stop(self, stream_id: str) -> dict:
        """Stop a stream; stopping an idle stream succeeds.

        Returns:
            dict: Stop result.
        """
        try:
            stopped = await self.supervisor.stop(stream_id)
        except PreconditionError as e:
            return {"success": False, "message": str(e)}

        if not stopped:
            return {"success": True, "message": "Stream is already stopped"}
        return {"success": True, "message": "Stream stopped successfully"}

    async def restart(self, stream_id: str, destination_url: str, credential: str) -> dict:
        """Stop a stream and start it again after the settle delay.

        Returns:
            dict: Restart result.
        """
        try:
            await self.supervisor.restart(stream_id, destination_url, credential)
        except PreconditionError as e:
            return {"success": False, "message": str(e)}

        return {"success": True, "message": "Stream restarted successfully"}

    def status(self, stream_id: str) -> Status:
        """Current status of a registered stream.

        Raises:
            StreamNotFoundError: If the stream has no storage.
        """
        require_stream_id(stream_id)
        if not self.storage.stream_exists(stream_id):
            raise StreamNotFoundError(stream_id)
        return self.broadcaster.status(stream_id)

    def list_streams(self) -> List[Dict]:
        """Summaries of every stream."""
        return self.broadcaster.current_snapshot()

    def stream_details(self, stream_id: str) -> Dict:
        """Status, assets and transcoder details of one stream.

        Raises:
            StreamNotFoundError: If the stream has no storage.
        """
        self.status(stream_id)
        details = self.supervisor.get_status(stream_id)
        listing = self.catalog.list_assets(stream_id)
        details["assets"] = {
            "video": [asset.to_dict() for asset in listing.video],
            "audio": [asset.to_dict() for asset in listing.audio],
        }
        return details

    def delete_asset(self, stream_id: str, media_class: MediaClass, filename: str) -> dict:
        """Delete one asset file.

        Returns:
            dict: Deletion result.
        """
        try:
            require_stream_id(stream_id)
            removed = self.catalog.remove_asset(stream_id, media_class, filename)
        except PreconditionError as e:
            return {"success": False, "message": str(e)}
        except OSError as e:
            logger.error(f"Error deleting {filename} from {stream_id}: {e}")
            return {"success": False, "message": "Error deleting file"}

        if not removed:
            return {"success": False, "message": "File not found"}
        return {"success": True, "message": "File deleted successfully"}
