"""
Stream supervisor.

Owns the registry of running transcoders and applies every state change on
the event loop. Workers report their lifecycle through an event queue that
the dispatcher task consumes; events from a run that is no longer the
registered one are dropped.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Set

from stream_engine.broadcaster import StatusBroadcaster
from stream_engine.catalog import AssetCatalog
from stream_engine.command_builder import FFmpegCommandBuilder, compose_destination
from stream_engine.config import EngineConfig
from stream_engine.exceptions import LaunchError, PreconditionError, ResourceCleanupError
from stream_engine.manifest import build_manifest
from stream_engine.models import AssetListing, Status
from stream_engine.registry import HandleState, StreamRegistry, TranscoderHandle
from stream_engine.storage import LocalStorage
from stream_engine.topology import TopologyPlanner
from stream_engine.validators import require_destination, require_stream_id
from stream_engine.worker import FFmpegWorker, WorkerEvent, WorkerEventKind, WorkerFactory

logger = logging.getLogger(__name__)


class StreamSupervisor:
    """
    Starts, stops and restarts one transcoder per stream.

    Features:
    - At most one transcoder per stream id
    - Two-phase stop (SIGTERM, SIGKILL after a grace period)
    - Delayed restart that gives the RTMP server time to drop the old publisher
    - Generation-tagged lifecycle events, so late signals of a stopped run
      never touch a newer one
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[LocalStorage] = None,
        catalog: Optional[AssetCatalog] = None,
        registry: Optional[StreamRegistry] = None,
        broadcaster: Optional[StatusBroadcaster] = None,
        command_builder: Optional[FFmpegCommandBuilder] = None,
        worker_factory: Optional[WorkerFactory] = None,
    ):
        """
        Initialize supervisor.

        Args:
            config: Engine configuration (creates default if not provided)
            storage: Storage backend (built from config if not provided)
            catalog: Asset catalog (built from storage if not provided)
            registry: Handle registry
            broadcaster: Status broadcaster (no transport if not provided)
            command_builder: FFmpeg command builder
            worker_factory: Callable creating workers, ``FFmpegWorker`` by default
        """
        if config is None:
            from stream_engine.config import get_config

            config = get_config()

        self.config = config
        self.storage = storage or LocalStorage(config.uploads_dir, config.playlists_dir)
        self.catalog = catalog or AssetCatalog(self.storage, config.image_duration)
        self.registry = registry or StreamRegistry()
        self.broadcaster = broadcaster or StatusBroadcaster(
            self.storage, self.catalog, self.registry
        )
        self.command_builder = command_builder or FFmpegCommandBuilder(config)
        self.planner = TopologyPlanner(config.get_encoding_config())
        self.worker_factory: WorkerFactory = worker_factory or FFmpegWorker

        self._events: asyncio.Queue = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task] = None
        self._pending_restarts: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    async def open(self) -> None:
        """Start consuming worker events."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch())
            logger.info("Stream supervisor started")

    def post_event(self, event: WorkerEvent) -> None:
        """Event sink handed to workers."""
        self._events.put_nowait(event)

    async def wait_idle(self) -> None:
        """Wait until every posted event has been applied."""
        await self._events.join()

    async def start(
        self,
        stream_id: str,
        destination_url: str,
        credential: str,
    ) -> TranscoderHandle:
        """
        Start streaming a stream's assets to an RTMP destination.

        Launch failures after this returns are reported through the stream's
        status, not raised.

        Args:
            stream_id: Stream identifier
            destination_url: RTMP base URL
            credential: Stream key appended to the base URL

        Returns:
            The registered handle

        Raises:
            PreconditionError: Malformed id or destination, stream already
                running, or no usable assets
        """
        require_stream_id(stream_id)
        require_destination(destination_url, credential)

        if stream_id in self.registry:
            raise PreconditionError("Stream is already running")

        listing = self.catalog.list_assets(stream_id)
        if listing.is_empty():
            raise PreconditionError("No media files found for this stream")

        topology = self.planner.plan(
            has_video=bool(listing.video),
            has_audio=bool(listing.audio),
            has_still_images=listing.has_still_images,
        )

        # No await between the membership check above and this insert
        handle = self.registry.reserve(
            TranscoderHandle(
                stream_id=stream_id,
                generation=self.registry.next_generation(),
                topology=topology,
            )
        )
        logger.info(
            f"Starting stream {stream_id} (generation {handle.generation}, "
            f"topology {topology.kind.value}, {len(listing.video)} video, "
            f"{len(listing.audio)} audio)"
        )

        try:
            self._write_manifests(handle, listing)
            command = self.command_builder.build_command(
                topology,
                handle.manifests,
                compose_destination(destination_url, credential),
            )
            handle.worker = self.worker_factory(
                stream_id, handle.generation, command, self.post_event
            )
        except (OSError, ValueError) as e:
            self._fail_launch(handle, f"Failed to prepare transcoder: {e}")
            return handle

        try:
            await handle.worker.start()
        except LaunchError as e:
            self._fail_launch(handle, str(e), error=e)
            return handle

        if self.registry.current(stream_id, handle.generation) is None:
            # Stopped while the process was being spawned
            logger.info(f"Stream {stream_id} was stopped during launch, terminating")
            self._terminate(handle)

        return handle

    async def stop(self, stream_id: str) -> bool:
        """
        Stop a stream without waiting for the transcoder to exit.

        Returns:
            True if a running transcoder was stopped, False if there was none
        """
        require_stream_id(stream_id)
        self._cancel_pending_restart(stream_id)

        handle = self.registry.release(stream_id)
        if handle is None:
            logger.info(f"No active transcoder to stop for {stream_id}")
            return False

        logger.info(f"Stopping stream {stream_id} (generation {handle.generation})")
        self._terminate(handle)
        self._cleanup_manifests(handle)
        await self.broadcaster.publish_status(stream_id, Status.STOPPED)
        return True

    async def restart(self, stream_id: str, destination_url: str, credential: str) -> None:
        """
        Stop a stream, then start it again after the restart delay.

        If the stream has no assets left when the delay expires it stays
        stopped.
        """
        require_stream_id(stream_id)
        require_destination(destination_url, credential)

        await self.stop(stream_id)

        task = asyncio.create_task(
            self._delayed_start(stream_id, destination_url, credential)
        )
        self._pending_restarts[stream_id] = task
        task.add_done_callback(lambda t: self._forget_restart(stream_id, t))

    def get_status(self, stream_id: str) -> Dict:
        """
        Detailed status of one stream.

        Returns:
            Dictionary with status, asset counts and transcoder information
        """
        status = self.broadcaster.summary(stream_id)
        handle = self.registry.get(stream_id)
        if handle is None:
            status.update({"pid": None, "generation": None, "topology": None, "uptime_seconds": 0})
            return status

        worker = handle.worker
        status.update(
            {
                "state": handle.state.value,
                "pid": worker.pid if worker else None,
                "generation": handle.generation,
                "topology": handle.topology.kind.value,
                "uptime_seconds": handle.uptime_seconds,
            }
        )
        if worker is not None:
            status["resources"] = worker.resource_usage()
        return status

    async def cleanup(self) -> None:
        """Stop every stream and the dispatcher."""
        logger.info("Cleaning up stream supervisor")

        for task in list(self._pending_restarts.values()):
            task.cancel()

        workers = [handle.worker for handle in self.registry if handle.worker is not None]
        for stream_id in self.registry.stream_ids():
            await self.stop(stream_id)

        if workers:
            waiters = [asyncio.create_task(worker.wait()) for worker in workers]
            await asyncio.wait(waiters, timeout=self.config.stop_grace_period)
            for worker in workers:
                worker.kill()
            for waiter in waiters:
                waiter.cancel()

        for task in list(self._background):
            task.cancel()

        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

        logger.info("Cleanup complete")

    async def _dispatch(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._apply(event)
            except Exception as e:
                logger.error(f"Error applying {event.kind.value} event for {event.stream_id}: {e}", exc_info=True)
            finally:
                self._events.task_done()

    async def _apply(self, event: WorkerEvent) -> None:
        handle = self.registry.current(event.stream_id, event.generation)
        if handle is None:
            logger.debug(
                f"Ignoring {event.kind.value} from stale run {event.generation} of {event.stream_id}"
            )
            return

        stream_id = event.stream_id

        if event.kind is WorkerEventKind.STARTED:
            handle.state = HandleState.RUNNING
            logger.info(f"Stream {stream_id} started: {event.command_line}")
            await self.broadcaster.publish_status(stream_id, Status.STREAMING)

        elif event.kind is WorkerEventKind.PROGRESS:
            await self.broadcaster.publish_progress(stream_id, event.progress)

        elif event.kind is WorkerEventKind.ERROR:
            self.registry.release(stream_id, event.generation)
            self._cleanup_manifests(handle)
            error_name = type(event.error).__name__ if event.error else "error"
            logger.error(f"Stream {stream_id} {error_name}: {event.message}")
            await self.broadcaster.publish_status(stream_id, Status.ERROR, event.message)

        elif event.kind is WorkerEventKind.ENDED:
            self.registry.release(stream_id, event.generation)
            self._cleanup_manifests(handle)
            logger.info(f"Stream {stream_id} ended")
            await self.broadcaster.publish_status(stream_id, Status.STOPPED)

    def _write_manifests(self, handle: TranscoderHandle, listing: AssetListing) -> None:
        # Paths are recorded before the write; the error path removes
        # whichever of them exist
        for media_class in handle.topology.manifest_inputs:
            content = build_manifest(listing.for_class(media_class), media_class)
            if not content:
                # An empty concat list is fatal to ffmpeg
                continue
            path = self.storage.playlist_path(handle.stream_id, media_class)
            handle.manifests[media_class] = path
            self.storage.write_file(path, content)

    def _remove_manifest(self, path: Path) -> bool:
        try:
            return self.storage.remove_file(path)
        except OSError as e:
            raise ResourceCleanupError(f"Could not remove manifest {path}: {e}") from e

    def _cleanup_manifests(self, handle: TranscoderHandle) -> None:
        for media_class, path in handle.manifests.items():
            try:
                if self._remove_manifest(path):
                    logger.debug(f"Removed {media_class.value} manifest {path}")
            except ResourceCleanupError as e:
                logger.warning(str(e), exc_info=True)

    def _fail_launch(
        self,
        handle: TranscoderHandle,
        message: str,
        error: Optional[LaunchError] = None,
    ) -> None:
        logger.error(f"Failed to launch transcoder for {handle.stream_id}: {message}")
        self.post_event(
            WorkerEvent(
                stream_id=handle.stream_id,
                generation=handle.generation,
                kind=WorkerEventKind.ERROR,
                message=message,
                error=error or LaunchError(message),
            )
        )

    def _terminate(self, handle: TranscoderHandle) -> None:
        handle.state = HandleState.STOPPING
        worker = handle.worker
        if worker is None:
            return
        worker.terminate()
        self._spawn(self._escalate(worker))

    async def _escalate(self, worker: FFmpegWorker) -> None:
        await asyncio.sleep(self.config.stop_grace_period)
        if worker.is_alive:
            logger.warning(
                f"Transcoder {worker.pid} ({worker.stream_id}) still alive after "
                f"{self.config.stop_grace_period}s, force killing"
            )
            worker.kill()

    async def _delayed_start(self, stream_id: str, destination_url: str, credential: str) -> None:
        await asyncio.sleep(self.config.restart_delay)
        # Past this point an explicit stop no longer cancels the restart
        self._pending_restarts.pop(stream_id, None)

        try:
            if self.catalog.list_assets(stream_id).is_empty():
                logger.info(f"Stream {stream_id} has no assets left, not restarting")
                return
            await self.start(stream_id, destination_url, credential)
        except PreconditionError as e:
            logger.warning(f"Restart of {stream_id} skipped: {e}")
        except OSError as e:
            logger.error(f"Restart of {stream_id} failed: {e}", exc_info=True)
            await self.broadcaster.publish_status(
                stream_id, Status.ERROR, f"Restart failed: {e}"
            )

    def _cancel_pending_restart(self, stream_id: str) -> None:
        task = self._pending_restarts.pop(stream_id, None)
        if task is not None and not task.done():
            logger.info(f"Cancelling pending restart of {stream_id}")
            task.cancel()

    def _forget_restart(self, stream_id: str, task: asyncio.Task) -> None:
        if self._pending_restarts.get(stream_id) is task:
            del self._pending_restarts[stream_id]

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
