"""Exceptions raised by the stream engine."""

from typing import Optional


class StreamEngineError(Exception):
    """Base class for stream engine errors."""


class PreconditionError(StreamEngineError):
    """A request was rejected before any state was touched."""


class StreamNotFoundError(PreconditionError):
    """The stream has no storage directory."""

    def __init__(self, stream_id: str):
        super().__init__(f"Stream not found: {stream_id}")
        self.stream_id = stream_id


class LaunchError(StreamEngineError):
    """The transcoder process could not be spawned."""


class TranscoderExitError(StreamEngineError):
    """The transcoder exited abnormally while streaming."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ResourceCleanupError(StreamEngineError):
    """A transient manifest could not be removed."""
