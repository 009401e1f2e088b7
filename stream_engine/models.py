"""
Domain types shared across the stream engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class MediaClass(str, Enum):
    """Asset collections a stream is partitioned into."""

    VIDEO = "video"
    AUDIO = "audio"


class MediaKind(str, Enum):
    """Classification of a single asset file."""

    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"

    @property
    def media_class(self) -> MediaClass:
        """Collection the asset plays in; still images play as video."""
        if self is MediaKind.AUDIO:
            return MediaClass.AUDIO
        return MediaClass.VIDEO


class Status(str, Enum):
    """Stream status reported to operators and observers."""

    CREATED = "created"
    STREAMING = "streaming"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass(frozen=True)
class Asset:
    """A media file deposited for a stream."""

    name: str
    path: Path
    size: int
    mtime: float
    kind: MediaKind
    # Only images carry a fixed display duration
    duration: Optional[float] = None

    @property
    def is_image(self) -> bool:
        return self.kind is MediaKind.IMAGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "size": self.size,
            "modified_at": datetime.fromtimestamp(self.mtime).isoformat(),
            "kind": self.kind.value,
            "duration": self.duration,
        }


@dataclass
class AssetListing:
    """Assets of one stream, split by media class in playback order."""

    video: List[Asset] = field(default_factory=list)
    audio: List[Asset] = field(default_factory=list)

    def for_class(self, media_class: MediaClass) -> List[Asset]:
        if media_class is MediaClass.AUDIO:
            return self.audio
        return self.video

    @property
    def has_still_images(self) -> bool:
        return any(asset.is_image for asset in self.video)

    @property
    def total(self) -> int:
        return len(self.video) + len(self.audio)

    def is_empty(self) -> bool:
        return self.total == 0
