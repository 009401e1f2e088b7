"""
Asset Catalog - classifies the media files deposited for a stream.

The catalog is stateless: every query rescans storage, so the result always
reflects what is on disk right now.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from stream_engine.exceptions import PreconditionError, StreamNotFoundError
from stream_engine.models import Asset, AssetListing, MediaClass, MediaKind
from stream_engine.storage import LocalStorage

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset(
    {".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".mkv", ".m4v", ".ts"}
)
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})
AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a", ".aac", ".ogg", ".flac", ".opus"})


def classify(filename: str, content_type: Optional[str] = None) -> Optional[MediaKind]:
    """
    Classify a file by extension, falling back to its content type.

    Args:
        filename: File name (only the extension is inspected)
        content_type: Declared MIME type; guessed from the name when omitted

    Returns:
        MediaKind, or None if the file is not playable media
    """
    extension = Path(filename).suffix.lower()
    if extension in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    if extension in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if extension in AUDIO_EXTENSIONS:
        return MediaKind.AUDIO

    if content_type is None:
        content_type, _ = mimetypes.guess_type(filename)
    if not content_type:
        return None

    content_type = content_type.lower()
    if content_type.startswith("video/"):
        return MediaKind.VIDEO
    if content_type.startswith("image/"):
        return MediaKind.IMAGE
    if content_type.startswith("audio/"):
        return MediaKind.AUDIO
    return None


class AssetCatalog:
    """
    Reads a stream's asset directories and sorts them into playback lists.

    Still images and motion video both land in the video list; within each
    list assets are ordered oldest first, which becomes the loop order.
    """

    def __init__(self, storage: LocalStorage, image_duration: float = 5.0):
        """
        Initialize the catalog.

        Args:
            storage: Storage backend
            image_duration: Display duration assigned to still images
        """
        self.storage = storage
        self.image_duration = image_duration

    def list_assets(self, stream_id: str) -> AssetListing:
        """
        List the classified assets of a stream.

        A stream without storage yields an empty listing rather than an error.

        Args:
            stream_id: Stream identifier

        Returns:
            AssetListing with video and audio assets in playback order
        """
        listing = AssetListing()

        for media_class in MediaClass:
            directory = self.storage.class_dir(stream_id, media_class)
            for name in self.storage.list_subdirectory(stream_id, media_class):
                kind = classify(name)
                if kind is None:
                    logger.debug(f"Skipping non-media file {name} in {directory}")
                    continue

                path = directory / name
                try:
                    stat = self.storage.stat_file(path)
                except FileNotFoundError:
                    # Deleted between listing and stat
                    logger.debug(f"Asset vanished during scan: {path}")
                    continue

                asset = Asset(
                    name=name,
                    path=path,
                    size=stat.size,
                    mtime=stat.mtime,
                    kind=kind,
                    duration=self.image_duration if kind is MediaKind.IMAGE else None,
                )
                listing.for_class(kind.media_class).append(asset)

        listing.video.sort(key=lambda asset: (asset.mtime, asset.name))
        listing.audio.sort(key=lambda asset: (asset.mtime, asset.name))
        return listing

    def remove_asset(self, stream_id: str, media_class: MediaClass, filename: str) -> bool:
        """
        Delete one asset file of a stream.

        Returns:
            True if the file was deleted, False if it did not exist

        Raises:
            StreamNotFoundError: If the stream has no storage
            PreconditionError: If the file name is not a plain name
        """
        if not self.storage.stream_exists(stream_id):
            raise StreamNotFoundError(stream_id)
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise PreconditionError(f"Invalid file name: {filename!r}")

        path = self.storage.class_dir(stream_id, media_class) / filename
        removed = self.storage.remove_file(path)
        if removed:
            logger.info(f"Deleted asset {path}")
        return removed
