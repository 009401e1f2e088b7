"""
Local-disk storage for stream assets and transient manifests.

Asset files live under ``<uploads_dir>/<stream_id>/<class>/``; manifests live
in a separate ``playlists_dir`` so they never show up as assets.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from stream_engine.models import MediaClass

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class FileStat:
    """Size and modification time of a stored file."""

    size: int
    mtime: float


class LocalStorage:
    """Filesystem access used by the catalog and the supervisor."""

    def __init__(self, uploads_dir: PathLike, playlists_dir: PathLike):
        """
        Initialize storage.

        Args:
            uploads_dir: Root of the per-stream asset directories
            playlists_dir: Directory for transient manifest files
        """
        self.uploads_dir = Path(uploads_dir).resolve()
        self.playlists_dir = Path(playlists_dir).resolve()

    def ensure_directories(self) -> None:
        """Create the storage roots if they do not exist yet."""
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.playlists_dir.mkdir(parents=True, exist_ok=True)

    def stream_dir(self, stream_id: str) -> Path:
        return self.uploads_dir / stream_id

    def class_dir(self, stream_id: str, media_class: MediaClass) -> Path:
        return self.stream_dir(stream_id) / media_class.value

    def stream_exists(self, stream_id: str) -> bool:
        return self.stream_dir(stream_id).is_dir()

    def create_stream(self, stream_id: str) -> Path:
        """
        Create the asset directories for a new stream.

        Raises:
            FileExistsError: If the stream directory already exists
        """
        stream_dir = self.stream_dir(stream_id)
        stream_dir.mkdir(parents=True, exist_ok=False)
        for media_class in MediaClass:
            (stream_dir / media_class.value).mkdir(exist_ok=True)
        logger.info(f"Created stream storage: {stream_dir}")
        return stream_dir

    def list_streams(self) -> List[str]:
        """List stream ids that have a storage directory."""
        if not self.uploads_dir.is_dir():
            return []
        return sorted(entry.name for entry in self.uploads_dir.iterdir() if entry.is_dir())

    def list_subdirectory(self, stream_id: str, media_class: MediaClass) -> List[str]:
        """
        List file names in one asset collection of a stream.

        Returns an empty list when the collection does not exist.
        """
        directory = self.class_dir(stream_id, media_class)
        if not directory.is_dir():
            return []
        return [entry.name for entry in directory.iterdir() if entry.is_file()]

    def stat_file(self, path: PathLike) -> FileStat:
        """
        Raises:
            FileNotFoundError: If the file disappeared
        """
        stat = Path(path).stat()
        return FileStat(size=stat.st_size, mtime=stat.st_mtime)

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def write_file(self, path: PathLike, content: str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def remove_file(self, path: PathLike) -> bool:
        """
        Remove a file.

        Returns:
            True if a file was removed, False if it was already gone
        """
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False

    def playlist_path(self, stream_id: str, media_class: MediaClass) -> Path:
        """Deterministic manifest location for a stream's media class."""
        return self.playlists_dir / f"{stream_id}_{media_class.value}_playlist.txt"
