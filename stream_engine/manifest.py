"""
Concat manifest construction.

Produces the playlist text ffmpeg's concat demuxer reads for one media class.
Writing and deleting the file is the supervisor's job.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from stream_engine.models import Asset, MediaClass

MANIFEST_HEADER = "ffconcat version 1.0"

_FILE_LINE = re.compile(r"^file\s+(.+)$")
_DURATION_LINE = re.compile(r"^duration\s+([\d.]+)$")


@dataclass(frozen=True)
class ManifestEntry:
    """One playlist entry."""

    path: str
    duration: Optional[float] = None


def quote_path(path: str) -> str:
    """Quote a path for the concat demuxer (single quotes, ``'\\''`` escapes)."""
    return "'" + path.replace("'", "'\\''") + "'"


def unquote_path(token: str) -> str:
    """Reverse :func:`quote_path`."""
    result = []
    quoted = False
    i = 0
    while i < len(token):
        char = token[i]
        if char == "'":
            quoted = not quoted
        elif char == "\\" and not quoted and i + 1 < len(token):
            i += 1
            result.append(token[i])
        else:
            result.append(char)
        i += 1
    return "".join(result)


def build_entries(assets: Sequence[Asset], media_class: MediaClass) -> List[ManifestEntry]:
    """
    Build the ordered playlist entries for a media class.

    Images get their fixed display duration. When the list ends on an image
    its path is repeated once more, because the concat demuxer ignores the
    duration of the final entry.
    """
    entries = []
    for asset in assets:
        if asset.kind.media_class is not media_class:
            raise ValueError(f"{asset.name} is {asset.kind.value}, not {media_class.value}")
        duration = asset.duration if asset.is_image else None
        entries.append(ManifestEntry(path=str(asset.path), duration=duration))

    if assets and assets[-1].is_image:
        entries.append(ManifestEntry(path=str(assets[-1].path)))

    return entries


def render_entries(entries: Sequence[ManifestEntry]) -> str:
    if not entries:
        return ""

    lines = [MANIFEST_HEADER]
    for entry in entries:
        lines.append(f"file {quote_path(entry.path)}")
        if entry.duration is not None:
            lines.append(f"duration {entry.duration:.3f}")
    return "\n".join(lines) + "\n"


def build_manifest(assets: Sequence[Asset], media_class: MediaClass) -> str:
    """
    Render the concat manifest for a media class.

    Args:
        assets: Assets in playback order
        media_class: Class the assets belong to

    Returns:
        Manifest text; empty when there are no assets
    """
    return render_entries(build_entries(assets, media_class))


def parse_manifest(text: str) -> List[ManifestEntry]:
    """Parse manifest text back into entries."""
    entries: List[ManifestEntry] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line == MANIFEST_HEADER:
            continue

        file_match = _FILE_LINE.match(line)
        if file_match:
            entries.append(ManifestEntry(path=unquote_path(file_match.group(1))))
            continue

        duration_match = _DURATION_LINE.match(line)
        if duration_match and entries:
            last = entries[-1]
            entries[-1] = ManifestEntry(path=last.path, duration=float(duration_match.group(1)))
    return entries
