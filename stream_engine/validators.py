"""Input validation utilities."""

import re
from typing import Iterable, Optional
from urllib.parse import urlparse

from stream_engine.exceptions import PreconditionError

STREAM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

RTMP_SCHEMES = ("rtmp", "rtmps")


def validate_stream_id(stream_id: str) -> bool:
    """Validate stream id format.

    Args:
        stream_id: Stream identifier.

    Returns:
        bool: True if the id only uses letters, digits, ``_`` and ``-``.
    """
    return bool(stream_id) and STREAM_ID_PATTERN.match(stream_id) is not None


def validate_url(url: str, schemes: Optional[Iterable[str]] = None) -> bool:
    """Validate if string is a valid URL.

    Args:
        url: URL string to validate.
        schemes: Accepted schemes; any scheme when omitted.

    Returns:
        bool: True if valid URL.
    """
    try:
        result = urlparse(url)
    except (TypeError, ValueError):
        return False
    if not (result.scheme and result.netloc):
        return False
    return schemes is None or result.scheme.lower() in schemes


def require_stream_id(stream_id: str) -> str:
    """Raise PreconditionError for a malformed stream id."""
    if not validate_stream_id(stream_id):
        raise PreconditionError(
            f"Invalid stream id {stream_id!r}: use letters, digits, '_' and '-'"
        )
    return stream_id


def require_destination(destination_url: str, credential: str) -> None:
    """Raise PreconditionError unless an RTMP URL and a stream key are given."""
    if not destination_url or not credential or not credential.strip():
        raise PreconditionError("RTMP URL and Stream Key are required")
    if not validate_url(destination_url, RTMP_SCHEMES):
        raise PreconditionError(f"Invalid RTMP URL: {destination_url}")
