"""
FFmpeg output parser.

Reads the ``-progress pipe:1`` key=value blocks from stdout into progress
samples, and scans stderr for error lines so an abnormal exit can be
reported with a useful message.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """FFmpeg log levels we care about."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class ErrorType(str, Enum):
    """Types of FFmpeg errors."""

    CONNECTION_FAILED = "connection_failed"
    FILE_NOT_FOUND = "file_not_found"
    INVALID_DATA = "invalid_data"
    RTMP_ERROR = "rtmp_error"
    ENCODER_ERROR = "encoder_error"
    IO_ERROR = "io_error"
    UNKNOWN = "unknown"


@dataclass
class ProgressSample:
    """One progress report of a running transcoder."""

    frame: int = 0
    fps: float = 0.0
    total_size: int = 0
    out_time: str = "00:00:00.000000"
    bitrate: str = "N/A"
    speed: str = "N/A"
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "frame": self.frame,
            "fps": self.fps,
            "total_size": self.total_size,
            "out_time": self.out_time,
            "bitrate": self.bitrate,
            "speed": self.speed,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class FFmpegError:
    """An error or warning line from FFmpeg stderr."""

    timestamp: datetime
    level: LogLevel
    error_type: ErrorType
    message: str
    raw_line: str


class FFmpegLogParser:
    """
    Parses FFmpeg output for one transcoder process.

    A new parser is created per run; it is not shared between processes.
    """

    ERROR_PATTERNS = {
        ErrorType.CONNECTION_FAILED: [
            r"Connection (?:refused|timed out|reset)",
            r"Failed to connect",
            r"Could not (?:open|connect)",
        ],
        ErrorType.FILE_NOT_FOUND: [
            r"No such file or directory",
            r"does not exist",
        ],
        ErrorType.INVALID_DATA: [
            r"Invalid data found",
            r"Impossible to open",
        ],
        ErrorType.RTMP_ERROR: [
            r"RTMP.*error",
            r"Failed to update RTMP",
        ],
        ErrorType.ENCODER_ERROR: [
            r"Error (?:encoding|while encoding|initializing output stream)",
            r"Unknown encoder",
        ],
        ErrorType.IO_ERROR: [
            r"I/O error",
            r"Input/output error",
            r"Broken pipe",
        ],
    }

    COMPILED_PATTERNS: Dict[ErrorType, List[re.Pattern]] = {
        error_type: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
        for error_type, patterns in ERROR_PATTERNS.items()
    }

    # Recent lines kept per level
    MAX_RECENT = 50

    def __init__(self):
        self._progress: Dict[str, str] = {}
        self.last_sample: Optional[ProgressSample] = None
        self.errors: Deque[FFmpegError] = deque(maxlen=self.MAX_RECENT)
        self.warnings: Deque[FFmpegError] = deque(maxlen=self.MAX_RECENT)

    def parse_progress_line(self, line: str) -> Optional[ProgressSample]:
        """
        Feed one stdout line of ``-progress`` output.

        Returns:
            A ProgressSample when the line closes a block, None otherwise
        """
        line = line.strip()
        if "=" not in line:
            return None

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()

        if key != "progress":
            self._progress[key] = value
            return None

        sample = self._build_sample(self._progress)
        self._progress = {}
        self.last_sample = sample
        return sample

    def _build_sample(self, values: Dict[str, str]) -> ProgressSample:
        sample = ProgressSample(timestamp=datetime.now())
        try:
            sample.frame = int(values.get("frame", "0"))
            sample.fps = float(values.get("fps", "0") or 0)
            size = values.get("total_size", "0")
            sample.total_size = int(size) if size.isdigit() else 0
        except ValueError as e:
            logger.debug(f"Failed to parse progress values: {e}")
        sample.out_time = values.get("out_time", sample.out_time)
        sample.bitrate = values.get("bitrate", sample.bitrate)
        sample.speed = values.get("speed", sample.speed)
        return sample

    def parse_line(self, line: str) -> Optional[FFmpegError]:
        """
        Parse a single stderr line.

        Returns:
            FFmpegError if an error/warning is detected, None otherwise
        """
        line = line.strip()
        if not line:
            return None

        error = self._detect_error(line)
        if error:
            if error.level in (LogLevel.ERROR, LogLevel.FATAL):
                self.errors.append(error)
            else:
                self.warnings.append(error)
        return error

    def _detect_error(self, line: str) -> Optional[FFmpegError]:
        level = self._get_log_level(line)

        for error_type, patterns in self.COMPILED_PATTERNS.items():
            for pattern in patterns:
                if pattern.search(line):
                    # A known failure pattern is an error even without a level tag
                    if level is LogLevel.INFO:
                        level = LogLevel.ERROR
                    return self._make_error(line, level, error_type)

        if level is LogLevel.INFO:
            return None

        return self._make_error(line, level, ErrorType.UNKNOWN)

    def _make_error(self, line: str, level: LogLevel, error_type: ErrorType) -> FFmpegError:
        return FFmpegError(
            timestamp=datetime.now(),
            level=level,
            error_type=error_type,
            message=self._extract_error_message(line),
            raw_line=line,
        )

    def _get_log_level(self, line: str) -> LogLevel:
        line_lower = line.lower()

        if "[fatal]" in line_lower or "fatal error" in line_lower:
            return LogLevel.FATAL
        elif "[error]" in line_lower or "error" in line_lower:
            return LogLevel.ERROR
        elif "[warning]" in line_lower or "warning" in line_lower:
            return LogLevel.WARNING
        return LogLevel.INFO

    def _extract_error_message(self, line: str) -> str:
        # Strip "[component @ 0x...]" and "[level]" prefixes
        message = re.sub(r"^(?:\[[^\]]*\]\s*)+", "", line)

        if len(message) > 200:
            message = message[:197] + "..."

        return message.strip()

    def last_error_message(self) -> Optional[str]:
        """Message of the most recent error line, if any."""
        if not self.errors:
            return None
        return self.errors[-1].message
