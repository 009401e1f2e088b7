"""
Stream engine configuration and encoding presets.

Every stream is pushed with the same fixed output encoding; the preset table
only selects which one.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class EncodingPreset(str, Enum):
    """Available encoding presets."""

    PRESET_720P_FAST = "720p_fast"
    PRESET_1080P_FAST = "1080p_fast"

    # Low quality for testing
    PRESET_480P_TEST = "480p_test"


@dataclass
class EncodingConfig:
    """Output encoding parameters for a preset."""

    name: str
    width: int
    height: int
    video_codec: str  # "libx264"
    video_bitrate: str  # bitrate ceiling, e.g. "2500k"
    buffer_size: str  # rate control buffer, e.g. "5000k"
    video_preset: str  # x264 speed preset
    audio_codec: str
    audio_bitrate: str
    audio_sample_rate: int
    framerate: int
    keyframe_interval: int  # GOP size
    pixel_format: str

    @property
    def resolution(self) -> str:
        """Resolution in ffmpeg's ``W:H`` filter syntax."""
        return f"{self.width}:{self.height}"

    @property
    def frame_size(self) -> str:
        """Resolution in ffmpeg's ``WxH`` source syntax."""
        return f"{self.width}x{self.height}"


ENCODING_PRESETS: Dict[EncodingPreset, EncodingConfig] = {
    EncodingPreset.PRESET_720P_FAST: EncodingConfig(
        name="720p Fast (x264)",
        width=1280,
        height=720,
        video_codec="libx264",
        video_bitrate="2500k",
        buffer_size="5000k",
        video_preset="veryfast",
        audio_codec="aac",
        audio_bitrate="128k",
        audio_sample_rate=44100,
        framerate=30,
        keyframe_interval=60,
        pixel_format="yuv420p",
    ),
    EncodingPreset.PRESET_1080P_FAST: EncodingConfig(
        name="1080p Fast (x264)",
        width=1920,
        height=1080,
        video_codec="libx264",
        video_bitrate="4500k",
        buffer_size="9000k",
        video_preset="veryfast",
        audio_codec="aac",
        audio_bitrate="192k",
        audio_sample_rate=44100,
        framerate=30,
        keyframe_interval=60,
        pixel_format="yuv420p",
    ),
    EncodingPreset.PRESET_480P_TEST: EncodingConfig(
        name="480p Test",
        width=854,
        height=480,
        video_codec="libx264",
        video_bitrate="1000k",
        buffer_size="2000k",
        video_preset="ultrafast",
        audio_codec="aac",
        audio_bitrate="96k",
        audio_sample_rate=44100,
        framerate=30,
        keyframe_interval=60,
        pixel_format="yuv420p",
    ),
}


class EngineConfig(BaseSettings):
    """Stream engine configuration from environment variables."""

    # Storage
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Root directory holding one asset directory per stream",
    )
    playlists_dir: Path = Field(
        default=Path("streams"),
        description="Directory for transient per-run concat manifests",
    )

    # Encoding
    encoding_preset: EncodingPreset = Field(
        default=EncodingPreset.PRESET_720P_FAST,
        description="Encoding quality preset",
    )

    image_duration: float = Field(
        default=5.0,
        description="Display duration of a still image in the loop (seconds)",
        gt=0.0,
        le=3600.0,
    )

    # Process management
    stop_grace_period: float = Field(
        default=5.0,
        description="Seconds between SIGTERM and SIGKILL when stopping a transcoder",
        ge=0.0,
        le=60.0,
    )

    restart_delay: float = Field(
        default=2.0,
        description="Settle delay between stop and start on restart (seconds)",
        ge=0.0,
        le=60.0,
    )

    # Output
    reconnect_on_drop: bool = Field(
        default=True,
        description="Recover the RTMP connection through ffmpeg's fifo muxer",
    )

    reconnect_wait: float = Field(
        default=2.0,
        description="Seconds to wait between RTMP reconnection attempts",
        gt=0.0,
        le=60.0,
    )

    # FFmpeg binary
    ffmpeg_binary: str = Field(
        default="ffmpeg",
        description="Path to FFmpeg binary",
    )

    log_level: str = Field(
        default="error",
        description="FFmpeg log level (quiet, panic, fatal, error, warning, info, verbose, debug)",
    )

    thread_queue_size: int = Field(
        default=512,
        description="Thread queue size for input streams",
        ge=64,
        le=4096,
    )

    model_config = ConfigDict(
        env_prefix="STREAM_ENGINE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_encoding_config(self) -> EncodingConfig:
        """Get the encoding configuration for the selected preset."""
        return ENCODING_PRESETS[self.encoding_preset]


def get_config() -> EngineConfig:
    """
    Get engine configuration from environment variables.

    Returns:
        EngineConfig: Configuration instance
    """
    return EngineConfig()
