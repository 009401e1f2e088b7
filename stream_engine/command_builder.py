"""
FFmpeg command builder.

Turns a planned topology and its manifest files into the ffmpeg argument
list for one run: looped real-time concat inputs, the filter graph, fixed
output encoding and the RTMP destination.
"""

import logging
from pathlib import Path
from typing import Dict, List

from stream_engine.config import EngineConfig
from stream_engine.models import MediaClass
from stream_engine.topology import Topology

logger = logging.getLogger(__name__)


def compose_destination(destination_url: str, credential: str) -> str:
    """Join the RTMP base URL and the stream key."""
    return f"{destination_url.rstrip('/')}/{credential.lstrip('/')}"


class FFmpegCommandBuilder:
    """
    Builds ffmpeg commands that push looping playlists to an RTMP endpoint.
    """

    def __init__(self, config: EngineConfig):
        """
        Initialize command builder.

        Args:
            config: Engine configuration
        """
        self.config = config
        self.encoding_config = config.get_encoding_config()

    def build_command(
        self,
        topology: Topology,
        manifests: Dict[MediaClass, Path],
        destination: str,
    ) -> List[str]:
        """
        Build complete ffmpeg command for a run.

        Args:
            topology: Planned topology
            manifests: Manifest file per media class present in the topology
            destination: Full RTMP URL including the stream key

        Returns:
            List of command arguments for subprocess

        Raises:
            ValueError: If a manifest required by the topology is missing or
                the destination is empty
        """
        if not destination or not destination.strip():
            raise ValueError("destination cannot be empty")

        cmd = [self.config.ffmpeg_binary]

        cmd.extend(self._build_global_options())

        for media_class in topology.manifest_inputs:
            manifest = manifests.get(media_class)
            if manifest is None:
                raise ValueError(f"Topology {topology.kind.value} needs a {media_class.value} manifest")
            cmd.extend(self._build_manifest_input(manifest))

        for source in topology.synthetic_inputs:
            cmd.extend(self._build_synthetic_input(source))

        if topology.filter_complex:
            cmd.extend(["-filter_complex", topology.filter_complex])

        for stream_map in topology.maps:
            cmd.extend(["-map", stream_map])

        cmd.extend(self._build_video_encoding())
        cmd.extend(self._build_audio_encoding())
        cmd.extend(self._build_output_options(destination))

        logger.debug(f"Built FFmpeg command: {' '.join(cmd)}")
        return cmd

    def _build_global_options(self) -> List[str]:
        return [
            "-hide_banner",
            "-loglevel",
            self.config.log_level,
            "-nostats",
            # Machine-readable progress blocks on stdout
            "-progress",
            "pipe:1",
            "-y",
        ]

    def _build_manifest_input(self, manifest: Path) -> List[str]:
        return [
            "-re",  # Read at native rate, this is a live feed
            "-stream_loop",
            "-1",  # Loop indefinitely
            "-f",
            "concat",
            "-safe",
            "0",  # Manifests list absolute paths
            "-thread_queue_size",
            str(self.config.thread_queue_size),
            "-i",
            str(manifest),
        ]

    def _build_synthetic_input(self, source: str) -> List[str]:
        return [
            "-f",
            "lavfi",
            "-thread_queue_size",
            str(self.config.thread_queue_size),
            "-i",
            source,
        ]

    def _build_video_encoding(self) -> List[str]:
        enc = self.encoding_config
        return [
            "-c:v", enc.video_codec,
            "-preset", enc.video_preset,
            "-tune", "zerolatency",
            "-b:v", enc.video_bitrate,
            "-maxrate", enc.video_bitrate,
            "-bufsize", enc.buffer_size,
            "-pix_fmt", enc.pixel_format,
            # Fixed GOP, no scene-cut keyframes
            "-g", str(enc.keyframe_interval),
            "-keyint_min", str(enc.keyframe_interval),
            "-sc_threshold", "0",
        ]

    def _build_audio_encoding(self) -> List[str]:
        enc = self.encoding_config
        return [
            "-c:a", enc.audio_codec,
            "-b:a", enc.audio_bitrate,
            "-ar", str(enc.audio_sample_rate),
            "-ac", "2",
        ]

    def _build_output_options(self, destination: str) -> List[str]:
        if not self.config.reconnect_on_drop:
            return ["-f", "flv", destination]

        # The fifo muxer keeps encoding while it re-opens a dropped connection
        return [
            "-f", "fifo",
            "-fifo_format", "flv",
            "-format_opts", "flvflags=no_duration_filesize",
            "-drop_pkts_on_overflow", "1",
            "-attempt_recovery", "1",
            "-recover_any_error", "1",
            "-recovery_wait_time", f"{self.config.reconnect_wait:g}",
            destination,
        ]
