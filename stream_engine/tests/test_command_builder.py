"""
Tests for FFmpeg command builder.
"""

from pathlib import Path

import pytest

from stream_engine.command_builder import FFmpegCommandBuilder, compose_destination
from stream_engine.models import MediaClass

DESTINATION = "rtmp://live.example.com/app/abcd-1234"

VIDEO_MANIFEST = Path("/srv/streams/demo_video_playlist.txt")
AUDIO_MANIFEST = Path("/srv/streams/demo_audio_playlist.txt")


def input_sources(cmd):
    return [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"]


class TestComposeDestination:
    """Test compose_destination."""

    def test_joins_with_slash(self):
        assert compose_destination("rtmp://host/app", "key") == "rtmp://host/app/key"

    def test_strips_trailing_slash(self):
        assert compose_destination("rtmp://host/app/", "key") == "rtmp://host/app/key"


class TestFFmpegCommandBuilder:
    """Test FFmpegCommandBuilder."""

    def test_both_command(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=True, has_still_images=False)

        cmd = command_builder.build_command(
            topology,
            {MediaClass.VIDEO: VIDEO_MANIFEST, MediaClass.AUDIO: AUDIO_MANIFEST},
            DESTINATION,
        )

        assert cmd[0] == "ffmpeg"
        assert input_sources(cmd) == [str(VIDEO_MANIFEST), str(AUDIO_MANIFEST)]
        assert cmd[cmd.index("-filter_complex") + 1] == topology.filter_complex
        assert cmd[-1] == DESTINATION

    def test_manifest_inputs_loop_in_real_time(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=False)

        cmd = command_builder.build_command(
            topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION
        )

        i = cmd.index(str(VIDEO_MANIFEST))
        input_options = cmd[cmd.index("-re"):i]
        assert input_options == [
            "-re",
            "-stream_loop", "-1",
            "-f", "concat",
            "-safe", "0",
            "-thread_queue_size", "512",
            "-i",
        ]

    def test_synthetic_input_after_manifest(self, command_builder, planner):
        topology = planner.plan(has_video=False, has_audio=True, has_still_images=False)

        cmd = command_builder.build_command(
            topology, {MediaClass.AUDIO: AUDIO_MANIFEST}, DESTINATION
        )

        assert input_sources(cmd) == [str(AUDIO_MANIFEST), "color=c=black:s=854x480:r=30"]
        assert "lavfi" in cmd
        assert "-filter_complex" not in cmd
        maps = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-map"]
        assert maps == ["1:v", "0:a"]

    def test_output_encoding(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=True)

        cmd = command_builder.build_command(
            topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION
        )

        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-b:v") + 1] == "1000k"
        assert cmd[cmd.index("-maxrate") + 1] == "1000k"
        assert cmd[cmd.index("-bufsize") + 1] == "2000k"
        assert cmd[cmd.index("-g") + 1] == "60"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-ar") + 1] == "44100"

    def test_progress_reporting(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=False)

        cmd = command_builder.build_command(
            topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION
        )

        assert cmd[cmd.index("-progress") + 1] == "pipe:1"
        assert "-nostats" in cmd

    def test_reconnect_output(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=False)

        cmd = command_builder.build_command(
            topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION
        )

        assert cmd[cmd.index("-f", cmd.index("-c:a")) + 1] == "fifo"
        assert cmd[cmd.index("-fifo_format") + 1] == "flv"
        assert cmd[cmd.index("-recovery_wait_time") + 1] == "2"

    def test_plain_flv_output(self, engine_config, planner):
        engine_config.reconnect_on_drop = False
        builder = FFmpegCommandBuilder(engine_config)
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=False)

        cmd = builder.build_command(topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION)

        assert cmd[-3:] == ["-f", "flv", DESTINATION]
        assert "fifo" not in cmd

    def test_missing_manifest(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=True, has_still_images=False)

        with pytest.raises(ValueError, match="audio manifest"):
            command_builder.build_command(
                topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, DESTINATION
            )

    def test_empty_destination(self, command_builder, planner):
        topology = planner.plan(has_video=True, has_audio=False, has_still_images=False)

        with pytest.raises(ValueError, match="destination"):
            command_builder.build_command(topology, {MediaClass.VIDEO: VIDEO_MANIFEST}, " ")
