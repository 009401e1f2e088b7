"""
Tests for FFmpeg output parser.
"""

from stream_engine.log_parser import ErrorType, FFmpegLogParser, LogLevel


class TestProgressParsing:
    """Test -progress block parsing."""

    def test_block_yields_sample(self, log_parser, sample_progress_output):
        samples = [log_parser.parse_progress_line(line) for line in sample_progress_output]

        assert all(sample is None for sample in samples[:-1])
        sample = samples[-1]
        assert sample.frame == 300
        assert sample.fps == 30.0
        assert sample.total_size == 1572864
        assert sample.out_time == "00:00:10.000000"
        assert sample.bitrate == "1258.3kbits/s"
        assert sample.speed == "1.00x"
        assert log_parser.last_sample is sample

    def test_blocks_are_independent(self, log_parser):
        for line in ["frame=10", "progress=continue"]:
            log_parser.parse_progress_line(line)

        sample = log_parser.parse_progress_line("progress=end")

        assert sample.frame == 0

    def test_na_values(self, log_parser):
        for line in ["total_size=N/A", "bitrate=N/A"]:
            log_parser.parse_progress_line(line)

        sample = log_parser.parse_progress_line("progress=continue")

        assert sample.total_size == 0
        assert sample.bitrate == "N/A"

    def test_ignores_non_progress_lines(self, log_parser):
        assert log_parser.parse_progress_line("garbage") is None

    def test_sample_to_dict(self, log_parser, sample_progress_output):
        for line in sample_progress_output:
            sample = log_parser.parse_progress_line(line)

        data = sample.to_dict()

        assert data["frame"] == 300
        assert data["timestamp"] is not None


class TestStderrParsing:
    """Test stderr error detection."""

    def test_detects_errors(self, log_parser, sample_error_lines):
        errors = [log_parser.parse_line(line) for line in sample_error_lines]

        assert all(error is not None for error in errors)
        assert errors[0].error_type == ErrorType.CONNECTION_FAILED
        assert errors[1].error_type == ErrorType.FILE_NOT_FOUND
        assert errors[1].level == LogLevel.FATAL
        assert errors[2].error_type == ErrorType.RTMP_ERROR
        assert errors[3].error_type == ErrorType.ENCODER_ERROR
        assert errors[4].error_type == ErrorType.INVALID_DATA

    def test_strips_prefix(self, log_parser):
        error = log_parser.parse_line("[tcp @ 0x55d0c8e0] Connection refused")

        assert error.message == "Connection refused"
        assert log_parser.last_error_message() == "Connection refused"

    def test_warning(self, log_parser):
        error = log_parser.parse_line("[warning] Dropped 5 frames")

        assert error.level == LogLevel.WARNING
        assert list(log_parser.warnings) == [error]
        assert log_parser.last_error_message() is None

    def test_info_lines_ignored(self, log_parser):
        assert log_parser.parse_line("Input #0, concat, from 'playlist.txt':") is None
        assert log_parser.parse_line("") is None

    def test_error_history_is_bounded(self, log_parser):
        for i in range(FFmpegLogParser.MAX_RECENT + 25):
            log_parser.parse_line(f"[tcp @ 0x55d0c8e0] Connection refused ({i})")
            log_parser.parse_line(f"[warning] Dropped {i} frames")

        assert len(log_parser.errors) == FFmpegLogParser.MAX_RECENT
        assert len(log_parser.warnings) == FFmpegLogParser.MAX_RECENT
        last = FFmpegLogParser.MAX_RECENT + 24
        assert log_parser.last_error_message() == f"Connection refused ({last})"
