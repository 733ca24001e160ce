"""
Unit tests for the FFmpeg-backed and mock transcoders.

Nothing here needs FFmpeg installed: probe parsing is tested on captured
ffprobe output, and missing binaries are exactly what the error tests
want.
"""

import asyncio
import json
import subprocess

import pytest
from PIL import Image

from src.core.analysis.frames import FrameSampler, TranscoderError
from src.core.errors import ConfigurationError, MetadataUnavailableError
from src.infrastructure.video import (
    processor,
    FFmpegTranscoder,
    MockTranscoder,
    create_transcoder,
    parse_frame_rate,
    parse_probe_output,
)

MISSING_BINARY = "/nonexistent/bin/ffmpeg-not-installed"


def _probe_json(**format_overrides) -> str:
    file_format = {"duration": "42.5", "size": "2048", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"}
    file_format.update(format_overrides)
    return json.dumps({
        "streams": [
            {"codec_type": "audio", "duration": "42.4"},
            {"codec_type": "video", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001", "duration": "42.4"},
        ],
        "format": file_format,
    })


class TestParseFrameRate:
    """Tests for ffprobe rate strings."""

    @pytest.mark.parametrize("value, expected", [
        ("30000/1001", 30),
        ("25/1", 25),
        ("24", 24),
        ("0/0", 0),
        ("garbage", 0),
    ])
    def test_parses(self, value, expected):
        assert parse_frame_rate(value) == expected


class TestParseProbeOutput:
    """Tests for turning ffprobe JSON into VideoMetadata."""

    def test_reads_video_stream_and_format(self, video_file):
        metadata = parse_probe_output(_probe_json(), video_file)

        assert metadata.duration_seconds == 42.5
        assert (metadata.width, metadata.height) == (1920, 1080)
        assert metadata.fps == 30
        assert metadata.size_bytes == 2048

    def test_duration_falls_back_to_stream(self, video_file):
        assert parse_probe_output(_probe_json(duration=None), video_file).duration_seconds == 42.4

    def test_size_falls_back_to_file(self, video_file):
        metadata = parse_probe_output(_probe_json(size=None), video_file)
        assert metadata.size_bytes == video_file.stat().st_size

    def test_no_video_stream(self, video_file):
        raw = json.dumps({"streams": [{"codec_type": "audio"}], "format": {}})

        with pytest.raises(TranscoderError, match="No video stream"):
            parse_probe_output(raw, video_file)

    def test_unreadable_output(self, video_file):
        with pytest.raises(TranscoderError):
            parse_probe_output("not json", video_file)

    def test_not_available_duration_falls_back_to_stream(self, video_file):
        assert parse_probe_output(_probe_json(duration="N/A"), video_file).duration_seconds == 42.4

    @pytest.mark.parametrize("raw", [
        _probe_json(duration="forty"),
        _probe_json(size="big"),
        _probe_json(duration="-3"),
        json.dumps(["not", "an", "object"]),
        json.dumps({"streams": "video", "format": {}}),
    ])
    def test_malformed_fields_are_transcoder_errors(self, video_file, raw):
        with pytest.raises(TranscoderError):
            parse_probe_output(raw, video_file)

    def test_sampler_reports_malformed_metadata_as_unavailable(self, video_file, temp_root):
        class MalformedTranscoder:
            async def probe(self, video_path):
                return parse_probe_output(_probe_json(duration="forty"), video_path)

            async def extract_still(self, *args, **kwargs):
                raise AssertionError("no frames should be requested")

        sampler = FrameSampler(MalformedTranscoder(), temp_root)

        with pytest.raises(MetadataUnavailableError):
            asyncio.run(sampler.extract_frames(video_file))

    def test_sampler_reports_os_errors_as_metadata_unavailable(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(probe_error=OSError("file vanished")), temp_root)

        with pytest.raises(MetadataUnavailableError, match="file vanished"):
            asyncio.run(sampler.get_video_metadata(video_file))


class TestFFmpegTranscoder:
    """Tests for binary checks and process failures."""

    def test_missing_binary_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="not found"):
            FFmpegTranscoder(ffmpeg_path=MISSING_BINARY)

    def test_non_executable_binary_is_configuration_error(self, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_text("not a program")
        binary.chmod(0o644)

        with pytest.raises(ConfigurationError, match="cannot be executed"):
            FFmpegTranscoder(ffmpeg_path=str(binary))

    def test_hanging_binary_is_configuration_error(self, monkeypatch):
        def hang(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        monkeypatch.setattr(processor.subprocess, "run", hang)

        with pytest.raises(ConfigurationError, match="did not answer"):
            FFmpegTranscoder()

    def test_probe_with_missing_binary_is_transcoder_error(self, video_file):
        transcoder = FFmpegTranscoder(ffprobe_path=MISSING_BINARY, verify=False)

        with pytest.raises(TranscoderError, match="Executable not found"):
            asyncio.run(transcoder.probe(video_file))


class TestMockTranscoder:
    """Tests for the FFmpeg-free development transcoder."""

    def test_probe_reports_fixed_metadata(self, video_file):
        metadata = asyncio.run(MockTranscoder(duration_seconds=20).probe(video_file))

        assert metadata.duration_seconds == 20
        assert metadata.format_name == "mock"
        assert metadata.size_bytes == video_file.stat().st_size

    def test_still_is_a_bounded_png(self, video_file, tmp_path):
        output = tmp_path / "frame.png"

        asyncio.run(MockTranscoder().extract_still(video_file, 5.0, output, max_width=640, max_height=480))

        with Image.open(output) as image:
            assert image.format == "PNG"
            assert image.width <= 640
            assert image.height <= 480

    def test_factory_returns_mock_in_mock_mode(self):
        assert isinstance(create_transcoder(mock_mode=True), MockTranscoder)
