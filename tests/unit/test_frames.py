"""
Unit tests for frame sampling and selection.

The sampler runs against FakeTranscoder, which writes real PNG files, so
these tests cover the session directory lifecycle as well as the
sampling arithmetic.
"""

import asyncio
import base64

import pytest

from src.core.analysis.frames import (
    FrameSampler,
    FrameSession,
    TranscoderError,
    calculate_timestamps,
    select_best_frames,
)
from src.core.errors import (
    ExtractionFailedError,
    InsufficientContentError,
    InvalidInputError,
    MetadataUnavailableError,
)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

class TestSelectBestFrames:
    """Tests for evenly spaced frame selection."""

    def test_returns_input_unchanged_when_within_budget(self):
        frames = list(range(10))
        assert select_best_frames(frames, 15) == frames

    def test_exact_budget_is_identity(self):
        frames = list(range(15))
        assert select_best_frames(frames, 15) == frames

    def test_strides_evenly_when_over_budget(self):
        assert select_best_frames(list(range(30)), 15) == list(range(0, 30, 2))

    def test_covers_whole_recording_and_preserves_order(self):
        selected = select_best_frames(list(range(50)), 15)

        assert len(selected) == 15
        assert selected[0] == 0
        assert selected[-1] >= 45
        assert selected == sorted(set(selected))

    def test_rejects_zero_budget(self):
        with pytest.raises(ValueError, match="at least 1"):
            select_best_frames([1, 2, 3], 0)


class TestCalculateTimestamps:
    """Tests for sampling timestamp arithmetic."""

    def test_samples_every_interval_from_zero(self):
        assert calculate_timestamps(12, 5, 50) == [0, 5]

    def test_bounded_by_max_frames(self):
        assert calculate_timestamps(100, 5, 3) == [0, 5, 10]

    def test_video_shorter_than_interval_has_no_timestamps(self):
        assert calculate_timestamps(4, 5, 50) == []


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestFrameSession:
    """Tests for the scoped session directory."""

    def test_directory_removed_on_exit(self, temp_root):
        async def run():
            async with FrameSession(temp_root) as session:
                (session.directory / "frame.png").write_bytes(b"x")
                assert session.directory.is_dir()
            return session

        session = asyncio.run(run())

        assert session.is_closed
        assert not session.directory.exists()

    def test_close_is_idempotent(self, temp_root):
        session = FrameSession(temp_root).open()
        session.close()
        session.close()
        assert list(temp_root.iterdir()) == []

    def test_sessions_get_distinct_directories(self, temp_root):
        assert FrameSession(temp_root).directory != FrameSession(temp_root).directory


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class TestFrameSampler:
    """Tests for FrameSampler.extract_frames and friends."""

    def test_twelve_second_video_yields_two_frames(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(duration_seconds=12.0), temp_root)

        frames = asyncio.run(sampler.extract_frames(video_file, interval_seconds=5, max_frames=50))

        assert [f.timestamp_seconds for f in frames] == [0, 5]
        assert [f.frame_number for f in frames] == [1, 2]
        assert base64.b64decode(frames[0].base64).startswith(b"\x89PNG")
        assert (frames[0].width, frames[0].height) == (64, 48)

    def test_private_session_is_cleaned_up(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        asyncio.run(sampler.extract_frames(video_file))

        assert list(temp_root.iterdir()) == []

    def test_caller_session_keeps_files_until_closed(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        async def run():
            async with sampler.session() as session:
                frames = await sampler.extract_frames(video_file, session=session)
                assert len(list(session.directory.iterdir())) == 2
                return frames

        frames = asyncio.run(run())

        assert len(frames) == 2
        assert list(temp_root.iterdir()) == []

    def test_failed_frame_is_skipped(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(duration_seconds=20.0, failing=(5.0,)), temp_root)

        frames = asyncio.run(sampler.extract_frames(video_file))

        assert [f.timestamp_seconds for f in frames] == [0, 10, 15]
        assert [f.frame_number for f in frames] == [1, 3, 4]

    def test_timed_out_frame_is_skipped(self, video_file, temp_root, fake_transcoder):
        transcoder = fake_transcoder(duration_seconds=12.0, hanging=(0.0,))
        sampler = FrameSampler(transcoder, temp_root, frame_timeout_seconds=0.05)

        frames = asyncio.run(sampler.extract_frames(video_file))

        assert [f.timestamp_seconds for f in frames] == [5]
        # extraction is sequential: the next frame is only requested after the timeout
        assert transcoder.requested == [0, 5]

    def test_all_frames_failing_is_an_error(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(failing=(0.0, 5.0)), temp_root)

        with pytest.raises(ExtractionFailedError):
            asyncio.run(sampler.extract_frames(video_file))
        assert list(temp_root.iterdir()) == []

    def test_video_shorter_than_interval(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(duration_seconds=3.0), temp_root)

        with pytest.raises(InsufficientContentError):
            asyncio.run(sampler.extract_frames(video_file))

    def test_probe_failure_is_metadata_unavailable(self, video_file, temp_root, fake_transcoder):
        transcoder = fake_transcoder(probe_error=TranscoderError("No video stream found"))
        sampler = FrameSampler(transcoder, temp_root)

        with pytest.raises(MetadataUnavailableError, match="No video stream"):
            asyncio.run(sampler.extract_frames(video_file))

    def test_sample_returns_metadata_with_frames(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(duration_seconds=12.0), temp_root)

        extraction = asyncio.run(sampler.sample(video_file))

        assert extraction.metadata.duration_seconds == 12.0
        assert len(extraction.frames) == 2


class TestInputValidation:
    """Tests for checks done before any decoding."""

    def test_missing_file(self, tmp_path, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        with pytest.raises(InvalidInputError, match="not found"):
            asyncio.run(sampler.extract_frames(tmp_path / "missing.mp4"))

    def test_directory_is_rejected(self, tmp_path, temp_root, fake_transcoder):
        folder = tmp_path / "clip.mp4"
        folder.mkdir()
        sampler = FrameSampler(fake_transcoder(), temp_root)

        with pytest.raises(InvalidInputError, match="Not a regular file"):
            asyncio.run(sampler.extract_frames(folder))

    def test_unsupported_extension(self, tmp_path, temp_root, fake_transcoder):
        document = tmp_path / "notes.txt"
        document.write_text("hello")
        sampler = FrameSampler(fake_transcoder(), temp_root)

        with pytest.raises(InvalidInputError, match="Unsupported file format"):
            asyncio.run(sampler.extract_frames(document))

    def test_extension_check_is_case_insensitive(self, tmp_path, temp_root, fake_transcoder):
        video = tmp_path / "CLIP.MOV"
        video.write_bytes(b"\x00" * 16)
        sampler = FrameSampler(fake_transcoder(), temp_root)

        assert asyncio.run(sampler.validate_video_file(video)) is True

    @pytest.mark.parametrize("interval, max_frames", [(0, 50), (-5, 50), (5, 0)])
    def test_rejects_bad_sampling_bounds(self, video_file, temp_root, fake_transcoder, interval, max_frames):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        with pytest.raises(InvalidInputError):
            asyncio.run(sampler.extract_frames(video_file, interval, max_frames))

    def test_validate_video_file_never_raises(self, tmp_path, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        assert asyncio.run(sampler.validate_video_file(tmp_path / "missing.mp4")) is False

    def test_supported_formats(self, temp_root, fake_transcoder):
        formats = FrameSampler(fake_transcoder(), temp_root).supported_formats()
        assert ".mp4" in formats
        assert ".mkv" in formats


class TestEstimateProcessingTime:
    """Tests for the processing time estimate."""

    def test_scales_with_frame_count(self, video_file, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(duration_seconds=12.0), temp_root)

        assert asyncio.run(sampler.estimate_processing_time(video_file, 5)) == 13.0

    def test_unreadable_video_gets_a_minute(self, tmp_path, temp_root, fake_transcoder):
        sampler = FrameSampler(fake_transcoder(), temp_root)

        assert asyncio.run(sampler.estimate_processing_time(tmp_path / "missing.mp4", 5)) == 60.0
