"""
Frame sampling and selection.

Two steps sit between a video file and the AI:
- The sampler walks the video at a fixed interval and produces a bounded,
  time-ordered list of still frames.
- The selector thins that list down to what the AI can accept in one
  request, keeping even coverage of the whole recording.

Decoding is delegated to a MediaTranscoder (ffmpeg in production). The
sampler owns everything around it: input validation, frame-count bounds,
per-frame timeouts, and the temporary directory the stills land in.
"""

import asyncio
import base64
import logging
import math
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, TypeVar
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from ..errors import (
    ExtractionFailedError,
    InsufficientContentError,
    InvalidInputError,
    MetadataUnavailableError,
)
from .models import Frame, VideoMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUPPORTED_VIDEO_EXTENSIONS = (
    ".mp4", ".avi", ".mov", ".wmv", ".mkv",
    ".webm", ".flv", ".m4v", ".3gp", ".ogv",
)

MAX_FRAME_WIDTH = 1920
MAX_FRAME_HEIGHT = 1080
DEFAULT_FRAME_TIMEOUT_SECONDS = 30.0
DEFAULT_ANALYSIS_FRAME_BUDGET = 15


class TranscoderError(Exception):
    """Raised by transcoders when probing or decoding fails."""
    pass


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class MediaTranscoder(Protocol):
    """
    Interface for the media engine.

    The sampler treats decoding as a black box: it can describe a file and
    it can write one still image for a timestamp. Timeouts are enforced by
    the caller, so implementations must be cancellable.
    """

    async def probe(self, video_path: Path) -> VideoMetadata:
        """Read duration, dimensions, frame rate, container and size."""
        ...

    async def extract_still(
        self,
        video_path: Path,
        timestamp_seconds: float,
        output_path: Path,
        max_width: int = MAX_FRAME_WIDTH,
        max_height: int = MAX_FRAME_HEIGHT,
    ) -> None:
        """Write one frame at the timestamp, downscaled to fit max_width x max_height."""
        ...


# ---------------------------------------------------------------------------
# Frame Selection
# ---------------------------------------------------------------------------

def select_best_frames(frames: Sequence[T], budget: int) -> list[T]:
    """
    Pick at most `budget` frames spread evenly across the input.

    Taking a contiguous prefix would only show the AI the start of the
    process. Instead we stride through the list with a real-valued step
    and floor each position, which is deterministic for a given length
    and budget.
    """
    if budget < 1:
        raise ValueError("Frame budget must be at least 1")

    if len(frames) <= budget:
        return list(frames)

    step = len(frames) / budget
    return [frames[math.floor(i * step)] for i in range(budget)]


def calculate_timestamps(
    duration_seconds: float,
    interval_seconds: float,
    max_frames: int,
) -> list[float]:
    """Timestamps to sample: every interval from zero, bounded by max_frames."""
    frame_count = min(math.floor(duration_seconds / interval_seconds), max_frames)
    return [i * interval_seconds for i in range(max(frame_count, 0))]


def is_supported_video(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_VIDEO_EXTENSIONS


@dataclass(frozen=True)
class FrameExtraction:
    """Frames from one extraction together with the metadata they were sampled from."""
    metadata: VideoMetadata
    frames: tuple[Frame, ...]


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class FrameSession:
    """
    An isolated directory holding the stills of one extraction.

    Use it as an async context manager; the directory and everything in it
    is removed on exit. Frames keep their base64 payload, so they remain
    usable after the session closes. Only `Frame.file_path` goes stale.
    """

    def __init__(self, root: Path) -> None:
        self.id = str(uuid4())
        self.directory = Path(root) / self.id
        self._closed = False

    def open(self) -> "FrameSession":
        self.directory.mkdir(parents=True, exist_ok=False)
        logger.debug("Opened frame session", extra={"directory": str(self.directory)})
        return self

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if not self.directory.exists():
            return

        try:
            shutil.rmtree(self.directory)
            logger.info("Cleaned up frame session", extra={"directory": str(self.directory)})
        except OSError as e:
            logger.warning(
                "Failed to clean up frame session",
                extra={"directory": str(self.directory), "error": str(e)},
            )

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "FrameSession":
        return self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Frame Sampler
# ---------------------------------------------------------------------------

class FrameSampler:
    """
    Samples still frames from a video at regular intervals.

    Extraction is strictly sequential: frame i+1 is only requested after
    frame i has finished or been skipped. A frame that fails or times out
    is logged and skipped; only an empty result is an error.
    """

    def __init__(
        self,
        transcoder: MediaTranscoder,
        temp_root: Path,
        frame_timeout_seconds: float = DEFAULT_FRAME_TIMEOUT_SECONDS,
    ) -> None:
        self._transcoder = transcoder
        self._temp_root = Path(temp_root)
        self._frame_timeout = frame_timeout_seconds

    def session(self) -> FrameSession:
        """Create a new, not yet opened, session under the temp root."""
        return FrameSession(self._temp_root)

    def supported_formats(self) -> list[str]:
        return list(SUPPORTED_VIDEO_EXTENSIONS)

    async def get_video_metadata(self, video_path: Path) -> VideoMetadata:
        video_path = self._validate_input(video_path)
        return await self._probe(video_path)

    async def validate_video_file(self, video_path: Path) -> bool:
        """True if the file exists, has a video extension and can be probed."""
        try:
            await self.get_video_metadata(video_path)
            return True
        except (InvalidInputError, MetadataUnavailableError) as e:
            logger.warning(
                "Video validation failed",
                extra={"path": str(video_path), "error": e.message},
            )
            return False

    async def estimate_processing_time(
        self,
        video_path: Path,
        interval_seconds: float,
    ) -> float:
        """
        Rough wall-clock estimate in seconds.

        About a second and a half per frame plus fixed overhead; a minute
        when the file can't be probed at all.
        """
        try:
            metadata = await self.get_video_metadata(video_path)
        except (InvalidInputError, MetadataUnavailableError):
            return 60.0

        frame_count = math.floor(metadata.duration_seconds / interval_seconds)
        return frame_count * 1.5 + 10

    async def extract_frames(
        self,
        video_path: Path,
        interval_seconds: float = 5,
        max_frames: int = 50,
        session: Optional[FrameSession] = None,
    ) -> list[Frame]:
        """
        Extract frames every `interval_seconds`, at most `max_frames`.

        Pass an open session to keep the frame files around for the rest
        of a pipeline call. Without one, a private session is opened and
        closed before returning.
        """
        extraction = await self.sample(video_path, interval_seconds, max_frames, session)
        return list(extraction.frames)

    async def sample(
        self,
        video_path: Path,
        interval_seconds: float = 5,
        max_frames: int = 50,
        session: Optional[FrameSession] = None,
    ) -> FrameExtraction:
        """Like extract_frames, but also returns the probed metadata."""
        if interval_seconds <= 0:
            raise InvalidInputError("Frame interval must be positive")
        if max_frames < 1:
            raise InvalidInputError("max_frames must be at least 1")

        video_path = self._validate_input(video_path)

        if session is None:
            async with self.session() as own_session:
                return await self._extract(video_path, interval_seconds, max_frames, own_session)

        if session.is_closed:
            raise InvalidInputError("Frame session is already closed")
        return await self._extract(video_path, interval_seconds, max_frames, session)

    async def _extract(
        self,
        video_path: Path,
        interval_seconds: float,
        max_frames: int,
        session: FrameSession,
    ) -> FrameExtraction:
        logger.info(
            "Extracting frames",
            extra={"video": video_path.name, "session": session.id},
        )

        metadata = await self._probe(video_path)
        timestamps = calculate_timestamps(
            metadata.duration_seconds, interval_seconds, max_frames
        )

        if not timestamps:
            raise InsufficientContentError(
                f"Video too short to extract frames: {metadata.duration_seconds:.1f}s "
                f"is less than one {interval_seconds}s interval"
            )

        frames: list[Frame] = []

        for i, timestamp in enumerate(timestamps):
            frame = await self._extract_one(video_path, timestamp, i, session)
            if frame is None:
                continue

            frames.append(frame)
            logger.info(
                f"Frame extracted: {i + 1}/{len(timestamps)} ({timestamp:.1f}s)"
            )

        if not frames:
            raise ExtractionFailedError(
                f"No frames could be extracted from {video_path.name}"
            )

        logger.info(
            "Frame extraction complete",
            extra={"requested": len(timestamps), "extracted": len(frames)},
        )
        return FrameExtraction(metadata=metadata, frames=tuple(frames))

    async def _extract_one(
        self,
        video_path: Path,
        timestamp: float,
        index: int,
        session: FrameSession,
    ) -> Optional[Frame]:
        """Extract and encode one frame, or None if it failed."""
        frame_id = str(uuid4())
        frame_path = session.directory / f"frame_{index:04d}_{frame_id}.png"

        try:
            await asyncio.wait_for(
                self._transcoder.extract_still(
                    video_path,
                    timestamp,
                    frame_path,
                    max_width=MAX_FRAME_WIDTH,
                    max_height=MAX_FRAME_HEIGHT,
                ),
                timeout=self._frame_timeout,
            )

            with Image.open(frame_path) as image:
                width, height = image.size

            payload = frame_path.read_bytes()

        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out extracting frame {index + 1} at {timestamp:.1f}s",
                extra={"timeout": self._frame_timeout},
            )
            return None
        except (TranscoderError, OSError, UnidentifiedImageError) as e:
            logger.warning(
                f"Failed to extract frame {index + 1} at {timestamp:.1f}s",
                extra={"error": str(e)},
            )
            return None

        return Frame(
            id=frame_id,
            timestamp_seconds=timestamp,
            frame_number=index + 1,
            width=width,
            height=height,
            base64=base64.b64encode(payload).decode("ascii"),
            file_path=str(frame_path),
        )

    async def _probe(self, video_path: Path) -> VideoMetadata:
        # OSError and ValueError cover transcoders that stat the file or build
        # VideoMetadata from values they did not check
        try:
            return await self._transcoder.probe(video_path)
        except (TranscoderError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise MetadataUnavailableError(
                f"Could not read video metadata for {video_path.name}: {e}"
            ) from e

    def _validate_input(self, video_path: Path) -> Path:
        """Check the file before any decoding work is done."""
        path = Path(video_path)

        if not path.exists():
            raise InvalidInputError(f"Video file not found: {path}")
        if not path.is_file():
            raise InvalidInputError(f"Not a regular file: {path}")
        if not os.access(path, os.R_OK):
            raise InvalidInputError(f"Video file is not readable: {path}")
        if not is_supported_video(path):
            raise InvalidInputError(
                f"Unsupported file format '{path.suffix}'. "
                f"Supported: {', '.join(SUPPORTED_VIDEO_EXTENSIONS)}"
            )

        return path
