"""
Media transcoders using FFmpeg.

The frame sampler only needs two things from a media engine: metadata for
a file and one still image at a timestamp. This module provides both on
top of the ffprobe/ffmpeg binaries, plus a mock for machines without
FFmpeg installed.

Why subprocesses instead of a Python binding:
- ffmpeg handles every container the sampler accepts
- a hung decode can be killed without taking the worker down
- nothing to compile; the same binaries run in Docker and on laptops
"""

import asyncio
import json
import logging
import subprocess
from pathlib import Path

from PIL import Image, ImageDraw

from src.core.analysis.frames import MAX_FRAME_HEIGHT, MAX_FRAME_WIDTH, TranscoderError
from src.core.analysis.models import VideoMetadata
from src.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 30.0


def parse_frame_rate(value: str) -> int:
    """ffprobe reports rates as fractions like "30000/1001"; round to whole fps."""
    try:
        if "/" in value:
            num, denom = value.split("/", 1)
            if float(denom) == 0:
                return 0
            return round(float(num) / float(denom))
        return round(float(value))
    except ValueError:
        return 0


def _probe_number(value) -> float | None:
    """ffprobe reports "N/A" for fields it could not determine."""
    if value in (None, "", "N/A"):
        return None
    return float(value)


def parse_probe_output(raw: str, video_path: Path) -> VideoMetadata:
    """Turn ffprobe's JSON report into VideoMetadata."""
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TranscoderError(f"Unreadable ffprobe output: {e.msg}") from e

    if not isinstance(info, dict):
        raise TranscoderError("Unexpected ffprobe output: not a JSON object")

    streams = info.get("streams")
    if not isinstance(streams, list):
        streams = []

    video_stream = None
    for stream in streams:
        if isinstance(stream, dict) and stream.get("codec_type") == "video":
            video_stream = stream
            break

    if not video_stream:
        raise TranscoderError("No video stream found")

    file_format = info.get("format")
    if not isinstance(file_format, dict):
        file_format = {}

    try:
        # duration from format, falling back to the stream
        duration = (
            _probe_number(file_format.get("duration"))
            or _probe_number(video_stream.get("duration"))
            or 0.0
        )

        size = _probe_number(file_format.get("size"))
        size_bytes = int(size) if size else video_path.stat().st_size

        return VideoMetadata(
            duration_seconds=duration,
            width=int(video_stream.get("width", 0)),
            height=int(video_stream.get("height", 0)),
            fps=parse_frame_rate(str(video_stream.get("r_frame_rate", "25/1"))),
            format_name=str(file_format.get("format_name", "unknown")),
            size_bytes=size_bytes,
        )
    except (TypeError, ValueError, OSError) as e:
        raise TranscoderError(f"Invalid ffprobe metadata: {e}") from e


class FFmpegTranscoder:
    """
    Transcoder backed by the ffprobe and ffmpeg binaries.

    Each call spawns one process. Timeouts are the caller's job; when the
    awaiting task is cancelled, the child process is killed.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        verify: bool = True,
    ) -> None:
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path

        if verify:
            self._verify_binary(self._ffmpeg)
            self._verify_binary(self._ffprobe)
        logger.info("FFmpeg transcoder initialized")

    @staticmethod
    def _verify_binary(path: str) -> None:
        try:
            result = subprocess.run(
                [path, "-version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except FileNotFoundError:
            raise ConfigurationError(
                f"{path} not found. Install with: apt-get install ffmpeg"
            )
        except subprocess.TimeoutExpired:
            raise ConfigurationError(f"{path} did not answer -version within 5 seconds")
        except OSError as e:
            raise ConfigurationError(f"{path} cannot be executed: {e}")
        if result.returncode != 0:
            raise ConfigurationError(f"{path} is not working properly")

    async def probe(self, video_path: Path) -> VideoMetadata:
        cmd = [
            self._ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(video_path),
        ]

        stdout, stderr = await asyncio.wait_for(
            self._run(cmd), timeout=PROBE_TIMEOUT_SECONDS
        )
        metadata = parse_probe_output(stdout.decode("utf-8", errors="replace"), video_path)

        logger.info(
            "Probed video",
            extra={
                "video": video_path.name,
                "duration": metadata.duration_seconds,
                "resolution": metadata.resolution_display,
            },
        )
        return metadata

    async def extract_still(
        self,
        video_path: Path,
        timestamp_seconds: float,
        output_path: Path,
        max_width: int = MAX_FRAME_WIDTH,
        max_height: int = MAX_FRAME_HEIGHT,
    ) -> None:
        # -ss before -i for fast seeking
        cmd = [
            self._ffmpeg,
            "-ss", str(timestamp_seconds),
            "-i", str(video_path),
            "-frames:v", "1",
            "-q:v", "2",
            "-vf", f"scale={max_width}:{max_height}:force_original_aspect_ratio=decrease",
            "-y",
            str(output_path),
        ]

        await self._run(cmd)

        if not output_path.exists():
            raise TranscoderError(f"ffmpeg produced no frame at {timestamp_seconds}s")

    async def _run(self, cmd: list[str]) -> tuple[bytes, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TranscoderError(f"Executable not found: {cmd[0]}") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise TranscoderError(
                f"{Path(cmd[0]).name} exited with code {process.returncode}: {message[-500:]}"
            )

        return stdout, stderr


class MockTranscoder:
    """
    Transcoder for local development without FFmpeg.

    Reports fixed metadata and draws a placeholder still for every
    timestamp. Any existing file is accepted as a video.
    """

    def __init__(
        self,
        duration_seconds: float = 30.0,
        width: int = 1280,
        height: int = 720,
    ) -> None:
        self._duration = duration_seconds
        self._width = width
        self._height = height
        logger.info("Initialized mock transcoder")

    async def probe(self, video_path: Path) -> VideoMetadata:
        return VideoMetadata(
            duration_seconds=self._duration,
            width=self._width,
            height=self._height,
            fps=30,
            format_name="mock",
            size_bytes=Path(video_path).stat().st_size,
        )

    async def extract_still(
        self,
        video_path: Path,
        timestamp_seconds: float,
        output_path: Path,
        max_width: int = MAX_FRAME_WIDTH,
        max_height: int = MAX_FRAME_HEIGHT,
    ) -> None:
        image = Image.new("RGB", (self._width, self._height), color=(32, 64, 128))
        draw = ImageDraw.Draw(image)
        draw.text((20, 20), f"{video_path.name} @ {timestamp_seconds:.1f}s", fill=(255, 255, 255))
        image.thumbnail((max_width, max_height))
        image.save(output_path, format="PNG")


def create_transcoder(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
) -> FFmpegTranscoder | MockTranscoder:
    """
    Factory function for the media transcoder.

    Args:
        mock_mode: If True, return the mock transcoder (no FFmpeg required)
        ffmpeg_path: Path to the ffmpeg binary
        ffprobe_path: Path to the ffprobe binary
    """
    if mock_mode:
        return MockTranscoder()

    return FFmpegTranscoder(ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
