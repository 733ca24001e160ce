"""
Video processing infrastructure.

Media transcoders used by the frame sampler:
- FFmpegTranscoder: ffprobe metadata and ffmpeg still extraction
- MockTranscoder: placeholder stills for development without FFmpeg
"""

from .processor import (
    FFmpegTranscoder,
    MockTranscoder,
    create_transcoder,
    parse_frame_rate,
    parse_probe_output,
)

__all__ = [
    "FFmpegTranscoder",
    "MockTranscoder",
    "create_transcoder",
    "parse_frame_rate",
    "parse_probe_output",
]
