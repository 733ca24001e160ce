"""
FastAPI dependency injection.

Dependencies provide configuration and the analysis pipeline to route
handlers. Using dependency injection means:
- Routes don't instantiate their own collaborators (easier to test)
- Tests swap in fakes with app.dependency_overrides
- Configuration is centralized

Pipelines are built per request, but the transcoder is built and
verified once per binary configuration and shared. The vision client is
only created for operations that call the model, so frame extraction
and document generation keep working when AI credentials are missing.
"""

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Awaitable, Callable

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.analysis.analyzer import AnalyzerConfig, RPAAnalyzer
from ..core.analysis.frames import FrameSampler, MediaTranscoder
from ..core.pipeline import RPAAnalysisPipeline
from ..infrastructure.documents import FileDocumentWriter
from ..infrastructure.video import create_transcoder
from ..infrastructure.vision import create_vision_client

logger = logging.getLogger(__name__)

PipelineBuilder = Callable[[bool], Awaitable[RPAAnalysisPipeline]]


@lru_cache()
def get_transcoder(mock_mode: bool, ffmpeg_path: str, ffprobe_path: str) -> MediaTranscoder:
    """
    Cached transcoder per binary configuration.

    Verification runs the binaries synchronously, so it happens once here
    instead of on every request. Failures are not cached: a ConfigurationError
    propagates and the next call tries again.
    """
    return create_transcoder(
        mock_mode=mock_mode,
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
    )


async def load_transcoder(settings: Settings) -> MediaTranscoder:
    """get_transcoder off the event loop."""
    return await asyncio.to_thread(
        get_transcoder,
        settings.transcoder_mock_mode,
        settings.ffmpeg_path,
        settings.ffprobe_path,
    )


def build_pipeline(
    settings: Settings,
    transcoder: MediaTranscoder,
    with_analyzer: bool = True,
) -> RPAAnalysisPipeline:
    """
    Assemble a pipeline from settings.

    Raises ConfigurationError when the vision client can't be configured
    (missing AI credentials).
    """
    sampler = FrameSampler(
        transcoder,
        temp_root=Path(settings.temp_dir),
        frame_timeout_seconds=settings.frame_timeout_seconds,
    )

    analyzer = None
    if with_analyzer:
        analyzer = RPAAnalyzer(
            create_vision_client(settings),
            AnalyzerConfig(
                frame_budget=settings.analysis_frame_budget,
                max_attempts=settings.ai_max_attempts,
                retry_base_delay_ms=settings.ai_retry_base_delay_ms,
            ),
        )

    logger.debug("Built analysis pipeline", extra={"with_analyzer": with_analyzer})

    return RPAAnalysisPipeline(
        sampler=sampler,
        analyzer=analyzer,
        writer=FileDocumentWriter(Path(settings.output_dir)),
        default_author=settings.default_author,
        default_version=settings.default_version,
        default_frame_interval=settings.frame_interval_seconds,
        default_max_frames=settings.max_frames,
    )


def get_pipeline_builder(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PipelineBuilder:
    """
    Provide a pipeline builder rather than a pipeline.

    Construction can fail with a ConfigurationError, and the RPC layer
    has to report that as a JSON-RPC error, not an HTTP 500. Deferring
    the build into the handler makes that possible.
    """
    async def builder(with_analyzer: bool = True) -> RPAAnalysisPipeline:
        transcoder = await load_transcoder(settings)
        return build_pipeline(settings, transcoder, with_analyzer=with_analyzer)

    return builder


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_settings)]
PipelineBuilderDep = Annotated[PipelineBuilder, Depends(get_pipeline_builder)]
