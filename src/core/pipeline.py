"""
End-to-end video-to-document pipeline.

The pipeline is the only place that knows the order of the steps:
sample frames, analyze them, build a document, hand it to a writer. Each
step is a collaborator passed in at construction, so the same pipeline
runs against ffmpeg and a real model in production and against fakes in
tests.

Every public operation either returns a complete outcome or raises a
PipelineError. A partially written document is never reported back.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

from .documents import (
    OutputFormat,
    PreparedDocument,
    ProcessDocument,
    TemplateType,
    prepare_document,
)
from .errors import ConfigurationError, InvalidInputError, RenderError
from .analysis.analyzer import RPAAnalyzer
from .analysis.frames import FrameSampler
from .analysis.models import AnalysisResult, Frame, VideoMetadata
from .analysis.validation import validate_analysis_data

logger = logging.getLogger(__name__)


class DocumentWriter(Protocol):
    """Persists a prepared document and returns where it landed."""

    async def write(self, prepared: PreparedDocument) -> Path:
        ...


def format_file_size(size_bytes: int) -> str:
    """1536 -> '1.5 KB'. Binary units, one decimal place above bytes."""
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            return f"{size:.1f} {unit}"
    return f"{size:.1f} GB"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VideoAnalysisOutcome:
    process_name: str
    frames_extracted: int
    frames_analyzed: int
    analysis: AnalysisResult
    document_path: Path
    document: ProcessDocument

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "processName": self.process_name,
            "framesExtracted": self.frames_extracted,
            "framesAnalyzed": self.frames_analyzed,
            "analysis": self.analysis.to_dict(),
            "documentPath": str(self.document_path),
            "document": self.document.to_dict(),
        }


@dataclass(frozen=True)
class DocumentOutcome:
    document_path: Path
    document: ProcessDocument

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "documentPath": str(self.document_path),
            "document": self.document.to_dict(),
        }


@dataclass(frozen=True)
class VideoInspection:
    video_path: Path
    valid: bool
    estimated_processing_seconds: float
    metadata: Optional[VideoMetadata] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": True,
            "videoPath": str(self.video_path),
            "valid": self.valid,
            "estimatedProcessingSeconds": self.estimated_processing_seconds,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass(frozen=True)
class FrameExtractionOutcome:
    metadata: VideoMetadata
    frames: tuple[Frame, ...]

    @property
    def total_size_bytes(self) -> int:
        return sum(frame.size_bytes for frame in self.frames)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "metadata": self.metadata.to_dict(),
            "frameCount": len(self.frames),
            "totalSize": format_file_size(self.total_size_bytes),
            "frames": [frame.to_dict() for frame in self.frames],
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class RPAAnalysisPipeline:
    """
    Wires sampler, analyzer and writer into the three public operations.

    Holds no per-call state. Concurrent calls each get their own frame
    session directory.

    The analyzer is optional: without one, frame extraction and document
    generation still work and analyze_video raises ConfigurationError.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        analyzer: Optional[RPAAnalyzer],
        writer: DocumentWriter,
        default_author: Optional[str] = None,
        default_version: Optional[str] = None,
        default_frame_interval: float = 5,
        default_max_frames: int = 50,
    ) -> None:
        if default_frame_interval <= 0:
            raise ValueError("default_frame_interval must be positive")
        if default_max_frames < 1:
            raise ValueError("default_max_frames must be at least 1")

        self._sampler = sampler
        self._analyzer = analyzer
        self._writer = writer
        self._default_author = default_author
        self._default_version = default_version
        self._default_frame_interval = default_frame_interval
        self._default_max_frames = default_max_frames

    async def analyze_video(
        self,
        video_path: Path,
        process_name: str,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        frame_interval: Optional[float] = None,
        max_frames: Optional[int] = None,
        template_type: TemplateType = TemplateType.STANDARD,
        author: Optional[str] = None,
    ) -> VideoAnalysisOutcome:
        """
        Run the full pipeline on one recording.

        The frame session stays open until analysis is finished and is
        removed on every exit path. Sampling parameters left as None use
        the pipeline defaults.
        """
        if self._analyzer is None:
            raise ConfigurationError("No vision model is configured for analysis")
        if not process_name or not process_name.strip():
            raise InvalidInputError("process_name is required")

        logger.info(
            "Starting video analysis",
            extra={"video": str(video_path), "process_name": process_name},
        )

        async with self._sampler.session() as session:
            frames = await self._sampler.extract_frames(
                video_path,
                interval_seconds=self._interval(frame_interval),
                max_frames=self._max_frames(max_frames),
                session=session,
            )
            analysis = await self._analyzer.analyze_frames_for_rpa(frames, process_name)

        frames_analyzed = min(len(frames), self._analyzer.config.frame_budget)

        prepared, path = await self._render(
            process_name, analysis, output_format, template_type, author
        )

        logger.info(
            "Video analysis complete",
            extra={
                "process_name": process_name,
                "frames_extracted": len(frames),
                "document_path": str(path),
            },
        )

        return VideoAnalysisOutcome(
            process_name=process_name,
            frames_extracted=len(frames),
            frames_analyzed=frames_analyzed,
            analysis=analysis,
            document_path=path,
            document=prepared.document,
        )

    async def generate_document(
        self,
        process_data: Any,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        template_type: TemplateType = TemplateType.STANDARD,
        author: Optional[str] = None,
    ) -> DocumentOutcome:
        """
        Build a document from caller-supplied analysis data.

        The data goes through the same normalization as an AI response.
        Data the validator would replace with the fallback result is
        rejected instead, since there is no analysis to fall back from.
        """
        if not isinstance(process_data, dict):
            raise InvalidInputError("process_data must be an object")

        process_name = process_data.get("processName")
        if not isinstance(process_name, str) or not process_name.strip():
            raise InvalidInputError("process_data.processName is required")

        outcome = validate_analysis_data(process_data)
        if outcome.is_fallback:
            raise InvalidInputError(f"Invalid process data: {outcome.reason}")

        prepared, path = await self._render(
            process_name, outcome.result, output_format, template_type, author
        )
        return DocumentOutcome(document_path=path, document=prepared.document)

    async def extract_frames(
        self,
        video_path: Path,
        interval: Optional[float] = None,
        max_frames: Optional[int] = None,
    ) -> FrameExtractionOutcome:
        extraction = await self._sampler.sample(
            video_path,
            interval_seconds=self._interval(interval),
            max_frames=self._max_frames(max_frames),
        )
        return FrameExtractionOutcome(
            metadata=extraction.metadata,
            frames=extraction.frames,
        )

    async def inspect_video(
        self,
        video_path: Path,
        interval: Optional[float] = None,
    ) -> VideoInspection:
        """
        Check a recording without extracting anything.

        Never raises for a bad file: an unreadable or unsupported video is
        reported as invalid with the fallback time estimate.
        """
        interval = self._interval(interval)
        valid = await self._sampler.validate_video_file(video_path)
        metadata = await self._sampler.get_video_metadata(video_path) if valid else None
        estimate = await self._sampler.estimate_processing_time(video_path, interval)
        return VideoInspection(
            video_path=Path(video_path),
            valid=valid,
            estimated_processing_seconds=estimate,
            metadata=metadata,
        )

    def _interval(self, interval: Optional[float]) -> float:
        return self._default_frame_interval if interval is None else interval

    def _max_frames(self, max_frames: Optional[int]) -> int:
        return self._default_max_frames if max_frames is None else max_frames

    async def _render(
        self,
        process_name: str,
        analysis: AnalysisResult,
        output_format: OutputFormat,
        template_type: TemplateType,
        author: Optional[str],
        now: Optional[datetime] = None,
    ) -> tuple[PreparedDocument, Path]:
        try:
            prepared = prepare_document(
                process_name,
                analysis,
                output_format=output_format,
                template_type=template_type,
                author=author or self._default_author,
                version=self._default_version,
                now=now,
            )
        except (ValueError, TypeError, KeyError) as e:
            raise RenderError(f"Failed to build document: {e}") from e

        path = await self._writer.write(prepared)
        return prepared, path
