"""
Video-to-RPA analysis logic.

Contains the domain models, frame sampling and selection, the AI
analysis orchestrator and the response validator.
"""

from .models import (
    ActionCategory,
    AnalysisResult,
    ErrorStrategy,
    Frame,
    Level,
    RPAAction,
    TechnicalNotes,
    TestCase,
    TestCaseType,
    VideoMetadata,
)
from .frames import FrameExtraction, FrameSampler, FrameSession, select_best_frames
from .analyzer import AnalyzerConfig, RPAAnalyzer, VisionClientError, VisionModelClient
from .validation import ParseOutcome, parse_analysis_response, validate_analysis_response

__all__ = [
    "ActionCategory",
    "AnalysisResult",
    "ErrorStrategy",
    "Frame",
    "Level",
    "RPAAction",
    "TechnicalNotes",
    "TestCase",
    "TestCaseType",
    "VideoMetadata",
    "FrameExtraction",
    "FrameSampler",
    "FrameSession",
    "select_best_frames",
    "AnalyzerConfig",
    "RPAAnalyzer",
    "VisionClientError",
    "VisionModelClient",
    "ParseOutcome",
    "parse_analysis_response",
    "validate_analysis_response",
]
