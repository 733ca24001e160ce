"""
Domain models for video-to-RPA analysis.

These models represent the core business concepts: sampled frames, the
automation actions the AI identified, and the test cases that validate
them. They have no dependencies on external frameworks, SDKs or the
filesystem.

Everything here is frozen. Validation and normalization produce new
values instead of mutating what came in, and sequences are tuples so a
result handed to one consumer can't be changed under another.

`to_dict()` produces the camelCase wire shape, the same shape the AI is
asked to answer in, so a serialized result can be parsed back unchanged.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ActionCategory(Enum):
    """Broad families of automation primitives."""
    UI_AUTOMATION = "UI_AUTOMATION"
    DATA_OPERATION = "DATA_OPERATION"
    FILE_OPERATION = "FILE_OPERATION"
    WEB_AUTOMATION = "WEB_AUTOMATION"
    SYSTEM_OPERATION = "SYSTEM_OPERATION"


class ErrorStrategy(Enum):
    """What the robot does when an action fails."""
    RETRY_ON_FAIL = "RetryOnFail"
    CONTINUE_ON_ERROR = "ContinueOnError"
    STOP_ON_ERROR = "StopOnError"
    CUSTOM_HANDLER = "CustomHandler"


class Level(Enum):
    """Three-step scale used for complexity and risk."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TestCaseType(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    EDGE = "edge"


class TestCaseCategory(Enum):
    FUNCTIONAL = "FUNCTIONAL"
    INTEGRATION = "INTEGRATION"
    PERFORMANCE = "PERFORMANCE"
    SECURITY = "SECURITY"
    USABILITY = "USABILITY"


class TestCasePriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AutomationLevel(Enum):
    MANUAL = "MANUAL"
    SEMI_AUTOMATED = "SEMI_AUTOMATED"
    FULLY_AUTOMATED = "FULLY_AUTOMATED"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Optional fields are omitted from the wire shape rather than sent as null."""
    return {key: value for key, value in data.items() if value is not None}


def freeze(value: Any) -> Any:
    """
    Read-only copy of a JSON-like value.

    Free-form bags (action parameters, test data) come straight from the
    model, so they are copied deeply: mappings become MappingProxyType and
    lists become tuples.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze: plain dicts and lists, ready for json.dumps."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Video and Frames
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VideoMetadata:
    """
    What the transcoder knows about a video file.

    Computed once per extraction call; never persisted.
    """
    duration_seconds: float
    width: int
    height: int
    fps: int
    format_name: str
    size_bytes: int

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("Video duration cannot be negative")

    @property
    def resolution_display(self) -> str:
        return f"{self.width}x{self.height}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration_seconds,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "format": self.format_name,
            "size": self.size_bytes,
        }


@dataclass(frozen=True)
class Frame:
    """
    A still image sampled from a video.

    `file_path` points into the extraction session's directory and is only
    valid while that session is open. The `base64` payload is what travels
    onward, so a frame stays usable after its session is closed.
    """
    id: str
    timestamp_seconds: float
    frame_number: int  # 1-based
    width: int
    height: int
    base64: str
    file_path: str
    media_type: str = "image/png"

    def __post_init__(self) -> None:
        if self.timestamp_seconds < 0:
            raise ValueError("Frame timestamp cannot be negative")
        if self.frame_number < 1:
            raise ValueError("Frame numbers are 1-based")

    @property
    def data_uri(self) -> str:
        return f"data:{self.media_type};base64,{self.base64}"

    @property
    def timestamp_formatted(self) -> str:
        """Human-readable format: MM:SS.ms"""
        minutes = int(self.timestamp_seconds // 60)
        secs = self.timestamp_seconds % 60
        return f"{minutes:02d}:{secs:05.2f}"

    @property
    def size_bytes(self) -> int:
        """Decoded payload size, computed from the base64 length."""
        padding = self.base64.count("=", -2)
        return (len(self.base64) * 3) // 4 - padding

    def to_dict(self, include_payload: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp_seconds,
            "frameNumber": self.frame_number,
            "width": self.width,
            "height": self.height,
            "sizeBytes": self.size_bytes,
        }
        if include_payload:
            data["base64"] = self.base64
        return data


# ---------------------------------------------------------------------------
# RPA Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActionTarget:
    """Where on screen (or in the DOM) an action applies."""
    selector: Optional[str] = None
    description: Optional[str] = None
    coordinates: Optional[tuple[int, int]] = None  # x, y
    element: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        coordinates = None
        if self.coordinates is not None:
            coordinates = {"x": self.coordinates[0], "y": self.coordinates[1]}
        return _drop_none({
            "selector": self.selector,
            "description": self.description,
            "coordinates": coordinates,
            "element": self.element,
        })


@dataclass(frozen=True)
class ErrorHandlingPolicy:
    strategy: ErrorStrategy
    max_retries: Optional[int] = None
    timeout_ms: Optional[int] = None
    fallback_action: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "strategy": self.strategy.value,
            "maxRetries": self.max_retries,
            "timeoutMs": self.timeout_ms,
            "fallbackAction": self.fallback_action,
            "errorMessage": self.error_message,
        })


@dataclass(frozen=True)
class ActionValidation:
    """How to tell that an action did what it was supposed to."""
    expected_result: Optional[str] = None
    validation_method: Optional[str] = None
    validation_value: Optional[str] = None
    success_criteria: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "expectedResult": self.expected_result,
            "validationMethod": self.validation_method,
            "validationValue": self.validation_value,
            "successCriteria": (
                list(self.success_criteria) if self.success_criteria is not None else None
            ),
        })


@dataclass(frozen=True)
class RPAAction:
    """
    A single automatable step observed in the recording.

    `action_type` is free-form on purpose: it names a primitive of the
    target automation tool (ClickElement, SendKeys, ReadFromExcel, ...)
    and that vocabulary is owned by the tool, not by us.
    """
    id: str
    step: int
    description: str
    action_type: str
    category: ActionCategory = ActionCategory.UI_AUTOMATION
    target: Optional[ActionTarget] = None
    parameters: Mapping[str, Any] = field(default_factory=dict)
    prerequisites: tuple[str, ...] = ()
    error_handling: Optional[ErrorHandlingPolicy] = None
    validation: Optional[ActionValidation] = None
    estimated_duration: Optional[str] = None
    complexity: Optional[Level] = None
    risk_level: Optional[Level] = None

    def __post_init__(self) -> None:
        if self.step < 1:
            raise ValueError("Action steps are 1-based")
        object.__setattr__(self, "parameters", freeze(self.parameters))

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "step": self.step,
            "description": self.description,
            "actionType": self.action_type,
            "category": self.category.value,
            "target": self.target.to_dict() if self.target else None,
            "parameters": thaw(self.parameters),
            "prerequisites": list(self.prerequisites),
            "errorHandling": self.error_handling.to_dict() if self.error_handling else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "estimatedDuration": self.estimated_duration,
            "complexity": self.complexity.value if self.complexity else None,
            "riskLevel": self.risk_level.value if self.risk_level else None,
        })


# ---------------------------------------------------------------------------
# Test Cases
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestCaseStep:
    step: int
    action: str
    expected_result: str
    rpa_action_id: Optional[str] = None
    data: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if self.data is not None:
            object.__setattr__(self, "data", freeze(self.data))

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "step": self.step,
            "action": self.action,
            "expectedResult": self.expected_result,
            "rpaActionId": self.rpa_action_id,
            "data": thaw(self.data) if self.data is not None else None,
        })


@dataclass(frozen=True)
class TestCase:
    """A scenario that validates the automation built from the actions."""
    id: str
    type: TestCaseType
    title: str
    description: str
    category: TestCaseCategory = TestCaseCategory.FUNCTIONAL
    priority: TestCasePriority = TestCasePriority.MEDIUM
    preconditions: tuple[str, ...] = ()
    steps: tuple[TestCaseStep, ...] = ()
    expected_result: Optional[str] = None
    data_requirements: Optional[Mapping[str, Any]] = None
    estimated_duration: Optional[str] = None
    tags: tuple[str, ...] = ()
    automation_level: Optional[AutomationLevel] = None

    # stop pytest from collecting this as a test class
    __test__ = False

    def __post_init__(self) -> None:
        if self.data_requirements is not None:
            object.__setattr__(self, "data_requirements", freeze(self.data_requirements))

    def to_dict(self) -> dict[str, Any]:
        data = _drop_none({
            "id": self.id,
            "type": self.type.value,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "preconditions": list(self.preconditions),
            "steps": [step.to_dict() for step in self.steps],
            "expectedResult": self.expected_result,
            "dataRequirements": (
                thaw(self.data_requirements) if self.data_requirements is not None else None
            ),
            "estimatedDuration": self.estimated_duration,
            "automationLevel": self.automation_level.value if self.automation_level else None,
        })
        if self.tags:
            data["tags"] = list(self.tags)
        return data


# ---------------------------------------------------------------------------
# Analysis Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TechnicalNotes:
    """The AI's own estimate of how hard the automation will be."""
    complexity: Optional[Level] = None
    estimated_development_time: Optional[str] = None
    risk_factors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "complexity": self.complexity.value.lower() if self.complexity else None,
            "estimatedDevelopmentTime": self.estimated_development_time,
            "riskFactors": list(self.risk_factors),
        })


@dataclass(frozen=True)
class AnalysisResult:
    """
    The validated outcome of analyzing a recording.

    `rpa_actions` and `test_cases` are always present; "nothing found" is
    an empty tuple, never a missing field.
    """
    summary: str
    rpa_actions: tuple[RPAAction, ...] = ()
    test_cases: tuple[TestCase, ...] = ()
    recommendations: tuple[str, ...] = ()
    confidence: int = 75
    technical_notes: Optional[TechnicalNotes] = None

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError("confidence must be between 0 and 100")

    @property
    def is_empty(self) -> bool:
        return not self.rpa_actions and not self.test_cases

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "confidence": self.confidence,
            "rpaActions": [action.to_dict() for action in self.rpa_actions],
            "testCases": [test_case.to_dict() for test_case in self.test_cases],
            "recommendations": list(self.recommendations),
        }
        if self.technical_notes is not None:
            data["technicalNotes"] = self.technical_notes.to_dict()
        return data
