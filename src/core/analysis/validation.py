"""
Validation of free-text AI responses.

The model is asked to answer with JSON, but what comes back is untrusted
text: the JSON may be wrapped in prose or a markdown fence, fields may be
missing, enum values may be invented. This module is the gate between that
text and the typed AnalysisResult.

Two rules:
- Only the outer parse can fail. If no JSON object is found, or it lacks a
  summary and the action/test-case arrays, the whole response falls back
  to a fixed, always-valid result.
- Individual entries are never rejected. A sparse action or test case is
  completed with defaults so everything downstream sees fully populated
  entities.

Nothing here raises. Callers get a ParseOutcome (or just its result).
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, TypeVar
from uuid import uuid4

from .models import (
    ActionCategory,
    ActionTarget,
    ActionValidation,
    AnalysisResult,
    AutomationLevel,
    ErrorHandlingPolicy,
    ErrorStrategy,
    Level,
    RPAAction,
    TechnicalNotes,
    TestCase,
    TestCaseCategory,
    TestCasePriority,
    TestCaseStep,
    TestCaseType,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

DEFAULT_CONFIDENCE = 75

FALLBACK_SUMMARY = "Automatic video analysis failed. Manual analysis required."
FALLBACK_RECOMMENDATIONS = (
    "Check the video quality",
    "Check that the process actions are clearly visible",
)

FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")
BARE_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class ParseStatus(Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ParseOutcome:
    """
    Result of validating one AI response.

    `reason` explains a fallback; it is None on success.
    """
    status: ParseStatus
    result: AnalysisResult
    reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.status is ParseStatus.FALLBACK


def fallback_result() -> AnalysisResult:
    """The fixed result used when a response can't be understood."""
    return AnalysisResult(
        summary=FALLBACK_SUMMARY,
        rpa_actions=(),
        test_cases=(),
        recommendations=FALLBACK_RECOMMENDATIONS,
        confidence=0,
    )


def parse_analysis_response(text: str) -> AnalysisResult:
    """Validate an AI response, returning the fallback result on failure."""
    return validate_analysis_response(text).result


def validate_analysis_response(text: str) -> ParseOutcome:
    """Validate an AI response and report whether it fell back."""
    candidate = extract_json_candidate(text or "")
    if candidate is None:
        return _fallback("No JSON object found in response", text)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        return _fallback(f"Invalid JSON: {e.msg}", text)

    return validate_analysis_data(parsed, raw_text=text)


def validate_analysis_data(parsed: Any, raw_text: str = "") -> ParseOutcome:
    """
    Validate already-decoded analysis data.

    Used for AI responses after JSON extraction and for structured data
    supplied directly by callers, which is just as untrusted.
    """
    if not isinstance(parsed, dict):
        return _fallback("Response JSON is not an object", raw_text)

    summary = parsed.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return _fallback("Missing summary", raw_text)
    if not isinstance(parsed.get("rpaActions"), list):
        return _fallback("rpaActions is not a list", raw_text)
    if not isinstance(parsed.get("testCases"), list):
        return _fallback("testCases is not a list", raw_text)

    result = AnalysisResult(
        summary=summary,
        rpa_actions=tuple(normalize_action(item) for item in parsed["rpaActions"]),
        test_cases=tuple(normalize_test_case(item) for item in parsed["testCases"]),
        recommendations=_string_tuple(parsed.get("recommendations")),
        confidence=_confidence(parsed.get("confidence")),
        technical_notes=_technical_notes(parsed.get("technicalNotes")),
    )

    return ParseOutcome(status=ParseStatus.SUCCESS, result=result)


def extract_json_candidate(text: str) -> Optional[str]:
    """
    Find the JSON object embedded in a response.

    A ```json fence wins; otherwise take the widest {...} span, from the
    first opening brace to the last closing one.
    """
    fenced = FENCED_JSON_PATTERN.search(text)
    if fenced:
        return fenced.group(1)

    bare = BARE_OBJECT_PATTERN.search(text)
    if bare:
        return bare.group(0)

    return None


# ---------------------------------------------------------------------------
# Entry Normalization
# ---------------------------------------------------------------------------

def normalize_action(raw: Any) -> RPAAction:
    """Build a complete RPAAction from whatever the model sent."""
    data = raw if isinstance(raw, dict) else {}

    return RPAAction(
        id=_text(data.get("id")) or f"action_{uuid4().hex[:12]}",
        step=_positive_int(data.get("step"), default=1),
        description=_text(data.get("description")) or "Action not specified",
        action_type=_text(data.get("actionType")) or "Unknown",
        category=_enum(ActionCategory, data.get("category"), ActionCategory.UI_AUTOMATION),
        target=_target(data.get("target")),
        parameters=_mapping(data.get("parameters")) or {},
        prerequisites=_string_tuple(data.get("prerequisites")),
        error_handling=_error_handling(data.get("errorHandling")),
        validation=_action_validation(data.get("validation")),
        estimated_duration=_text(data.get("estimatedDuration")),
        complexity=_optional_level(data.get("complexity")),
        risk_level=_optional_level(data.get("riskLevel")),
    )


def normalize_test_case(raw: Any) -> TestCase:
    """Build a complete TestCase from whatever the model sent."""
    data = raw if isinstance(raw, dict) else {}

    raw_steps = data.get("steps")
    steps = tuple(
        _test_step(item, position)
        for position, item in enumerate(raw_steps if isinstance(raw_steps, list) else [], 1)
    )

    return TestCase(
        id=_text(data.get("id")) or f"tc_{uuid4().hex[:12]}",
        type=_enum(TestCaseType, data.get("type"), TestCaseType.POSITIVE),
        category=_enum(TestCaseCategory, data.get("category"), TestCaseCategory.FUNCTIONAL),
        title=_text(data.get("title")) or "Untitled test case",
        description=_text(data.get("description")) or "No description available",
        priority=_enum(TestCasePriority, data.get("priority"), TestCasePriority.MEDIUM),
        preconditions=_string_tuple(data.get("preconditions")),
        steps=steps,
        expected_result=_text(data.get("expectedResult")) or "Result not specified",
        data_requirements=_mapping(data.get("dataRequirements")),
        estimated_duration=_text(data.get("estimatedDuration")),
        tags=_string_tuple(data.get("tags")),
        automation_level=_optional_enum(AutomationLevel, data.get("automationLevel")),
    )


def _test_step(raw: Any, position: int) -> TestCaseStep:
    data = raw if isinstance(raw, dict) else {}
    return TestCaseStep(
        step=_positive_int(data.get("step"), default=position),
        action=_text(data.get("action")) or "Action not specified",
        expected_result=_text(data.get("expectedResult")) or "Result not specified",
        rpa_action_id=_text(data.get("rpaActionId")),
        data=_mapping(data.get("data")),
    )


def _target(raw: Any) -> Optional[ActionTarget]:
    if not isinstance(raw, dict):
        return None

    coordinates = None
    raw_coordinates = raw.get("coordinates")
    if isinstance(raw_coordinates, dict):
        x = _int_or_none(raw_coordinates.get("x"))
        y = _int_or_none(raw_coordinates.get("y"))
        if x is not None and y is not None:
            coordinates = (x, y)

    return ActionTarget(
        selector=_text(raw.get("selector")),
        description=_text(raw.get("description")),
        coordinates=coordinates,
        element=_text(raw.get("element")),
    )


def _error_handling(raw: Any) -> Optional[ErrorHandlingPolicy]:
    if not isinstance(raw, dict):
        return None

    strategy = _optional_enum(ErrorStrategy, raw.get("strategy"))
    if strategy is None:
        # a policy without a usable strategy can't be acted on
        logger.warning(
            "Discarding error handling policy with unknown strategy",
            extra={"strategy": raw.get("strategy")},
        )
        return None

    return ErrorHandlingPolicy(
        strategy=strategy,
        max_retries=_int_or_none(raw.get("maxRetries")),
        timeout_ms=_int_or_none(raw.get("timeoutMs")),
        fallback_action=_text(raw.get("fallbackAction")),
        error_message=_text(raw.get("errorMessage")),
    )


def _action_validation(raw: Any) -> Optional[ActionValidation]:
    if not isinstance(raw, dict):
        return None

    criteria = raw.get("successCriteria")
    return ActionValidation(
        expected_result=_text(raw.get("expectedResult")),
        validation_method=_text(raw.get("validationMethod")),
        validation_value=_text(raw.get("validationValue")),
        success_criteria=_string_tuple(criteria) if isinstance(criteria, list) else None,
    )


def _technical_notes(raw: Any) -> Optional[TechnicalNotes]:
    if not isinstance(raw, dict):
        return None

    return TechnicalNotes(
        complexity=_optional_level(raw.get("complexity")),
        estimated_development_time=_text(raw.get("estimatedDevelopmentTime")),
        risk_factors=_string_tuple(raw.get("riskFactors")),
    )


# ---------------------------------------------------------------------------
# Field Coercion
# ---------------------------------------------------------------------------

def _text(value: Any) -> Optional[str]:
    """Non-empty string or None. Numbers are accepted and stringified."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _positive_int(value: Any, default: int) -> int:
    number = _int_or_none(value)
    if number is None or number < 1:
        return default
    return number


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in (_text(entry) for entry in value) if item is not None)


def _mapping(value: Any) -> Optional[dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    return dict(value)


def _enum(enum_type: type[E], value: Any, default: E) -> E:
    member = _optional_enum(enum_type, value)
    if member is None:
        if value is not None:
            logger.warning(
                f"Unknown {enum_type.__name__} value, using default",
                extra={"value": value, "default": default.value},
            )
        return default
    return member


def _optional_enum(enum_type: type[E], value: Any) -> Optional[E]:
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value)
    except ValueError:
        pass
    # tolerate case differences ("Positive", "ui_automation")
    for member in enum_type:
        if member.value.lower() == value.strip().lower():
            return member
    return None


def _optional_level(value: Any) -> Optional[Level]:
    return _optional_enum(Level, value)


def _confidence(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if value != value:  # NaN
        return DEFAULT_CONFIDENCE
    return int(round(min(max(value, 0), 100)))


def _fallback(reason: str, raw_text: str) -> ParseOutcome:
    logger.error("Failed to parse AI response, using fallback", extra={"reason": reason})
    logger.debug("Unparseable AI response", extra={"content": raw_text})
    return ParseOutcome(
        status=ParseStatus.FALLBACK,
        result=fallback_result(),
        reason=reason,
    )
