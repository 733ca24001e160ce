"""
RPA analysis orchestration and prompt management.

This module turns a list of sampled frames into an AnalysisResult:
1. Thin the frames down to the analysis budget
2. Build one request: a domain system prompt plus a user turn with images
3. Call the vision model, retrying with exponential backoff
4. Hand the raw text to the response validator

The prompts live here, not in config, because they define what the
product does. Changing them changes every analysis.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from ..errors import AIServiceError, ConfigurationError, InvalidInputError
from .frames import DEFAULT_ANALYSIS_FRAME_BUDGET, select_best_frames
from .models import AnalysisResult, Frame
from .validation import validate_analysis_response

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class VisionClientError(Exception):
    """Raised by vision clients when a request fails."""
    pass


class VisionModelClient(Protocol):
    """
    Interface for vision-capable chat models.

    The analyzer doesn't care whether it talks to Azure OpenAI, Claude or
    a scripted fake. It needs one completion per call: a system prompt, a
    user prompt and images as data URIs in, free text out.
    """

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        image_data_uris: list[str],
    ) -> str:
        """Return the model's text answer."""
        ...

    async def test_connection(self) -> bool:
        """Cheap round trip to check credentials and endpoint. Never raises."""
        ...


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

RPA_SYSTEM_PROMPT_TEMPLATE = """# Video Analysis for RPA Automation with Power Automate Desktop

You are an expert RPA process analyst specialized in Power Automate Desktop.
Carefully analyze the video frames provided for the process: "{process_name}".

## Analysis Goals

1. **Identify RPA Actions**: find every action that can be automated
2. **Map to Power Automate Desktop**: associate each action with the correct action type
3. **Write Complete Test Cases**: create test scenarios that validate the automation

## Power Automate Desktop Actions to Consider

**UI Automation:**
- Click, DoubleClick, RightClick
- SendKeys (Type text)
- GetText, GetAttribute
- WaitForElement, ElementExists
- TakeScreenshot

**Window Management:**
- ActivateWindow, CloseWindow
- MaximizeWindow, MinimizeWindow
- GetWindowDetails

**File/Folder Operations:**
- CopyFile, MoveFile, DeleteFile
- CreateFolder, GetFileInfo
- ReadTextFile, WriteTextFile

**Web Automation:**
- NavigateToUrl, ClickElement
- FillTextField, SelectDropdown
- ExtractData, WaitForPageLoad

**Data Operations:**
- ReadFromExcel, WriteToExcel
- DatabaseQuery, ReadCSV
- ConvertData, FilterData

**Control Flow:**
- If/Else conditions
- Loop operations
- Wait actions
- Error handling (Try/Catch)
"""

RESPONSE_FORMAT_PROMPT = """
## Required Response Format

Answer with valid JSON only:

```json
{
  "summary": "Detailed description of the identified process and the automation goals",
  "confidence": 85,
  "rpaActions": [
    {
      "id": "action_001",
      "step": 1,
      "description": "Specific description of the action to automate",
      "actionType": "ClickElement",
      "category": "UI_AUTOMATION",
      "target": {
        "selector": "css:button[id='login-btn']",
        "description": "Main login button",
        "coordinates": { "x": 450, "y": 300 }
      },
      "parameters": {
        "clickType": "LeftClick",
        "waitBefore": 1000,
        "waitAfter": 2000
      },
      "prerequisites": [
        "Application must be open",
        "Username and password fields filled in"
      ],
      "errorHandling": {
        "strategy": "RetryOnFail",
        "maxRetries": 3,
        "timeoutMs": 5000,
        "fallbackAction": "TakeScreenshot"
      },
      "validation": {
        "expectedResult": "Redirect to the dashboard",
        "validationMethod": "CheckUrlContains",
        "validationValue": "/dashboard"
      }
    }
  ],
  "testCases": [
    {
      "id": "tc_001",
      "type": "positive",
      "category": "FUNCTIONAL",
      "title": "Login with valid credentials",
      "description": "Verify that the login process works with valid credentials",
      "priority": "high",
      "preconditions": [
        "Application reachable",
        "Valid credentials available"
      ],
      "steps": [
        {
          "step": 1,
          "action": "Open the application",
          "expectedResult": "Login page is shown",
          "rpaActionId": "action_001"
        }
      ],
      "expectedResult": "User logged in and on the dashboard",
      "dataRequirements": {
        "username": "test_user",
        "password": "test_password"
      },
      "estimatedDuration": "30 seconds"
    }
  ],
  "recommendations": [
    "Add retry logic to critical actions",
    "Take screenshots for debugging",
    "Set suitable timeouts for slow elements"
  ],
  "technicalNotes": {
    "complexity": "medium",
    "estimatedDevelopmentTime": "2-3 days",
    "riskFactors": [
      "UI changes",
      "Network dependency"
    ]
  }
}
```

Allowed values:
- category: UI_AUTOMATION, DATA_OPERATION, FILE_OPERATION, WEB_AUTOMATION, SYSTEM_OPERATION
- errorHandling.strategy: RetryOnFail, ContinueOnError, StopOnError, CustomHandler
- testCases[].type: positive, negative, edge
- testCases[].priority: high, medium, low

## Analysis Guidelines

1. **Precision**: every action must be implementable in Power Automate Desktop
2. **Robustness**: consider error handling and edge case scenarios
3. **Maintainability**: use stable selectors and configurable parameters
4. **Performance**: keep wait times and timeouts tight
5. **Testability**: every action must be verifiable

Now analyze the frames provided and produce the complete analysis.
"""

ANALYSIS_USER_PROMPT_TEMPLATE = (
    "Analyze these {selected_count} video frames (out of {total_count} total) to "
    "identify the RPA actions and write the test cases. Each frame shows a "
    "significant moment of the process to automate, in chronological order."
)


def build_system_prompt(process_name: str) -> str:
    return RPA_SYSTEM_PROMPT_TEMPLATE.format(process_name=process_name) + RESPONSE_FORMAT_PROMPT


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

@dataclass
class AnalyzerConfig:
    """
    Tuning for the analysis call.

    Passed in explicitly rather than read from the environment so tests
    can shrink delays or budgets without touching global state.
    """
    frame_budget: int = DEFAULT_ANALYSIS_FRAME_BUDGET
    max_attempts: int = 3
    retry_base_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.frame_budget < 1:
            raise ValueError("frame_budget must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_base_delay_ms < 0:
            raise ValueError("retry_base_delay_ms cannot be negative")

    def backoff_seconds(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (1-based): base * 2^(attempt-1)."""
        return self.retry_base_delay_ms * (2 ** (attempt - 1)) / 1000


@dataclass(frozen=True)
class AnalysisRequest:
    """Everything sent to the model in one call."""
    system_prompt: str
    user_prompt: str
    frames: tuple[Frame, ...]
    total_frames: int

    @property
    def image_data_uris(self) -> list[str]:
        return [frame.data_uri for frame in self.frames]


class RPAAnalyzer:
    """
    Orchestrates one AI analysis of a recording.

    Stateless between calls: each call builds its own request and retry
    loop. Returns a complete AnalysisResult (possibly the fallback) or
    raises AIServiceError once the retry budget is spent.
    """

    def __init__(
        self,
        vision_client: VisionModelClient,
        config: AnalyzerConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._vision_client = vision_client
        self._config = config or AnalyzerConfig()
        self._sleep = sleep

    @property
    def config(self) -> AnalyzerConfig:
        return self._config

    async def analyze_frames_for_rpa(
        self,
        frames: Sequence[Frame],
        process_name: str,
    ) -> AnalysisResult:
        """Analyze frames of a recorded process and return validated results."""
        if not frames:
            raise InvalidInputError("At least one frame is required for analysis")

        request = self.build_request(frames, process_name)

        logger.info(
            "Starting RPA analysis",
            extra={
                "process_name": process_name,
                "frames_total": request.total_frames,
                "frames_selected": len(request.frames),
            },
        )

        raw_response = await self._complete_with_retry(request)
        outcome = validate_analysis_response(raw_response)

        logger.info(
            "RPA analysis complete",
            extra={
                "status": outcome.status.value,
                "actions": len(outcome.result.rpa_actions),
                "test_cases": len(outcome.result.test_cases),
                "confidence": outcome.result.confidence,
            },
        )

        return outcome.result

    def build_request(self, frames: Sequence[Frame], process_name: str) -> AnalysisRequest:
        selected = select_best_frames(frames, self._config.frame_budget)

        return AnalysisRequest(
            system_prompt=build_system_prompt(process_name),
            user_prompt=ANALYSIS_USER_PROMPT_TEMPLATE.format(
                selected_count=len(selected),
                total_count=len(frames),
            ),
            frames=tuple(selected),
            total_frames=len(frames),
        )

    async def _complete_with_retry(self, request: AnalysisRequest) -> str:
        """
        Call the model up to max_attempts times.

        An empty body counts as a failure. Configuration problems are not
        retried; they won't fix themselves between attempts.
        """
        max_attempts = self._config.max_attempts
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"AI call attempt {attempt}/{max_attempts}")

            try:
                content = await self._vision_client.complete(
                    system_prompt=request.system_prompt,
                    user_prompt=request.user_prompt,
                    image_data_uris=request.image_data_uris,
                )
                if not content or not content.strip():
                    raise VisionClientError("Empty response from AI service")

                logger.info("AI response received", extra={"attempt": attempt})
                return content

            except ConfigurationError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"AI call attempt {attempt} failed: {e}")

            if attempt < max_attempts:
                delay = self._config.backoff_seconds(attempt)
                logger.info(f"Waiting {delay * 1000:.0f}ms before next attempt")
                await self._sleep(delay)

        raise AIServiceError(
            f"AI service failed after {max_attempts} attempts: {last_error}"
        )
