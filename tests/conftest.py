"""
Shared fixtures for the unit tests.

The fakes here implement the same Protocols as the production
collaborators, so tests exercise real pipeline code end to end without
FFmpeg or an AI service.
"""

import asyncio
import base64
import io
from pathlib import Path
from uuid import uuid4

import pytest
from PIL import Image

from src.core.analysis.frames import TranscoderError
from src.core.analysis.models import Frame, VideoMetadata


def png_bytes(width: int = 64, height: int = 48) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTranscoder:
    """
    Scriptable MediaTranscoder.

    Timestamps in `failing` raise TranscoderError; timestamps in `hanging`
    never finish (so the sampler's timeout kicks in).
    """

    def __init__(
        self,
        duration_seconds: float = 12.0,
        failing: tuple[float, ...] = (),
        hanging: tuple[float, ...] = (),
        probe_error: Exception | None = None,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.failing = set(failing)
        self.hanging = set(hanging)
        self.probe_error = probe_error
        self.requested: list[float] = []

    async def probe(self, video_path: Path) -> VideoMetadata:
        if self.probe_error is not None:
            raise self.probe_error
        return VideoMetadata(
            duration_seconds=self.duration_seconds,
            width=1920,
            height=1080,
            fps=30,
            format_name="mov,mp4,m4a,3gp,3g2,mj2",
            size_bytes=Path(video_path).stat().st_size,
        )

    async def extract_still(
        self,
        video_path: Path,
        timestamp_seconds: float,
        output_path: Path,
        max_width: int = 1920,
        max_height: int = 1080,
    ) -> None:
        self.requested.append(timestamp_seconds)
        if timestamp_seconds in self.hanging:
            await asyncio.sleep(60)
        if timestamp_seconds in self.failing:
            raise TranscoderError(f"decode failed at {timestamp_seconds}")
        output_path.write_bytes(png_bytes())


class ScriptedVisionClient:
    """
    VisionModelClient that replays a script.

    Each entry is either a response string or an exception to raise.
    """

    def __init__(self, script: list) -> None:
        self.script = list(script)
        self.calls: list[dict] = []

    async def complete(self, system_prompt: str, user_prompt: str, image_data_uris: list[str]) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "image_data_uris": image_data_uris,
        })
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def test_connection(self) -> bool:
        return True


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def video_file(tmp_path) -> Path:
    path = tmp_path / "invoice_entry.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 1024)
    return path


@pytest.fixture
def temp_root(tmp_path) -> Path:
    root = tmp_path / "frames"
    root.mkdir()
    return root


@pytest.fixture
def fake_transcoder():
    def factory(**kwargs) -> FakeTranscoder:
        return FakeTranscoder(**kwargs)
    return factory


@pytest.fixture
def scripted_client():
    def factory(*script) -> ScriptedVisionClient:
        return ScriptedVisionClient(list(script))
    return factory


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_frames():
    """Factory for in-memory frames spaced five seconds apart."""
    payload = base64.b64encode(png_bytes()).decode("ascii")

    def factory(count: int) -> list[Frame]:
        return [
            Frame(
                id=str(uuid4()),
                timestamp_seconds=i * 5.0,
                frame_number=i + 1,
                width=64,
                height=48,
                base64=payload,
                file_path=f"/tmp/frame_{i:04d}.png",
            )
            for i in range(count)
        ]
    return factory


@pytest.fixture
def analysis_payload() -> dict:
    """A realistic, complete analysis with one action and one test case."""
    return {
        "summary": "The user logs into the ERP and enters a supplier invoice.",
        "confidence": 85,
        "rpaActions": [
            {
                "id": "action_001",
                "step": 1,
                "description": "Click the login button",
                "actionType": "ClickElement",
                "category": "UI_AUTOMATION",
                "target": {
                    "selector": "css:button[id='login-btn']",
                    "description": "Main login button",
                    "coordinates": {"x": 450, "y": 300},
                },
                "parameters": {"clickType": "LeftClick", "waitAfter": 2000},
                "prerequisites": ["Application must be open"],
                "errorHandling": {
                    "strategy": "RetryOnFail",
                    "maxRetries": 3,
                    "timeoutMs": 5000,
                    "fallbackAction": "TakeScreenshot",
                },
                "validation": {
                    "expectedResult": "Redirect to the dashboard",
                    "validationMethod": "CheckUrlContains",
                    "validationValue": "/dashboard",
                },
            }
        ],
        "testCases": [
            {
                "id": "tc_001",
                "type": "positive",
                "category": "FUNCTIONAL",
                "title": "Login with valid credentials",
                "description": "Verify that the login works with valid credentials",
                "priority": "high",
                "preconditions": ["Valid credentials available"],
                "steps": [
                    {
                        "step": 1,
                        "action": "Open the application",
                        "expectedResult": "Login page is shown",
                        "rpaActionId": "action_001",
                    }
                ],
                "expectedResult": "User is on the dashboard",
                "dataRequirements": {"username": "test_user"},
                "estimatedDuration": "30 seconds",
            }
        ],
        "recommendations": ["Add retry logic to critical actions"],
        "technicalNotes": {
            "complexity": "medium",
            "estimatedDevelopmentTime": "2-3 days",
            "riskFactors": ["UI changes"],
        },
    }
