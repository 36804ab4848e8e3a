"""Shared pytest fixtures for toonframe tests."""

import asyncio
import base64
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.storyboard import ImageRef, ImageSize  # noqa: E402
from services.analysis_service import parse_analysis_payload  # noqa: E402
from services.generation_backend import GenerationBackend  # noqa: E402

# 1x1 RGBA PNG, decodable by PDF writers
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@dataclass
class ImageCall:
    """One recorded image_generate request."""

    prompt: str
    references: list = field(default_factory=list)
    size: Any = None
    aspect_ratio: str = ""


class FakeBackend(GenerationBackend):
    """In-memory backend that records calls and fails on request.

    Image calls whose prompt contains a registered fragment fail: with the
    given error, or with an empty response when the error is None.
    """

    def __init__(self, analysis_text: str = "", image: ImageRef | None = None):
        self.analysis_text = analysis_text
        self.analysis_error: Exception | None = None
        self.image = image or ImageRef(data=PNG_BYTES)
        self.text_calls: list[dict] = []
        self.image_calls: list[ImageCall] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._rules: list[dict] = []

    def fail_on(self, fragment: str, error: Exception | None = None, times: int | None = None) -> None:
        self._rules.append({"fragment": fragment, "error": error, "times": times})

    def calls_matching(self, fragment: str) -> list[ImageCall]:
        return [call for call in self.image_calls if fragment in call.prompt]

    async def text_analyze(self, contents, system_instruction, response_schema) -> str:
        self.text_calls.append({
            "contents": contents,
            "system_instruction": system_instruction,
            "response_schema": response_schema,
        })
        if self.analysis_error:
            raise self.analysis_error
        return self.analysis_text

    async def image_generate(self, prompt_parts, size, aspect_ratio) -> list[ImageRef]:
        prompt = "".join(part for part in prompt_parts if isinstance(part, str))
        references = [part for part in prompt_parts if isinstance(part, ImageRef)]
        self.image_calls.append(ImageCall(prompt, references, size, aspect_ratio))

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            for rule in self._rules:
                if rule["fragment"] not in prompt:
                    continue
                if rule["times"] is not None:
                    if rule["times"] <= 0:
                        continue
                    rule["times"] -= 1
                if rule["error"] is None:
                    return []
                raise rule["error"]
            return [self.image]
        finally:
            self.in_flight -= 1


def scene_payload(scene_id: int, direction: str = "right") -> Dict:
    return {
        "id": scene_id,
        "title": f"Beat {scene_id}",
        "context": f"The fox continues its journey, beat {scene_id}.",
        "image_a_description": f"Scene {scene_id} start frame: the fox pauses between snowy pines.",
        "image_b_description": f"Scene {scene_id} end frame: the fox has moved closer to the glow.",
        "motion_prompt": f"The fox walks slowly forward, ears twitching, during beat {scene_id}.",
        "character_direction": direction,
        "character_expression": "curious",
        "character_pose": "walking",
    }


@pytest.fixture
def png_image() -> ImageRef:
    """Small decodable PNG image."""
    return ImageRef(data=PNG_BYTES)


@pytest.fixture
def sample_analysis_payload() -> Dict:
    """Five-scene analysis reply for a fox story."""
    directions = ["right", "right", "left", "forward", "forward"]
    return {
        "consistency_bible": {
            "character_visuals": "A small orange fox with a white-tipped tail and a green scarf.",
            "environment_visuals": "A snowy pine forest at dawn with soft pink light.",
        },
        "scenes": [scene_payload(i + 1, d) for i, d in enumerate(directions)],
    }


@pytest.fixture
def sample_analysis_json(sample_analysis_payload) -> str:
    return json.dumps(sample_analysis_payload)


@pytest.fixture
def sample_plan(sample_analysis_json):
    """Parsed StoryboardPlan for the fox story."""
    return parse_analysis_payload(sample_analysis_json)


@pytest.fixture
def fake_backend(sample_analysis_json) -> FakeBackend:
    """Backend that analyzes to the fox story and renders every image."""
    return FakeBackend(analysis_text=sample_analysis_json)


@pytest.fixture
def sample_config(tmp_path) -> Dict:
    """Sample configuration for testing."""
    return {
        "gemini_api_key": "test_gemini_key",
        "text_model": "gemini-3-pro-preview",
        "image_model": "gemini-3-pro-image-preview",
        "thinking_budget": 32768,
        "image_size": ImageSize.ONE_K.value,
        "scene_aspect_ratio": "16:9",
        "first_pass_attempts": 3,
        "repair_pass_attempts": 2,
        "reference_view_attempts": 3,
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
        "local_output_folder": str(tmp_path / "output"),
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def make_backend():
    """FakeBackend class, for tests that need a custom analysis reply."""
    return FakeBackend


@pytest.fixture
def instant_sleep():
    """Sleep replacement that records requested delays."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    sleep.delays = delays
    return sleep
