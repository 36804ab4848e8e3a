"""Script analysis - turns a free-text script into a storyboard plan."""

import logging
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from models.storyboard import CharacterDirection, ConsistencyBible, Scene, StoryboardPlan
from services.generation_backend import GenerationBackend
from services.prompts import (
    SYSTEM_INSTRUCTION,
    build_analysis_contents,
    strip_markdown_code_blocks,
)
from utils.errors import AnalysisError, ErrorKind

logger = logging.getLogger(__name__)

MIN_SCENES = 5
MAX_SCENES = 8


class BibleSchema(BaseModel):
    """Consistency bible as returned by the model."""

    character_visuals: str = Field(min_length=1)
    environment_visuals: str = Field(min_length=1)


class SceneSchema(BaseModel):
    """One scene as returned by the model."""

    id: int
    title: str
    context: str
    image_a_description: str = Field(min_length=1)
    image_b_description: str = Field(min_length=1)
    motion_prompt: str = Field(min_length=1)
    character_direction: Literal["left", "right", "forward", "back"]
    character_expression: str
    character_pose: str

    @field_validator("character_direction", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class AnalysisResponse(BaseModel):
    """Response schema sent to the backend and used to validate its reply."""

    consistency_bible: BibleSchema
    scenes: list[SceneSchema] = Field(min_length=1)


def parse_analysis_payload(text: str | None) -> StoryboardPlan:
    """Validate a raw analysis reply and convert it to a plan.

    Args:
        text: JSON text returned by the backend

    Returns:
        StoryboardPlan with scenes in reply order

    Raises:
        AnalysisError: EMPTY_RESPONSE if nothing came back, MALFORMED_RESPONSE
            if the payload does not match AnalysisResponse
    """
    if not text or not text.strip():
        raise AnalysisError("No response from the analysis model", ErrorKind.EMPTY_RESPONSE)

    try:
        payload = AnalysisResponse.model_validate_json(strip_markdown_code_blocks(text))
    except ValidationError as e:
        logger.error(f"Failed to parse storyboard analysis: {e}")
        logger.debug(f"Raw response: {text}")
        raise AnalysisError(
            f"Failed to parse storyboard data: {e.error_count()} validation error(s)",
            ErrorKind.MALFORMED_RESPONSE,
        ) from e

    scene_count = len(payload.scenes)
    if not MIN_SCENES <= scene_count <= MAX_SCENES:
        logger.warning(
            f"Analysis returned {scene_count} scenes (expected {MIN_SCENES}-{MAX_SCENES})"
        )

    ids = [s.id for s in payload.scenes]
    if any(later <= earlier for earlier, later in zip(ids, ids[1:])):
        logger.warning(f"Scene ids {ids} are not strictly increasing, renumbering in order")
        ids = list(range(1, scene_count + 1))

    scenes = tuple(
        Scene(
            id=scene_id,
            title=s.title,
            context=s.context,
            image_a_description=s.image_a_description,
            image_b_description=s.image_b_description,
            motion_prompt=s.motion_prompt,
            character_direction=CharacterDirection(s.character_direction),
            character_expression=s.character_expression,
            character_pose=s.character_pose,
        )
        for scene_id, s in zip(ids, payload.scenes)
    )
    bible = ConsistencyBible(
        character_visuals=payload.consistency_bible.character_visuals,
        environment_visuals=payload.consistency_bible.environment_visuals,
    )
    return StoryboardPlan(consistency_bible=bible, scenes=scenes)


class AnalysisService:
    """Single-call script analysis. Failures surface immediately; no retries here."""

    def __init__(self, backend: GenerationBackend):
        self.backend = backend

    async def analyze(self, script: str) -> StoryboardPlan:
        """Analyze a script into a consistency bible and ordered scenes.

        Args:
            script: Non-empty story script

        Returns:
            StoryboardPlan

        Raises:
            ValueError: If the script is empty
            AnalysisError: If the reply is empty or malformed
            AuthorizationError: If the backend refuses the credentials
        """
        if not script or not script.strip():
            raise ValueError("Script is required")

        logger.info(f"Analyzing script ({len(script)} chars)")
        text = await self.backend.text_analyze(
            contents=build_analysis_contents(script.strip()),
            system_instruction=SYSTEM_INSTRUCTION,
            response_schema=AnalysisResponse,
        )
        plan = parse_analysis_payload(text)
        logger.info(f"Analysis produced {len(plan.scenes)} scenes")
        return plan
