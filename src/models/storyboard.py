"""Models for AI storyboard generation."""

import base64
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


class CharacterDirection(str, Enum):
    """Direction the character faces in a scene's end frame."""

    LEFT = "left"
    RIGHT = "right"
    FORWARD = "forward"
    BACK = "back"


class ImageSize(str, Enum):
    """Output resolution for generated images."""

    ONE_K = "1K"
    TWO_K = "2K"
    FOUR_K = "4K"


class GenerationPhase(str, Enum):
    """Which sweep and which frame a scene is currently being rendered for."""

    FIRST_PASS_A = "first_pass_a"
    FIRST_PASS_B = "first_pass_b"
    REPAIR_A = "repair_a"
    REPAIR_B = "repair_b"

    @property
    def attempt_tag(self) -> int:
        """Numeric tag (1-4) used by progress displays."""
        return _PHASE_TAGS[self]

    @property
    def is_repair(self) -> bool:
        return self in (GenerationPhase.REPAIR_A, GenerationPhase.REPAIR_B)


_PHASE_TAGS = {
    GenerationPhase.FIRST_PASS_A: 1,
    GenerationPhase.FIRST_PASS_B: 2,
    GenerationPhase.REPAIR_A: 3,
    GenerationPhase.REPAIR_B: 4,
}


class SceneStatus(str, Enum):
    """Per-scene generation state machine."""

    PENDING = "pending"
    GENERATING_A = "generating_a"
    A_DONE = "a_done"
    A_FAILED = "a_failed"
    GENERATING_B = "generating_b"
    B_DONE = "b_done"
    B_FAILED = "b_failed"
    SETTLED = "settled"


class SessionStatus(str, Enum):
    """Lifecycle of a generation session."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    BUILDING_CHARACTER = "building_character"
    GENERATING_IMAGES = "generating_images"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageRef:
    """A generated image held in memory."""

    data: bytes
    mime_type: str = "image/png"

    @property
    def extension(self) -> str:
        return MIME_EXTENSIONS.get(self.mime_type, "png")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        """Encode as a ``data:`` URL for browsers and JSON payloads."""
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def __repr__(self) -> str:
        return f"ImageRef(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass(frozen=True)
class ConsistencyBible:
    """Character and environment descriptions shared by every prompt in a session."""

    character_visuals: str
    environment_visuals: str

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "character_visuals": self.character_visuals,
            "environment_visuals": self.environment_visuals,
        }


@dataclass(frozen=True)
class Scene:
    """One narrative beat: a start frame, an end frame and the motion between them."""

    id: int
    title: str
    context: str
    image_a_description: str
    image_b_description: str
    motion_prompt: str
    character_direction: CharacterDirection
    character_expression: str
    character_pose: str
    # Generation state
    image_a: Optional[ImageRef] = None
    image_b: Optional[ImageRef] = None
    is_generating_image: bool = False
    generation_phase: Optional[GenerationPhase] = None
    image_a_failed: bool = False
    image_b_failed: bool = False
    status: SceneStatus = SceneStatus.PENDING

    @property
    def is_complete(self) -> bool:
        """Both frames have been generated."""
        return self.image_a is not None and self.image_b is not None

    @property
    def retry_attempt(self) -> Optional[int]:
        return self.generation_phase.attempt_tag if self.generation_phase else None

    def to_dict(self, include_images: bool = False) -> dict:
        """Convert to dictionary for API responses.

        Args:
            include_images: Embed generated images as data URLs instead of
                only reporting whether they exist.
        """
        result = {
            "id": self.id,
            "title": self.title,
            "context": self.context,
            "image_a_description": self.image_a_description,
            "image_b_description": self.image_b_description,
            "motion_prompt": self.motion_prompt,
            "character_direction": self.character_direction.value,
            "character_expression": self.character_expression,
            "character_pose": self.character_pose,
            "has_image_a": self.image_a is not None,
            "has_image_b": self.image_b is not None,
            "is_generating_image": self.is_generating_image,
            "generation_phase": self.generation_phase.value if self.generation_phase else None,
            "retry_attempt": self.retry_attempt,
            "image_a_failed": self.image_a_failed,
            "image_b_failed": self.image_b_failed,
            "status": self.status.value,
        }
        if include_images:
            result["image_a_url"] = self.image_a.to_data_url() if self.image_a else None
            result["image_b_url"] = self.image_b.to_data_url() if self.image_b else None
        return result


@dataclass(frozen=True)
class CharacterReferenceSheet:
    """Front, side and back views derived from the canonical character image."""

    front: Optional[ImageRef] = None
    side: Optional[ImageRef] = None
    back: Optional[ImageRef] = None

    def views(self) -> dict[str, Optional[ImageRef]]:
        return {"front": self.front, "side": self.side, "back": self.back}

    @property
    def is_complete(self) -> bool:
        return all(image is not None for image in self.views().values())

    def to_dict(self, include_images: bool = False) -> dict:
        """Convert to dictionary for API responses."""
        if include_images:
            return {
                name: image.to_data_url() if image else None
                for name, image in self.views().items()
            }
        return {name: image is not None for name, image in self.views().items()}


@dataclass(frozen=True)
class StoryboardPlan:
    """Result of script analysis: the bible plus scenes in narrative order."""

    consistency_bible: ConsistencyBible
    scenes: tuple[Scene, ...]

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "consistency_bible": self.consistency_bible.to_dict(),
            "scenes": [s.to_dict() for s in self.scenes],
        }


@dataclass(frozen=True)
class StoryboardData:
    """The storyboard of one generation session."""

    consistency_bible: ConsistencyBible
    scenes: tuple[Scene, ...]
    character_reference_sheet: Optional[CharacterReferenceSheet] = None

    @classmethod
    def from_plan(cls, plan: StoryboardPlan) -> "StoryboardData":
        return cls(consistency_bible=plan.consistency_bible, scenes=tuple(plan.scenes))

    def get_scene(self, scene_id: int) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def with_scene(self, scene_id: int, **changes) -> "StoryboardData":
        """Return a copy with one scene's fields replaced.

        Raises:
            KeyError: If no scene has ``scene_id``.
        """
        if self.get_scene(scene_id) is None:
            raise KeyError(scene_id)
        scenes = tuple(
            replace(scene, **changes) if scene.id == scene_id else scene
            for scene in self.scenes
        )
        return replace(self, scenes=scenes)

    def to_dict(self, include_images: bool = False) -> dict:
        """Convert to dictionary for API responses."""
        sheet = self.character_reference_sheet
        return {
            "consistency_bible": self.consistency_bible.to_dict(),
            "scenes": [s.to_dict(include_images=include_images) for s in self.scenes],
            "character_reference_sheet": (
                sheet.to_dict(include_images=include_images) if sheet else None
            ),
        }


@dataclass(frozen=True)
class SessionError:
    """Session-fatal error recorded in the store for display."""

    kind: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class StoryboardState:
    """Immutable snapshot of everything a session has produced so far."""

    session_id: Optional[str] = None
    data: Optional[StoryboardData] = None
    character_image: Optional[ImageRef] = None
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[SessionError] = None
    is_generating_reference_sheet: bool = False
    version: int = 0

    def to_dict(self, include_images: bool = False) -> dict:
        """Convert to dictionary for API responses."""
        character_image = None
        if self.character_image is not None:
            character_image = (
                self.character_image.to_data_url() if include_images else True
            )
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "version": self.version,
            "storyboard": self.data.to_dict(include_images=include_images) if self.data else None,
            "character_image": character_image,
            "is_generating_reference_sheet": self.is_generating_reference_sheet,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class PipelineReport:
    """Summary of one scene pipeline run."""

    total_scenes: int
    completed_scene_ids: list[int] = field(default_factory=list)
    failed_scene_ids: list[int] = field(default_factory=list)
    repaired_images: int = 0
    aborted: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "total_scenes": self.total_scenes,
            "completed_scene_ids": self.completed_scene_ids,
            "failed_scene_ids": self.failed_scene_ids,
            "repaired_images": self.repaired_images,
            "aborted": self.aborted,
        }
