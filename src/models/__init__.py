# Data models for toonframe
from .storyboard import (
    CharacterDirection,
    CharacterReferenceSheet,
    ConsistencyBible,
    GenerationPhase,
    ImageRef,
    ImageSize,
    PipelineReport,
    Scene,
    SceneStatus,
    SessionError,
    SessionStatus,
    StoryboardData,
    StoryboardPlan,
    StoryboardState,
)

__all__ = [
    "CharacterDirection",
    "CharacterReferenceSheet",
    "ConsistencyBible",
    "GenerationPhase",
    "ImageRef",
    "ImageSize",
    "PipelineReport",
    "Scene",
    "SceneStatus",
    "SessionError",
    "SessionStatus",
    "StoryboardData",
    "StoryboardPlan",
    "StoryboardState",
]
