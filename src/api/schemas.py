"""Pydantic request/response models for the ToonFrame API."""

from pydantic import BaseModel, Field

from models.storyboard import ImageSize

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "ToonFrame API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy"}]}}


class StoryboardStatusResponse(BaseModel):
    """Backend availability."""

    gemini: bool
    active_sessions: int = Field(ge=0)


class StoryboardSessionResponse(BaseModel):
    """Accepted storyboard session, returned once analysis has finished."""

    session_id: str
    status: str
    total_scenes: int = Field(ge=0)
    total_images: int = Field(ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "session_id": "550e8400-e29b-41d4-a716-446655440000",
                    "status": "building_character",
                    "total_scenes": 6,
                    "total_images": 12,
                }
            ]
        }
    }


# =============================================================================
# Request Models
# =============================================================================


class StoryboardGenerateRequest(BaseModel):
    """Start a storyboard session from a script."""

    script: str = Field(..., description="Story script to turn into a storyboard")
    image_size: ImageSize = Field(ImageSize.ONE_K, description="Scene image resolution")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "script": "A small fox explores a snowy forest at dawn and finds a lost lantern.",
                    "image_size": "1K",
                }
            ]
        }
    }
