"""Service singletons and dependency injection for the ToonFrame API."""

from services.gemini_client import GeminiBackend
from services.generation_backend import GenerationBackend
from services.storyboard_service import StoryboardService, create_storyboard_service
from services.storyboard_store import StoryboardStore
from utils.config import load_config

# Service singletons
_config: dict | None = None
_backend: GenerationBackend | None = None


def get_config() -> dict:
    """Get or load the application configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def is_backend_configured() -> bool:
    """True when a backend exists or an API key is available to build one."""
    if _backend is not None:
        return _backend.is_configured()
    return bool(get_config().get("gemini_api_key"))


def get_backend() -> GenerationBackend:
    """Get or create the Gemini backend instance."""
    global _backend
    if _backend is None:
        config = get_config()
        _backend = GeminiBackend(
            api_key=config.get("gemini_api_key", ""),
            text_model=config["text_model"],
            image_model=config["image_model"],
            thinking_budget=config["thinking_budget"],
        )
    return _backend


def create_session_service(session_id: str) -> StoryboardService:
    """Build a StoryboardService with a fresh store for one session."""
    return create_storyboard_service(
        get_backend(), StoryboardStore(session_id=session_id), config=get_config()
    )
