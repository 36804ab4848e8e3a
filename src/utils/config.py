"""Configuration loading and validation for toonframe."""

import os
from pathlib import Path

from dotenv import load_dotenv

from models.storyboard import ImageSize

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config() -> dict:
    """Load configuration from environment variables."""

    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Required API key
        "gemini_api_key": os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
        # Model configurations
        "text_model": os.getenv("TEXT_MODEL", "gemini-3-pro-preview"),
        "image_model": os.getenv("IMAGE_MODEL", "gemini-3-pro-image-preview"),
        "thinking_budget": int(os.getenv("THINKING_BUDGET", "32768")),
        # Image settings
        "image_size": os.getenv("IMAGE_SIZE", "1K").upper(),
        "scene_aspect_ratio": os.getenv("SCENE_ASPECT_RATIO", "16:9"),
        # Retry budgets
        "first_pass_attempts": int(os.getenv("FIRST_PASS_ATTEMPTS", "3")),
        "repair_pass_attempts": int(os.getenv("REPAIR_PASS_ATTEMPTS", "2")),
        "reference_view_attempts": int(os.getenv("REFERENCE_VIEW_ATTEMPTS", "3")),
        "retry_base_delay": float(os.getenv("RETRY_BASE_DELAY", "1.0")),
        "retry_max_delay": float(os.getenv("RETRY_MAX_DELAY", "5.0")),
        # Output
        "local_output_folder": resolve_path(os.getenv("LOCAL_OUTPUT_FOLDER"), "output"),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_bool("LOG_JSON"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("gemini_api_key"):
        errors.append("GEMINI_API_KEY is required")

    valid_sizes = [size.value for size in ImageSize]
    if config.get("image_size") not in valid_sizes:
        errors.append(f"IMAGE_SIZE must be one of {', '.join(valid_sizes)}")

    for key in ("first_pass_attempts", "repair_pass_attempts", "reference_view_attempts"):
        if config.get(key, 0) < 1:
            errors.append(f"{key.upper()} must be at least 1")

    if config.get("retry_base_delay", 0) < 0 or config.get("retry_max_delay", 0) < 0:
        errors.append("Retry delays cannot be negative")

    output_folder = config.get("local_output_folder")
    if output_folder:
        try:
            Path(output_folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create local output folder: {e}")

    return errors
