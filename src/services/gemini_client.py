"""Gemini implementation of the generation backend using Google GenAI."""

import logging
import time
from typing import Any

import httpx
from google.genai import Client, errors, types

from models.storyboard import ImageRef, ImageSize
from services.generation_backend import GenerationBackend, PromptPart
from utils.errors import AuthorizationError, BackendError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-3-pro-preview"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"
DEFAULT_THINKING_BUDGET = 32768

# Status values the API reports when the key or project may not use a model.
AUTHORIZATION_STATUSES = {"PERMISSION_DENIED", "UNAUTHENTICATED", "NOT_FOUND"}
AUTHORIZATION_CODES = {401, 403, 404}
RATE_LIMIT_STATUSES = {"RESOURCE_EXHAUSTED"}


def classify_api_error(error: errors.APIError) -> BackendError:
    """Translate a Google GenAI API error into a storyboard error.

    Uses the response's numeric code and status enum only.

    Args:
        error: Error raised by the google-genai client

    Returns:
        AuthorizationError or BackendError carrying the matching kind
    """
    code = getattr(error, "code", None)
    status = (getattr(error, "status", None) or "").upper()
    message = getattr(error, "message", None) or str(error)

    if code in AUTHORIZATION_CODES or status in AUTHORIZATION_STATUSES:
        return AuthorizationError(
            f"Gemini refused the request ({code} {status}): {message}",
            status_code=code,
        )
    if code == 429 or status in RATE_LIMIT_STATUSES:
        return BackendError(
            f"Gemini rate limit ({code} {status}): {message}",
            kind=ErrorKind.RATE_LIMIT,
            status_code=code,
        )
    return BackendError(f"Gemini API error ({code} {status}): {message}", status_code=code)


def extract_inline_images(response: Any) -> list[ImageRef]:
    """Collect inline image parts from a generate_content response."""
    images = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            mime_type = inline.mime_type or "image/png"
            if not mime_type.startswith("image/"):
                continue
            images.append(ImageRef(data=bytes(inline.data), mime_type=mime_type))
    return images


class GeminiBackend(GenerationBackend):
    """Storyboard analysis and image generation through the Gemini API."""

    def __init__(
        self,
        api_key: str,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        thinking_budget: int = DEFAULT_THINKING_BUDGET,
        client: Client | None = None,
    ):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            text_model: Model used for script analysis
            image_model: Model used for image generation
            thinking_budget: Reasoning token budget for analysis
            client: Pre-built client (tests)
        """
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.thinking_budget = thinking_budget
        self.client = client or Client(api_key=api_key)

        logger.info(
            f"Initialized Gemini backend (text: {text_model}, image: {image_model})"
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def text_analyze(
        self,
        contents: str,
        system_instruction: str,
        response_schema: Any,
    ) -> str:
        start_time = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=self.text_model,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    thinking_config=types.ThinkingConfig(
                        thinking_budget=self.thinking_budget,
                    ),
                    response_mime_type="application/json",
                    response_schema=response_schema,
                ),
            )
        except errors.APIError as e:
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Gemini request failed: {e}") from e

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Script analysis returned in {elapsed_ms}ms")
        return response.text or ""

    async def image_generate(
        self,
        prompt_parts: list[PromptPart],
        size: ImageSize,
        aspect_ratio: str,
    ) -> list[ImageRef]:
        contents = [
            types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
            if isinstance(part, ImageRef)
            else part
            for part in prompt_parts
        ]

        start_time = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE"],
                    image_config=types.ImageConfig(
                        image_size=size.value,
                        aspect_ratio=aspect_ratio,
                    ),
                ),
            )
        except errors.APIError as e:
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Gemini request failed: {e}") from e

        images = extract_inline_images(response)
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Gemini returned {len(images)} image(s) in {elapsed_ms}ms "
            f"(size={size.value}, aspect={aspect_ratio})"
        )
        return images
