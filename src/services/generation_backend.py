"""Base abstraction for the generative text/image backend."""

from abc import ABC, abstractmethod
from typing import Any, Union

from models.storyboard import ImageRef, ImageSize

# A prompt is a sequence of text blocks and inline images, sent in order.
PromptPart = Union[str, ImageRef]


class GenerationBackend(ABC):
    """Vendor-neutral boundary used by the analysis and image clients.

    Implementations translate vendor failures into ``utils.errors`` types:
    ``AuthorizationError`` for forbidden / entity-not-found responses and
    ``BackendError`` with a structured kind for everything else.
    """

    @abstractmethod
    async def text_analyze(
        self,
        contents: str,
        system_instruction: str,
        response_schema: Any,
    ) -> str:
        """Run a structured-output text request.

        Args:
            contents: User message
            system_instruction: Fixed system instruction
            response_schema: Schema the JSON reply must match

        Returns:
            Raw JSON text (may be empty if the backend produced nothing)
        """

    @abstractmethod
    async def image_generate(
        self,
        prompt_parts: list[PromptPart],
        size: ImageSize,
        aspect_ratio: str,
    ) -> list[ImageRef]:
        """Run one image generation request.

        Returns:
            Inline images found in the response, in response order (may be empty)
        """

    def is_configured(self) -> bool:
        """Check if the backend has the credentials it needs.

        Returns:
            True if the backend is ready to use
        """
        return True
