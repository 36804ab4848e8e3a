"""Single image generation call - the primitive every image producer uses."""

import logging

from models.storyboard import ImageRef, ImageSize
from services.generation_backend import GenerationBackend, PromptPart
from utils.errors import NoImageProducedError

logger = logging.getLogger(__name__)

SCENE_ASPECT_RATIO = "16:9"


class ImageClient:
    """Sends one generation request and returns the first image produced.

    Performs no retries and no prompt construction.
    """

    def __init__(self, backend: GenerationBackend):
        self.backend = backend

    async def render_image(
        self,
        prompt: str,
        reference_image: ImageRef | None = None,
        size: ImageSize = ImageSize.ONE_K,
        aspect_ratio: str = SCENE_ASPECT_RATIO,
    ) -> ImageRef:
        """Generate one image.

        Args:
            prompt: Full prompt text
            reference_image: Optional image sent after the prompt as visual reference
            size: Output resolution
            aspect_ratio: Output aspect ratio, e.g. "16:9"

        Returns:
            The first inline image in the response

        Raises:
            NoImageProducedError: If the response holds no image
        """
        parts: list[PromptPart] = [prompt]
        if reference_image is not None:
            parts.append(reference_image)

        images = await self.backend.image_generate(parts, size=size, aspect_ratio=aspect_ratio)
        if not images:
            raise NoImageProducedError("No image generated")
        if len(images) > 1:
            logger.debug(f"Backend returned {len(images)} images, using the first")
        return images[0]
