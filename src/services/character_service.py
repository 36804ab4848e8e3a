"""Character identity - canonical character image and its reference sheet."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from models.storyboard import CharacterReferenceSheet, ImageRef, ImageSize
from services.image_client import ImageClient
from services.prompts import (
    REFERENCE_VIEWS,
    VISUAL_STYLE_PROMPT,
    build_character_prompt,
    build_reference_view_prompt,
)
from utils.errors import ReferenceViewError, StoryboardError, is_retryable
from utils.retry import LinearBackoff, with_retry

logger = logging.getLogger(__name__)

CHARACTER_SIZE = ImageSize.ONE_K
CHARACTER_ASPECT_RATIO = "1:1"
REFERENCE_VIEW_ATTEMPTS = 3


class CharacterIdentityBuilder:
    """Builds the canonical character image and the front/side/back sheet."""

    def __init__(
        self,
        image_client: ImageClient,
        view_attempts: int = REFERENCE_VIEW_ATTEMPTS,
        view_backoff: Callable[[int], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the builder.

        Args:
            image_client: Image generation primitive
            view_attempts: Attempts per reference view
            view_backoff: Delay policy between view attempts (default 1s * attempt)
            sleep: Awaitable sleep used between retries
        """
        self.image_client = image_client
        self.view_attempts = view_attempts
        self.view_backoff = view_backoff or LinearBackoff(step=1.0)
        self.sleep = sleep

    async def create_character(self, character_visuals: str) -> ImageRef:
        """Generate the canonical character image from the bible description.

        One call, no reference image, square output.
        """
        logger.info("Generating canonical character image")
        return await self.image_client.render_image(
            build_character_prompt(character_visuals),
            size=CHARACTER_SIZE,
            aspect_ratio=CHARACTER_ASPECT_RATIO,
        )

    async def create_reference_sheet(
        self,
        character_visuals: str,
        canonical_image: ImageRef,
    ) -> CharacterReferenceSheet:
        """Generate front, side and back views conditioned on the canonical image.

        Each view is retried on its own. A view that exhausts its attempts is
        left empty; the other views are still generated.

        Raises:
            Non-retryable errors (e.g. AuthorizationError) propagate immediately.
        """
        views: dict[str, ImageRef | None] = {}

        for view_name, view_description in REFERENCE_VIEWS.items():
            prompt = build_reference_view_prompt(
                VISUAL_STYLE_PROMPT, character_visuals, view_description
            )
            try:
                views[view_name] = await with_retry(
                    lambda prompt=prompt: self.image_client.render_image(
                        prompt,
                        reference_image=canonical_image,
                        size=CHARACTER_SIZE,
                        aspect_ratio=CHARACTER_ASPECT_RATIO,
                    ),
                    max_attempts=self.view_attempts,
                    backoff=self.view_backoff,
                    sleep=self.sleep,
                    label=f"reference view '{view_name}'",
                )
                logger.info(f"Generated {view_name} reference view")
            except StoryboardError as e:
                if not is_retryable(e):
                    raise
                error = ReferenceViewError(view_name, e)
                logger.error(str(error))
                views[view_name] = None

        return CharacterReferenceSheet(**views)
