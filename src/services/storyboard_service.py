"""Storyboard generation service - analysis, character identity and scene images."""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable

from models.storyboard import (
    ImageRef,
    ImageSize,
    PipelineReport,
    SessionStatus,
    StoryboardData,
    StoryboardPlan,
    StoryboardState,
)
from services.analysis_service import AnalysisService
from services.character_service import REFERENCE_VIEW_ATTEMPTS, CharacterIdentityBuilder
from services.generation_backend import GenerationBackend
from services.image_client import SCENE_ASPECT_RATIO, ImageClient
from services.scene_pipeline import (
    AUTHORIZATION_MESSAGE,
    FIRST_PASS_ATTEMPTS,
    REPAIR_PASS_ATTEMPTS,
    ScenePipeline,
)
from services.storyboard_store import StoryboardStore
from utils.errors import AuthorizationError, ErrorKind, StoryboardError
from utils.logging import clear_session_context, set_session_context
from utils.retry import ExponentialBackoff, LinearBackoff

logger = logging.getLogger(__name__)


class StoryboardService:
    """Orchestrates one storyboard session against a store.

    Flow: analysis -> store replaced -> canonical character -> reference
    sheet -> scene pipeline. ``start`` returns once analysis has succeeded
    and leaves the image work running in the background.
    """

    def __init__(
        self,
        analysis_service: AnalysisService,
        character_builder: CharacterIdentityBuilder,
        pipeline: ScenePipeline,
        store: StoryboardStore,
    ):
        """Initialize the storyboard service.

        Args:
            analysis_service: Script analysis client
            character_builder: Canonical character and reference sheet builder
            pipeline: Scene image pipeline writing into ``store``
            store: Session store
        """
        self.analysis_service = analysis_service
        self.character_builder = character_builder
        self.pipeline = pipeline
        self.store = store

    @property
    def snapshot(self) -> StoryboardState:
        return self.store.snapshot

    async def analyze(self, script: str, session_id: str | None = None) -> StoryboardPlan:
        """Run analysis and seed the store with a fresh storyboard.

        Raises:
            ValueError: If the script is empty
            AnalysisError: On empty or malformed analysis output
            AuthorizationError: If the backend refuses the credentials
        """
        session_id = session_id or str(uuid.uuid4())
        set_session_context(session_id)
        await self.store.replace_session(None, session_id=session_id, status=SessionStatus.ANALYZING)

        try:
            plan = await self.analysis_service.analyze(script)
        except AuthorizationError as e:
            await self.store.set_error(e.kind.value, AUTHORIZATION_MESSAGE)
            raise
        except Exception as e:
            kind = getattr(e, "kind", None)
            await self.store.set_error(kind.value if kind else "analysis", str(e))
            raise

        await self.store.replace_session(
            StoryboardData.from_plan(plan),
            session_id=session_id,
            status=SessionStatus.BUILDING_CHARACTER,
        )
        return plan

    async def run_images(self, plan: StoryboardPlan, image_size: ImageSize) -> PipelineReport | None:
        """Build the character identity, then render every scene.

        Authorization failures are recorded in the store and end the run;
        they are not re-raised because this usually runs as a background task.
        Any other escaping error also fails the session, then propagates.

        Returns:
            PipelineReport, or None if the run was aborted
        """
        try:
            character_image = await self._build_character(plan)
            await self.store.set_status(SessionStatus.GENERATING_IMAGES)
            report = await self.pipeline.run(plan, image_size, character_image)
        except AuthorizationError as e:
            logger.error(f"Storyboard session aborted: {e}")
            await self.store.clear_generating_flags()
            if self.store.snapshot.error is None:
                await self.store.set_error(e.kind.value, AUTHORIZATION_MESSAGE)
            return None
        except Exception as e:
            logger.exception(f"Storyboard session failed: {e}")
            await self.store.clear_generating_flags()
            kind = getattr(e, "kind", ErrorKind.INTERNAL)
            await self.store.set_error(kind.value, str(e) or type(e).__name__)
            raise
        finally:
            clear_session_context()

        await self.store.set_status(SessionStatus.COMPLETED)
        return report

    async def start(
        self,
        script: str,
        image_size: ImageSize = ImageSize.ONE_K,
        session_id: str | None = None,
    ) -> asyncio.Task:
        """Analyze synchronously, then generate images in the background.

        Returns:
            The background task producing images (result: PipelineReport | None)
        """
        plan = await self.analyze(script, session_id=session_id)
        return asyncio.create_task(self.run_images(plan, image_size))

    async def generate(
        self,
        script: str,
        image_size: ImageSize = ImageSize.ONE_K,
        session_id: str | None = None,
    ) -> StoryboardState:
        """Run a whole session to the end and return the final snapshot."""
        plan = await self.analyze(script, session_id=session_id)
        await self.run_images(plan, image_size)
        return self.store.snapshot

    async def _build_character(self, plan: StoryboardPlan) -> ImageRef | None:
        character_visuals = plan.consistency_bible.character_visuals
        try:
            character_image = await self.character_builder.create_character(character_visuals)
        except AuthorizationError:
            raise
        except StoryboardError as e:
            logger.error(f"Failed to create canonical character, scenes will render without reference: {e}")
            return None

        await self.store.set_character_image(character_image)
        await self.store.set_reference_sheet_generating(True)
        try:
            sheet = await self.character_builder.create_reference_sheet(
                character_visuals, character_image
            )
            await self.store.attach_reference_sheet(sheet)
        finally:
            await self.store.set_reference_sheet_generating(False)
        return character_image


def create_storyboard_service(
    backend: GenerationBackend,
    store: StoryboardStore,
    config: dict | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> StoryboardService:
    """Wire a StoryboardService for one session from a backend and config.

    Args:
        backend: Text/image generation backend
        store: Fresh store for the session
        config: Settings from ``load_config`` (defaults apply to missing keys)
        sleep: Awaitable sleep used between retries

    Returns:
        StoryboardService bound to ``store``
    """
    config = config or {}
    image_client = ImageClient(backend)
    base_delay = config.get("retry_base_delay", 1.0)

    character_builder = CharacterIdentityBuilder(
        image_client,
        view_attempts=config.get("reference_view_attempts", REFERENCE_VIEW_ATTEMPTS),
        view_backoff=LinearBackoff(step=base_delay),
        sleep=sleep,
    )
    pipeline = ScenePipeline(
        image_client,
        store,
        first_pass_attempts=config.get("first_pass_attempts", FIRST_PASS_ATTEMPTS),
        repair_attempts=config.get("repair_pass_attempts", REPAIR_PASS_ATTEMPTS),
        backoff=ExponentialBackoff(base=base_delay, cap=config.get("retry_max_delay", 5.0)),
        aspect_ratio=config.get("scene_aspect_ratio", SCENE_ASPECT_RATIO),
        sleep=sleep,
    )
    return StoryboardService(AnalysisService(backend), character_builder, pipeline, store)
