"""Scene image pipeline - fills in the start/end frames of every scene.

Scenes are rendered one at a time, in plan order, to stay inside backend
rate limits and to make progress advance steadily. Image A of a scene always
settles before image B starts. After the first pass, a single repair pass
retries whatever is still missing, reading the store's current state rather
than the original plan.

Per-image failures are recorded as flags on the scene and never stop the
queue. An authorization failure stops everything immediately.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from models.storyboard import (
    GenerationPhase,
    ImageRef,
    ImageSize,
    PipelineReport,
    Scene,
    SceneStatus,
    StoryboardData,
    StoryboardPlan,
)
from services.image_client import SCENE_ASPECT_RATIO, ImageClient
from services.prompts import VISUAL_STYLE_PROMPT, build_consistency_context, build_image_prompt
from services.storyboard_store import StoryboardStore
from utils.errors import AuthorizationError, StoryboardError, is_retryable
from utils.retry import ExponentialBackoff, with_retry

logger = logging.getLogger(__name__)

FIRST_PASS_ATTEMPTS = 3
REPAIR_PASS_ATTEMPTS = 2

AUTHORIZATION_MESSAGE = (
    "Permission denied. Select a valid API key from a paid project to use these features."
)

# frame -> (generating status, done status, failed status)
_FRAME_STATUSES = {
    "a": (SceneStatus.GENERATING_A, SceneStatus.A_DONE, SceneStatus.A_FAILED),
    "b": (SceneStatus.GENERATING_B, SceneStatus.B_DONE, SceneStatus.B_FAILED),
}


class ScenePipeline:
    """Sequential first pass plus one repair pass over a storyboard's scenes."""

    def __init__(
        self,
        image_client: ImageClient,
        store: StoryboardStore,
        first_pass_attempts: int = FIRST_PASS_ATTEMPTS,
        repair_attempts: int = REPAIR_PASS_ATTEMPTS,
        backoff: Callable[[int], float] | None = None,
        aspect_ratio: str = SCENE_ASPECT_RATIO,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the pipeline.

        Args:
            image_client: Image generation primitive
            store: Session store that receives every scene patch
            first_pass_attempts: Attempts per image in the first pass
            repair_attempts: Attempts per missing image in the repair pass
            backoff: Delay policy between attempts (default 1s doubling, 5s cap)
            aspect_ratio: Scene image aspect ratio
            sleep: Awaitable sleep used between retries
        """
        self.image_client = image_client
        self.store = store
        self.first_pass_attempts = first_pass_attempts
        self.repair_attempts = repair_attempts
        self.backoff = backoff or ExponentialBackoff(base=1.0, cap=5.0)
        self.aspect_ratio = aspect_ratio
        self.sleep = sleep

    async def run(
        self,
        plan: StoryboardPlan | StoryboardData,
        image_size: ImageSize,
        character_image: ImageRef | None,
    ) -> PipelineReport:
        """Generate both frames for every scene.

        Args:
            plan: Bible and scenes to render (scene ids must exist in the store)
            image_size: Output resolution for scene images
            character_image: Canonical character image used as reference, if any

        Returns:
            PipelineReport summarizing the run

        Raises:
            AuthorizationError: After clearing in-flight flags and recording the
                error in the store
        """
        context = build_consistency_context(plan.consistency_bible)
        report = PipelineReport(total_scenes=len(plan.scenes))

        try:
            for scene in plan.scenes:
                await self._first_pass_scene(scene, context, image_size, character_image)
            report.repaired_images = await self._repair_pass(context, image_size, character_image)
        except AuthorizationError as e:
            logger.error(f"Authorization failure, stopping image generation: {e}")
            report.aborted = True
            await self.store.clear_generating_flags()
            await self.store.set_error(e.kind.value, AUTHORIZATION_MESSAGE)
            raise

        data = self.store.snapshot.data
        for scene in data.scenes if data else ():
            if scene.is_complete:
                report.completed_scene_ids.append(scene.id)
            else:
                report.failed_scene_ids.append(scene.id)

        logger.info(
            f"Scene pipeline finished: {len(report.completed_scene_ids)}/{report.total_scenes} "
            f"scenes complete, {report.repaired_images} image(s) recovered by repair pass"
        )
        return report

    async def _first_pass_scene(
        self,
        scene: Scene,
        context: str,
        image_size: ImageSize,
        character_image: ImageRef | None,
    ) -> None:
        await self.store.patch_scene(scene.id, is_generating_image=True)
        settled = False
        try:
            ok_a = await self._render_frame(
                scene, "a", GenerationPhase.FIRST_PASS_A, self.first_pass_attempts,
                context, image_size, character_image,
            )
            ok_b = await self._render_frame(
                scene, "b", GenerationPhase.FIRST_PASS_B, self.first_pass_attempts,
                context, image_size, character_image,
            )
            if not ok_a and not ok_b:
                logger.error(f"Both images failed for scene {scene.id}, continuing with next scene")
            settled = True
        finally:
            await self._end_scene(scene.id, settled)

    async def _repair_pass(
        self,
        context: str,
        image_size: ImageSize,
        character_image: ImageRef | None,
    ) -> int:
        data = self.store.snapshot.data
        missing = [s for s in data.scenes if not s.is_complete] if data else []
        if not missing:
            logger.info("All images generated successfully")
            return 0

        logger.info(f"Retrying {len(missing)} scene(s) with missing images")
        recovered = 0
        for scene in missing:
            await self.store.patch_scene(scene.id, is_generating_image=True)
            settled = False
            try:
                if scene.image_a is None:
                    if await self._render_frame(
                        scene, "a", GenerationPhase.REPAIR_A, self.repair_attempts,
                        context, image_size, character_image,
                    ):
                        recovered += 1
                if scene.image_b is None:
                    if await self._render_frame(
                        scene, "b", GenerationPhase.REPAIR_B, self.repair_attempts,
                        context, image_size, character_image,
                    ):
                        recovered += 1
                settled = True
            finally:
                await self._end_scene(scene.id, settled)
        return recovered

    async def _end_scene(self, scene_id: int, settled: bool) -> None:
        # An aborted scene keeps its last status; only the in-flight flag drops.
        changes: dict = {"is_generating_image": False}
        if settled:
            changes["status"] = SceneStatus.SETTLED
        await self.store.patch_scene(scene_id, **changes)

    async def _render_frame(
        self,
        scene: Scene,
        frame: str,
        phase: GenerationPhase,
        attempts: int,
        context: str,
        image_size: ImageSize,
        character_image: ImageRef | None,
    ) -> bool:
        """Render image A or B of a scene and record the outcome on the scene.

        Returns:
            True if the image was stored, False if attempts were exhausted
        """
        generating, done, failed = _FRAME_STATUSES[frame]
        description = scene.image_a_description if frame == "a" else scene.image_b_description
        prompt = build_image_prompt(
            VISUAL_STYLE_PROMPT, context, description, has_reference=character_image is not None
        )

        await self.store.patch_scene(scene.id, generation_phase=phase, status=generating)
        try:
            image = await with_retry(
                lambda: self.image_client.render_image(
                    prompt,
                    reference_image=character_image,
                    size=image_size,
                    aspect_ratio=self.aspect_ratio,
                ),
                max_attempts=attempts,
                backoff=self.backoff,
                sleep=self.sleep,
                label=f"scene {scene.id} image {frame.upper()} ({phase.value})",
            )
        except StoryboardError as e:
            if not is_retryable(e):
                raise
            logger.error(f"Failed to generate image {frame.upper()} for scene {scene.id}: {e}")
            await self.store.patch_scene(scene.id, **{f"image_{frame}_failed": True, "status": failed})
            return False

        await self.store.patch_scene(
            scene.id, **{f"image_{frame}": image, f"image_{frame}_failed": False, "status": done}
        )
        if phase.is_repair:
            logger.info(f"Generated image {frame.upper()} for scene {scene.id} on repair pass")
        return True
