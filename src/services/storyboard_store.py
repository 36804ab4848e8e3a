"""Live storyboard state for one generation session.

Writers send messages; a single owner task applies them one at a time and
publishes each result as a new immutable ``StoryboardState``. Readers take
``store.snapshot`` at any moment without waiting, including while a
background pipeline is still running.
"""

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, Union

from models.storyboard import (
    CharacterReferenceSheet,
    ImageRef,
    SessionError,
    SessionStatus,
    StoryboardData,
    StoryboardState,
)
from utils.errors import SceneNotFoundError, StoryboardError

logger = logging.getLogger(__name__)

Subscriber = Callable[[StoryboardState], Union[None, Awaitable[None]]]


def _require_data(state: StoryboardState) -> StoryboardData:
    if state.data is None:
        raise StoryboardError("No storyboard in this session")
    return state.data


@dataclass(frozen=True)
class ReplaceSession:
    """Start over with a new storyboard (or none)."""

    data: Optional[StoryboardData]
    session_id: Optional[str] = None
    status: SessionStatus = SessionStatus.IDLE

    def apply(self, state: StoryboardState) -> StoryboardState:
        return StoryboardState(
            session_id=self.session_id or state.session_id,
            data=self.data,
            status=self.status,
            version=state.version,
        )


@dataclass(frozen=True)
class PatchScene:
    """Merge field changes into one scene, addressed by id."""

    scene_id: int
    changes: dict

    def apply(self, state: StoryboardState) -> StoryboardState:
        data = _require_data(state)
        try:
            return replace(state, data=data.with_scene(self.scene_id, **self.changes))
        except KeyError:
            raise SceneNotFoundError(self.scene_id) from None


@dataclass(frozen=True)
class AttachReferenceSheet:
    sheet: CharacterReferenceSheet

    def apply(self, state: StoryboardState) -> StoryboardState:
        data = _require_data(state)
        return replace(state, data=replace(data, character_reference_sheet=self.sheet))


@dataclass(frozen=True)
class SetCharacterImage:
    image: Optional[ImageRef]

    def apply(self, state: StoryboardState) -> StoryboardState:
        return replace(state, character_image=self.image)


@dataclass(frozen=True)
class SetReferenceSheetGenerating:
    generating: bool

    def apply(self, state: StoryboardState) -> StoryboardState:
        return replace(state, is_generating_reference_sheet=self.generating)


@dataclass(frozen=True)
class SetStatus:
    status: SessionStatus

    def apply(self, state: StoryboardState) -> StoryboardState:
        return replace(state, status=self.status)


@dataclass(frozen=True)
class SetError:
    """Record a session-fatal error and mark the session failed."""

    error: SessionError

    def apply(self, state: StoryboardState) -> StoryboardState:
        return replace(state, error=self.error, status=SessionStatus.FAILED)


@dataclass(frozen=True)
class ClearGeneratingFlags:
    """Drop every in-flight indicator (scenes and reference sheet)."""

    def apply(self, state: StoryboardState) -> StoryboardState:
        state = replace(state, is_generating_reference_sheet=False)
        if state.data is None:
            return state
        scenes = tuple(
            replace(scene, is_generating_image=False) if scene.is_generating_image else scene
            for scene in state.data.scenes
        )
        return replace(state, data=replace(state.data, scenes=scenes))


class StoryboardStore:
    """Owner of the live ``StoryboardState`` for one session.

    Subscribers are called after every applied message with the new
    snapshot. They must not write to the store from inside the callback.
    """

    def __init__(self, session_id: str | None = None):
        self._state = StoryboardState(session_id=session_id)
        self._mailbox: deque = deque()
        self._owner: asyncio.Task | None = None
        self._subscribers: list[Subscriber] = []

    @property
    def snapshot(self) -> StoryboardState:
        """Latest published state."""
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for every new snapshot.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def send(self, message: Any) -> StoryboardState:
        """Queue a message and wait until the owner task has applied it.

        Returns:
            The snapshot produced by this message

        Raises:
            Whatever the message raised while applying (state is unchanged)
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._mailbox.append((message, future))
        if self._owner is None or self._owner.done():
            self._owner = loop.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        while self._mailbox:
            message, future = self._mailbox.popleft()
            try:
                new_state = message.apply(self._state)
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
                continue

            self._state = replace(new_state, version=self._state.version + 1)
            if not future.done():
                future.set_result(self._state)
            await self._notify(self._state)

    async def _notify(self, state: StoryboardState) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Storyboard subscriber failed")

    # Convenience writers

    async def replace_session(
        self,
        data: StoryboardData | None,
        session_id: str | None = None,
        status: SessionStatus = SessionStatus.IDLE,
    ) -> StoryboardState:
        return await self.send(ReplaceSession(data=data, session_id=session_id, status=status))

    async def patch_scene(self, scene_id: int, **changes) -> StoryboardState:
        return await self.send(PatchScene(scene_id=scene_id, changes=changes))

    async def attach_reference_sheet(self, sheet: CharacterReferenceSheet) -> StoryboardState:
        return await self.send(AttachReferenceSheet(sheet))

    async def set_character_image(self, image: ImageRef | None) -> StoryboardState:
        return await self.send(SetCharacterImage(image))

    async def set_reference_sheet_generating(self, generating: bool) -> StoryboardState:
        return await self.send(SetReferenceSheetGenerating(generating))

    async def set_status(self, status: SessionStatus) -> StoryboardState:
        return await self.send(SetStatus(status))

    async def set_error(self, kind: str, message: str) -> StoryboardState:
        return await self.send(SetError(SessionError(kind=kind, message=message)))

    async def clear_generating_flags(self) -> StoryboardState:
        return await self.send(ClearGeneratingFlags())
