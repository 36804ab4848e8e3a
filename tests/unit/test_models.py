"""Tests for storyboard data models."""

import pytest

from models.storyboard import (
    CharacterDirection,
    CharacterReferenceSheet,
    GenerationPhase,
    ImageRef,
    SceneStatus,
    SessionError,
    SessionStatus,
    StoryboardData,
    StoryboardState,
)


class TestImageRef:
    """Tests for ImageRef encoding."""

    def test_data_url(self, png_image):
        url = png_image.to_data_url()

        assert url == f"data:image/png;base64,{png_image.to_base64()}"

    def test_extension_from_mime(self):
        assert ImageRef(b"x", "image/jpeg").extension == "jpg"
        assert ImageRef(b"x", "image/unknown").extension == "png"

    def test_repr_hides_bytes(self):
        assert repr(ImageRef(b"12345")) == "ImageRef(mime_type='image/png', size=5)"


class TestGenerationPhase:
    """Tests for GenerationPhase tags."""

    def test_attempt_tags(self):
        assert [phase.attempt_tag for phase in GenerationPhase] == [1, 2, 3, 4]

    def test_is_repair(self):
        assert not GenerationPhase.FIRST_PASS_B.is_repair
        assert GenerationPhase.REPAIR_A.is_repair


class TestScene:
    """Tests for Scene state helpers."""

    def test_new_scene_is_pending(self, sample_plan):
        scene = sample_plan.scenes[0]

        assert scene.status == SceneStatus.PENDING
        assert scene.image_a is None and scene.image_b is None
        assert not scene.is_complete
        assert scene.retry_attempt is None

    def test_to_dict_flags_images(self, sample_plan, png_image):
        data = StoryboardData.from_plan(sample_plan).with_scene(1, image_a=png_image)
        result = data.get_scene(1).to_dict()

        assert result["has_image_a"] is True
        assert result["has_image_b"] is False
        assert "image_a_url" not in result

    def test_to_dict_with_images(self, sample_plan, png_image):
        data = StoryboardData.from_plan(sample_plan).with_scene(
            1, image_a=png_image, generation_phase=GenerationPhase.REPAIR_B
        )
        result = data.get_scene(1).to_dict(include_images=True)

        assert result["image_a_url"] == png_image.to_data_url()
        assert result["image_b_url"] is None
        assert result["retry_attempt"] == 4


class TestStoryboardData:
    """Tests for StoryboardData."""

    def test_from_plan_preserves_order(self, sample_plan):
        data = StoryboardData.from_plan(sample_plan)

        assert [s.id for s in data.scenes] == [1, 2, 3, 4, 5]
        assert data.scenes[2].character_direction == CharacterDirection.LEFT
        assert data.character_reference_sheet is None

    def test_with_scene_is_copy(self, sample_plan, png_image):
        data = StoryboardData.from_plan(sample_plan)
        updated = data.with_scene(2, image_b=png_image)

        assert data.get_scene(2).image_b is None
        assert updated.get_scene(2).image_b == png_image
        assert updated.get_scene(1) is data.get_scene(1)

    def test_with_scene_unknown_id(self, sample_plan):
        with pytest.raises(KeyError):
            StoryboardData.from_plan(sample_plan).with_scene(99, title="nope")


class TestReferenceSheet:
    """Tests for CharacterReferenceSheet."""

    def test_partial_sheet(self, png_image):
        sheet = CharacterReferenceSheet(front=png_image, back=png_image)

        assert not sheet.is_complete
        assert sheet.to_dict() == {"front": True, "side": False, "back": True}


class TestStoryboardState:
    """Tests for StoryboardState serialization."""

    def test_empty_state(self):
        result = StoryboardState(session_id="abc").to_dict()

        assert result["session_id"] == "abc"
        assert result["status"] == SessionStatus.IDLE.value
        assert result["storyboard"] is None
        assert result["error"] is None

    def test_error_serialized(self):
        state = StoryboardState(
            status=SessionStatus.FAILED,
            error=SessionError(kind="authorization", message="Permission denied."),
        )

        assert state.to_dict()["error"] == {"kind": "authorization", "message": "Permission denied."}
