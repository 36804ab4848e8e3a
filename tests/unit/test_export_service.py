"""Tests for storyboard archive and PDF export."""

import io
import json
import zipfile
from datetime import datetime

import pytest

from models.storyboard import CharacterDirection, CharacterReferenceSheet, ImageRef, StoryboardData
from services.export_service import (
    are_all_images_generated,
    build_archive,
    build_consistency_guide,
    build_motion_prompts,
    build_pdf,
    build_readme,
    count_generated_images,
    direction_changes,
)
from utils.errors import ExportPreconditionError

GENERATED_AT = datetime(2026, 1, 2, 3, 4, 5)


def complete_data(plan, image: ImageRef) -> StoryboardData:
    data = StoryboardData.from_plan(plan)
    for scene in plan.scenes:
        data = data.with_scene(scene.id, image_a=image, image_b=image)
    return data


class TestProgressHelpers:
    """Tests for image counting helpers."""

    def test_counts_two_per_scene(self, sample_plan, png_image):
        data = StoryboardData.from_plan(sample_plan).with_scene(1, image_a=png_image)

        assert count_generated_images(data) == (1, 10)
        assert not are_all_images_generated(data)

    def test_complete(self, sample_plan, png_image):
        data = complete_data(sample_plan, png_image)

        assert count_generated_images(data) == (10, 10)
        assert are_all_images_generated(data)


class TestDirectionChanges:
    """Tests for direction_changes."""

    def test_detects_turns(self, sample_plan):
        changes = direction_changes(sample_plan.scenes)

        # right, right, left, forward, forward
        assert [(c.scene_id, c.from_direction, c.to_direction) for c in changes] == [
            (3, CharacterDirection.RIGHT, CharacterDirection.LEFT),
            (4, CharacterDirection.LEFT, CharacterDirection.FORWARD),
        ]

    def test_empty(self):
        assert direction_changes([]) == []


class TestTextSummaries:
    """Tests for README, motion prompt and consistency guide text."""

    def test_readme_lists_scenes(self, sample_plan):
        text = build_readme(StoryboardData.from_plan(sample_plan), GENERATED_AT)

        assert "Generated on: 2026-01-02 03:04:05" in text
        assert "Scene 5: Beat 5" in text
        assert "Character Direction: left" in text

    def test_motion_prompts(self, sample_plan):
        text = build_motion_prompts(StoryboardData.from_plan(sample_plan), GENERATED_AT)

        assert "SCENE 1: BEAT 1" in text
        assert sample_plan.scenes[0].motion_prompt in text
        assert sample_plan.scenes[0].image_a_description in text

    def test_consistency_guide_flags_direction_change(self, sample_plan):
        text = build_consistency_guide(StoryboardData.from_plan(sample_plan), GENERATED_AT)

        assert "Direction: left (CHANGED from right)" in text
        assert text.count("WARNING: Direction change detected") == 2


class TestBuildArchive:
    """Tests for build_archive."""

    def test_rejects_incomplete_storyboard(self, sample_plan, png_image):
        data = complete_data(sample_plan, png_image).with_scene(4, image_b=None)

        with pytest.raises(ExportPreconditionError):
            build_archive(data, png_image)

    def test_layout(self, sample_plan, png_image):
        data = complete_data(sample_plan, png_image)
        data = StoryboardData(
            consistency_bible=data.consistency_bible,
            scenes=data.scenes,
            character_reference_sheet=CharacterReferenceSheet(front=png_image, back=png_image),
        )

        content = build_archive(data, png_image, generated_at=GENERATED_AT)

        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            names = set(archive.namelist())
            metadata = json.loads(archive.read("storyboard-images/storyboard-data.json"))
            scene_bytes = archive.read("storyboard-images/Scene_01_A.png")

        assert "storyboard-images/character-main.png" in names
        assert "storyboard-images/character-references/character-front-view.png" in names
        assert "storyboard-images/character-references/character-back-view.png" in names
        assert "storyboard-images/character-references/character-side-view.png" not in names
        for name in ("README.txt", "motion-prompts.txt", "consistency-guide.txt"):
            assert f"storyboard-images/{name}" in names
        for scene_id in range(1, 6):
            assert f"storyboard-images/Scene_{scene_id:02d}_A.png" in names
            assert f"storyboard-images/Scene_{scene_id:02d}_B.png" in names

        assert scene_bytes == png_image.data
        assert metadata["generated"] == GENERATED_AT.isoformat()
        assert len(metadata["scenes"]) == 5
        assert metadata["scenes"][0]["has_image_a"] is True
        assert metadata["direction_changes"][0] == {"scene_id": 3, "from": "right", "to": "left"}
        assert metadata["prompt_versions"]["scene_image"] == "v1"

    def test_extension_follows_mime_type(self, sample_plan):
        jpeg = ImageRef(b"jpeg-bytes", "image/jpeg")

        content = build_archive(complete_data(sample_plan, jpeg))

        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            names = set(archive.namelist())
        assert "storyboard-images/Scene_01_A.jpg" in names
        assert "storyboard-images/character-main.png" not in names


class TestBuildPdf:
    """Tests for build_pdf."""

    def test_complete_storyboard(self, sample_plan, png_image):
        data = complete_data(sample_plan, png_image)
        data = StoryboardData(
            consistency_bible=data.consistency_bible,
            scenes=data.scenes,
            character_reference_sheet=CharacterReferenceSheet(front=png_image, side=png_image, back=png_image),
        )

        content = build_pdf(data, png_image, generated_at=GENERATED_AT)

        assert content.startswith(b"%PDF")

    def test_missing_images_use_placeholders(self, sample_plan):
        content = build_pdf(StoryboardData.from_plan(sample_plan))

        assert content.startswith(b"%PDF")

    def test_undecodable_image_does_not_fail(self, sample_plan):
        broken = ImageRef(b"not an image")
        data = StoryboardData.from_plan(sample_plan).with_scene(1, image_a=broken)

        assert build_pdf(data, broken).startswith(b"%PDF")

    def test_non_latin_text(self, sample_plan):
        data = StoryboardData.from_plan(sample_plan).with_scene(1, title="Fuchs → Laterne 🦊")

        assert build_pdf(data).startswith(b"%PDF")
