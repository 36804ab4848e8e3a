"""Storyboard export - ZIP archive of raw images and a PDF report."""

import io
import json
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from fpdf import FPDF

from models.storyboard import CharacterDirection, ImageRef, Scene, StoryboardData
from services.prompts import PROMPT_VERSIONS
from utils.errors import ExportPreconditionError

logger = logging.getLogger(__name__)

ARCHIVE_ROOT = "storyboard-images"
REFERENCES_FOLDER = "character-references"

# A4 portrait, millimetres
PDF_MARGIN = 20
SCENE_IMAGE_SIZE = (80, 45)
CHARACTER_IMAGE_SIZE = (80, 80)
REFERENCE_IMAGE_SIZE = (50, 50)


@dataclass(frozen=True)
class DirectionChange:
    """A scene whose facing direction differs from the previous scene's."""

    scene_id: int
    from_direction: CharacterDirection
    to_direction: CharacterDirection

    def to_dict(self) -> dict:
        return {
            "scene_id": self.scene_id,
            "from": self.from_direction.value,
            "to": self.to_direction.value,
        }


def are_all_images_generated(data: StoryboardData) -> bool:
    """True when every scene has both frames."""
    return all(scene.is_complete for scene in data.scenes)


def count_generated_images(data: StoryboardData) -> tuple[int, int]:
    """Return (generated, total) image counts; total is two per scene."""
    total = len(data.scenes) * 2
    generated = sum(
        (scene.image_a is not None) + (scene.image_b is not None) for scene in data.scenes
    )
    return generated, total


def direction_changes(scenes: Iterable[Scene]) -> list[DirectionChange]:
    """Scenes where the character turns relative to the previous scene."""
    changes = []
    previous: Optional[Scene] = None
    for scene in scenes:
        if previous is not None and previous.character_direction != scene.character_direction:
            changes.append(
                DirectionChange(
                    scene_id=scene.id,
                    from_direction=previous.character_direction,
                    to_direction=scene.character_direction,
                )
            )
        previous = scene
    return changes


def scene_image_filename(scene: Scene, frame: str, image: ImageRef) -> str:
    return f"Scene_{scene.id:02d}_{frame.upper()}.{image.extension}"


# =============================================================================
# Text summaries
# =============================================================================


def _timestamp(generated_at: datetime) -> str:
    return generated_at.strftime("%Y-%m-%d %H:%M:%S")


def build_metadata(data: StoryboardData, generated_at: datetime) -> dict:
    """Machine-readable storyboard description for the archive."""
    return {
        "generated": generated_at.isoformat(),
        "consistency_bible": data.consistency_bible.to_dict(),
        "scenes": [
            {
                "id": scene.id,
                "title": scene.title,
                "context": scene.context,
                "image_a_description": scene.image_a_description,
                "image_b_description": scene.image_b_description,
                "motion_prompt": scene.motion_prompt,
                "character_direction": scene.character_direction.value,
                "character_expression": scene.character_expression,
                "character_pose": scene.character_pose,
                "has_image_a": scene.image_a is not None,
                "has_image_b": scene.image_b is not None,
            }
            for scene in data.scenes
        ],
        "direction_changes": [c.to_dict() for c in direction_changes(data.scenes)],
        "prompt_versions": PROMPT_VERSIONS,
    }


def build_readme(data: StoryboardData, generated_at: datetime) -> str:
    bible = data.consistency_bible
    lines = [
        "ToonFrame Storyboard Images",
        f"Generated on: {_timestamp(generated_at)}",
        "",
        f"Character Description: {bible.character_visuals}",
        f"Environment Description: {bible.environment_visuals}",
        "",
        "This archive contains all generated storyboard images.",
        "Each scene has two images (A and B) showing the start and end of the action.",
        "",
        "SCENE DETAILS:",
    ]
    for scene in data.scenes:
        lines += [
            "",
            f"Scene {scene.id}: {scene.title}",
            f"Context: {scene.context}",
            f"Character Direction: {scene.character_direction.value}",
            f"Expression: {scene.character_expression}",
            f"Pose: {scene.character_pose}",
            f"Motion Prompt: {scene.motion_prompt}",
            "---",
        ]
    lines += [
        "",
        "FILES INCLUDED:",
        "- character-main.* (if available) - Main character reference",
        f"- {REFERENCES_FOLDER}/ - Character reference sheet (front, side, back views)",
        "- Scene_XX_A.* - Start frame for each scene",
        "- Scene_XX_B.* - End frame for each scene",
        "- storyboard-data.json - Complete storyboard data",
        "- motion-prompts.txt - Detailed motion descriptions",
        "- consistency-guide.txt - Character consistency information",
    ]
    return "\n".join(lines) + "\n"


def build_motion_prompts(data: StoryboardData, generated_at: datetime) -> str:
    rule = "=" * 80
    lines = [
        "ToonFrame Motion Prompts",
        f"Generated on: {_timestamp(generated_at)}",
        "",
        "Step-by-step movement from Start Frame (A) to End Frame (B) for each scene.",
    ]
    for scene in data.scenes:
        lines += [
            "",
            rule,
            f"SCENE {scene.id}: {scene.title.upper()}",
            rule,
            "",
            f"Context: {scene.context}",
            "",
            "Character State:",
            f"- Direction: {scene.character_direction.value}",
            f"- Expression: {scene.character_expression}",
            f"- Pose: {scene.character_pose}",
            "",
            "START FRAME DESCRIPTION:",
            scene.image_a_description,
            "",
            "END FRAME DESCRIPTION:",
            scene.image_b_description,
            "",
            "DETAILED MOTION PROMPT:",
            scene.motion_prompt,
        ]
    return "\n".join(lines) + "\n"


def build_consistency_guide(data: StoryboardData, generated_at: datetime) -> str:
    bible = data.consistency_bible
    changed = {c.scene_id: c for c in direction_changes(data.scenes)}
    lines = [
        "Character Consistency Guide",
        f"Generated on: {_timestamp(generated_at)}",
        "",
        "CHARACTER DESCRIPTION:",
        bible.character_visuals,
        "",
        "ENVIRONMENT DESCRIPTION:",
        bible.environment_visuals,
        "",
        "SCENE-BY-SCENE CONSISTENCY TRACKING:",
    ]
    for scene in data.scenes:
        change = changed.get(scene.id)
        direction = scene.character_direction.value
        if change:
            direction += f" (CHANGED from {change.from_direction.value})"
        lines += [
            "",
            f"Scene {scene.id} - {scene.title}:",
            f"  Direction: {direction}",
            f"  Expression: {scene.character_expression}",
            f"  Pose: {scene.character_pose}",
        ]
        if change:
            lines.append("  WARNING: Direction change detected - ensure smooth transition")
    lines += [
        "",
        "ANIMATION NOTES:",
        "- Maintain consistent character proportions across all frames",
        "- Pay attention to direction changes and ensure logical transitions",
        "- Keep character clothing, colors, and features consistent",
        "- Environment lighting should remain consistent unless the story requires change",
    ]
    return "\n".join(lines) + "\n"


# =============================================================================
# ZIP archive
# =============================================================================


def build_archive(
    data: StoryboardData,
    character_image: ImageRef | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """Package every image plus metadata and text summaries into a ZIP.

    Args:
        data: Storyboard snapshot; every scene must have both frames
        character_image: Canonical character image, if one was generated
        generated_at: Timestamp written into the summaries (default: now)

    Returns:
        ZIP file contents

    Raises:
        ExportPreconditionError: If any scene is missing an image
    """
    incomplete = [scene.id for scene in data.scenes if not scene.is_complete]
    if incomplete:
        raise ExportPreconditionError(
            f"Cannot build archive: scene(s) {incomplete} are missing images"
        )

    generated_at = generated_at or datetime.now()
    zip_buffer = io.BytesIO()

    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zip_file:
        if character_image:
            zip_file.writestr(
                f"{ARCHIVE_ROOT}/character-main.{character_image.extension}", character_image.data
            )

        sheet = data.character_reference_sheet
        if sheet:
            for view_name, image in sheet.views().items():
                if image:
                    zip_file.writestr(
                        f"{ARCHIVE_ROOT}/{REFERENCES_FOLDER}/character-{view_name}-view.{image.extension}",
                        image.data,
                    )

        zip_file.writestr(f"{ARCHIVE_ROOT}/README.txt", build_readme(data, generated_at))
        zip_file.writestr(
            f"{ARCHIVE_ROOT}/storyboard-data.json",
            json.dumps(build_metadata(data, generated_at), indent=2),
        )
        zip_file.writestr(
            f"{ARCHIVE_ROOT}/motion-prompts.txt", build_motion_prompts(data, generated_at)
        )
        zip_file.writestr(
            f"{ARCHIVE_ROOT}/consistency-guide.txt", build_consistency_guide(data, generated_at)
        )

        for scene in data.scenes:
            for frame, image in (("a", scene.image_a), ("b", scene.image_b)):
                zip_file.writestr(
                    f"{ARCHIVE_ROOT}/{scene_image_filename(scene, frame, image)}", image.data
                )

    logger.info(f"Built storyboard archive with {len(data.scenes)} scenes")
    return zip_buffer.getvalue()


# =============================================================================
# PDF report
# =============================================================================


def _pdf_text(text: str) -> str:
    # Core PDF fonts only cover latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


class StoryboardPDF(FPDF):
    """A4 storyboard report with helpers for labelled text and image slots."""

    def __init__(self):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.set_margins(PDF_MARGIN, PDF_MARGIN, PDF_MARGIN)
        self.set_auto_page_break(auto=True, margin=PDF_MARGIN)

    def heading(self, text: str, size: int = 18) -> None:
        self.set_font("Helvetica", "B", size)
        self.multi_cell(0, size * 0.5, _pdf_text(text), new_x="LMARGIN", new_y="NEXT")
        self.ln(3)

    def labelled(self, label: str, text: str) -> None:
        self.set_font("Helvetica", "B", 12)
        self.cell(0, 6, _pdf_text(label), new_x="LMARGIN", new_y="NEXT")
        self.set_font("Helvetica", "", 10)
        self.multi_cell(0, 5, _pdf_text(text), new_x="LMARGIN", new_y="NEXT")
        self.ln(4)

    def image_slot(
        self,
        image: ImageRef | None,
        size: tuple[int, int],
        x: float | None = None,
        y: float | None = None,
    ) -> bool:
        """Draw an image, or a labelled placeholder box when it is missing.

        Leaves the cursor at the left margin just below the slot.

        Returns:
            True if the image itself was embedded
        """
        width, height = size
        x = self.l_margin if x is None else x
        if y is None:
            if self.will_page_break(height):
                self.add_page()
            y = self.get_y()

        embedded = False
        if image is not None:
            try:
                self.image(io.BytesIO(image.data), x=x, y=y, w=width, h=height)
                embedded = True
            except Exception as e:
                logger.warning(f"Could not embed image in PDF: {e}")

        if not embedded:
            self.set_draw_color(180, 180, 180)
            self.rect(x, y, width, height)
            self.set_xy(x, y + height / 2 - 3)
            self.set_font("Helvetica", "I", 9)
            self.cell(width, 6, "Image not generated", align="C")

        self.set_xy(self.l_margin, y + height)
        return embedded


def build_pdf(
    data: StoryboardData,
    character_image: ImageRef | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """Render the storyboard as a paginated PDF.

    Missing images are drawn as placeholders, so this works mid-generation.

    Returns:
        PDF file contents
    """
    generated_at = generated_at or datetime.now()
    pdf = StoryboardPDF()

    pdf.add_page()
    pdf.set_font("Helvetica", "B", 24)
    pdf.cell(0, 14, "ToonFrame Storyboard", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 14)
    pdf.cell(
        0, 10, f"Generated on: {_timestamp(generated_at)}", align="C",
        new_x="LMARGIN", new_y="NEXT",
    )
    pdf.ln(10)

    if character_image:
        pdf.heading("Main Character")
        pdf.image_slot(character_image, CHARACTER_IMAGE_SIZE)
        pdf.ln(10)

    sheet = data.character_reference_sheet
    if sheet:
        width, height = REFERENCE_IMAGE_SIZE
        if pdf.will_page_break(height + 20):
            pdf.add_page()
        pdf.heading("Character Reference Sheet")
        row_y = pdf.get_y()
        for index, (view_name, image) in enumerate(sheet.views().items()):
            x = pdf.l_margin + index * (width + 10)
            pdf.set_xy(x, row_y)
            pdf.set_font("Helvetica", "B", 12)
            pdf.cell(width, 6, f"{view_name.title()} View")
            pdf.image_slot(image, REFERENCE_IMAGE_SIZE, x=x, y=row_y + 7)
        pdf.set_xy(pdf.l_margin, row_y + height + 17)

    pdf.heading("Consistency Bible")
    pdf.labelled("Character Description:", data.consistency_bible.character_visuals)
    pdf.labelled("Environment Description:", data.consistency_bible.environment_visuals)

    for scene in data.scenes:
        pdf.add_page()
        pdf.heading(f"Scene {scene.id}: {scene.title}", size=16)
        pdf.labelled("Scene Context:", scene.context)

        for frame, description, image in (
            ("A", scene.image_a_description, scene.image_a),
            ("B", scene.image_b_description, scene.image_b),
        ):
            pdf.labelled(f"Image {frame} Description:", description)
            pdf.image_slot(image, SCENE_IMAGE_SIZE)
            pdf.ln(6)

        pdf.labelled(
            "Character Consistency:",
            f"Direction: {scene.character_direction.value}\n"
            f"Expression: {scene.character_expression}\n"
            f"Pose: {scene.character_pose}",
        )
        pdf.labelled("Detailed Motion Prompt (Start -> End Frame):", scene.motion_prompt)

    logger.info(f"Built storyboard PDF with {len(data.scenes)} scenes")
    return bytes(pdf.output())
