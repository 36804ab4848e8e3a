"""Prompts module - centralized prompt templates for the storyboard services.

Re-exports all prompt constants and builders for easy importing:
    from services.prompts import SYSTEM_INSTRUCTION, build_image_prompt
"""

from services.prompts._base import strip_markdown_code_blocks
from services.prompts.storyboard import (
    REFERENCE_VIEWS,
    SYSTEM_INSTRUCTION,
    VISUAL_STYLE_PROMPT,
    build_analysis_contents,
    build_character_prompt,
    build_consistency_context,
    build_image_prompt,
    build_reference_view_prompt,
)

# Increment when prompt wording changes so stored storyboards can be traced
# back to the prompts that produced them.
PROMPT_VERSIONS = {
    "analyze_script": "v1",
    "scene_image": "v1",
    "character": "v1",
    "reference_view": "v1",
}

__all__ = [
    # Utilities
    "strip_markdown_code_blocks",
    # Version tracking
    "PROMPT_VERSIONS",
    # Templates
    "VISUAL_STYLE_PROMPT",
    "SYSTEM_INSTRUCTION",
    "REFERENCE_VIEWS",
    # Builders
    "build_analysis_contents",
    "build_consistency_context",
    "build_image_prompt",
    "build_character_prompt",
    "build_reference_view_prompt",
]
