"""Storyboard prompt templates and assembly helpers.

Contains:
- VISUAL_STYLE_PROMPT: Style block prepended to every image prompt
- SYSTEM_INSTRUCTION: System instruction for script analysis
- REFERENCE_VIEWS: Camera angle descriptors for the character reference sheet

All builders are pure: identical input always produces identical text.
"""

from models.storyboard import ConsistencyBible

VISUAL_STYLE_PROMPT = """VISUAL STYLE (STRICT ENFORCEMENT):
- Style: Modern 2D Western Cartoon Style.
- Line Work: Clean, uniform, medium-thick black outlines. Flat color, no complex shading or gradients (cell-shading only).
- Proportions: Exaggerated, large head-to-body ratio (youthful look), slender and dynamic limbs.
- Facial Features: Oversized, highly expressive eyes; tiny dot/triangular nose; simple, graphic mouths.
- Color: Bright, highly saturated, and complementary color palette."""

SYSTEM_INSTRUCTION = """ROLE: Animation Storyboard Engine
You are the backend engine for a storyboard application. Your goal is to convert a raw **Story Script** into a consistent, frame-by-frame visual guide for animation generation.

## 1. PROCESS INSTRUCTIONS
1. Analyze the Script: Identify the characters and the specific environment.
2. Define Assets: Create a "Consistency Bible" describing the character and environment details so they stay the same in every frame.
3. Generate Beats: Break the script into action beats. Create 5-8 scenes.
4. Create Keyframe Triplets: For every action beat, generate:
    * Image A (Start Frame): The visual state at the start of the action.
    * Image B (End Frame): The visual state at the end of the action.
    * Motion Prompt: A specific instruction describing the movement.
    * Character Metadata: Direction facing, expression, and pose for consistency tracking.

## 2. CHARACTER CONSISTENCY RULES (CRITICAL)
- Maintain consistent character facing direction throughout the story flow
- If the character starts facing right in Scene 1, keep a logical directional flow in subsequent scenes
- The character keeps consistent proportions, clothing, and features
- Character positioning creates a natural flow from scene to scene
- Avoid jarring directional changes unless the story requires it

## 3. MOTION PROMPT REQUIREMENTS
The motion prompt MUST be detailed and include:
- Initial position and pose of the character
- Step-by-step description of the movement
- Intermediate keyframes or poses during the motion
- Final position and pose
- Camera movement (if any)
- Timing descriptions (slow, fast, sudden, gradual)
- Changes of expression during the motion
- Any object interactions
- Environmental effects (wind, lighting changes, etc.)

## 4. CHARACTER METADATA REQUIREMENTS
For each scene provide:
- character_direction: One of 'left', 'right', 'forward', 'back' (the direction the character faces in the end frame)
- character_expression: Brief facial expression (e.g. 'happy', 'concerned', 'determined')
- character_pose: Brief body pose (e.g. 'standing', 'walking', 'pointing', 'sitting')

## 5. OUTPUT FORMAT
Return valid JSON matching the provided schema. Number scene ids 1, 2, 3... in story order. Do not include markdown formatting or code blocks."""

# Fixed iteration order; the views do not depend on each other.
REFERENCE_VIEWS = {
    "front": "front view, facing forward directly at camera",
    "side": "side profile view, facing left, showing full body from the side",
    "back": "back view, facing away from camera, showing the character from behind",
}


def build_analysis_contents(script: str) -> str:
    """User message sent alongside SYSTEM_INSTRUCTION."""
    return f"Analyze this script and generate a storyboard:\n\n{script}"


def build_consistency_context(bible: ConsistencyBible) -> str:
    """Character and environment descriptions shared by every scene prompt."""
    return f"Character: {bible.character_visuals}\nEnvironment: {bible.environment_visuals}"


def build_image_prompt(
    style_template: str,
    consistency_context: str,
    description: str,
    has_reference: bool,
) -> str:
    """Assemble a scene image prompt.

    Args:
        style_template: Fixed visual style block
        consistency_context: Output of build_consistency_context
        description: Frame description for this image
        has_reference: Whether a character reference image accompanies the prompt

    Returns:
        Prompt text, deterministic for identical input
    """
    sections = [
        style_template.strip(),
        f"CONSISTENCY CONTEXT:\n{consistency_context.strip()}",
    ]
    if has_reference:
        sections.append(
            "CHARACTER REFERENCE:\nUse the attached character image as the reference "
            "for the character in this scene. Keep the same design, clothing, colors and proportions."
        )
    sections.append(f"SCENE DESCRIPTION:\n{description.strip()}")
    return "\n\n".join(sections)


def build_character_prompt(character_visuals: str) -> str:
    """Prompt for the canonical character image."""
    return (
        "Create a character in a cartoon style with the following description "
        "on a plain white background.\n"
        "This character should be consistently drawn.\n"
        f"Description: {character_visuals.strip()}"
    )


def build_reference_view_prompt(
    style_template: str,
    character_visuals: str,
    view_description: str,
) -> str:
    """Prompt for one reference sheet view conditioned on the canonical image."""
    return "\n\n".join([
        style_template.strip(),
        f"Create a character reference sheet showing the character in {view_description}.",
        "The attached image is the canonical design of this character. Preserve its exact "
        "visual identity: same face, hair, clothing, colors, proportions and drawing style. "
        "Change ONLY the camera angle.",
        "Draw the full character from head to toe on a plain white background.",
        f"Character Description: {character_visuals.strip()}",
        f"View: {view_description.upper()}",
    ])
