"""Base utilities for prompts module.

Contains shared helper functions used across prompt modules.
"""


def strip_markdown_code_blocks(text: str) -> str:
    """Strip a markdown code fence wrapped around a JSON reply.

    Structured-output requests should never be fenced, but a fenced reply is
    still valid JSON once unwrapped.

    Args:
        text: Raw reply text

    Returns:
        Text with a leading ```/```json fence and trailing ``` removed
    """
    text = text.strip()
    for fence in ("```json", "```JSON", "```"):
        if text.startswith(fence):
            text = text[len(fence):]
            break
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()
