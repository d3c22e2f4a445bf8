"""Prompt assembly helpers used by core orchestration.

This module only builds prompt strings from already validated inputs. Command
validation, submission and polling happen outside this module.

Design constraints:
    - Deterministic construction for identical inputs.
    - No I/O and no global state mutation.

Style table:
    Styles are 1-based indexes into the configured preset list. The figurine
    prompt embeds the image URL ahead of the preset text; text-to-image
    prompts put the default preset ahead of the user description.
"""

from typing import Sequence

from figurine.core.errors import InvalidStyle


FIGURINE_TEMPLATE = "Transform this image into a high-quality figurine: {image_url}, {preset}"

MIN_PROMPT_CHARS = 2


def validate_style(style: int, presets: Sequence[str]) -> int:
    """Return `style` if it indexes `presets` (1-based), else raise `InvalidStyle`."""
    if isinstance(style, bool) or not isinstance(style, int) or not 1 <= style <= len(presets):
        raise InvalidStyle(len(presets))
    return style


def preset_for(style: int, presets: Sequence[str]) -> str:
    """Preset text for `style`, falling back to the first preset."""
    if 1 <= style <= len(presets):
        return presets[style - 1]
    return presets[0]


def build_figurine_prompt(style: int, presets: Sequence[str], image_url: str | None = None) -> str:
    """Build the image-to-figurine instruction.

    Without an image URL the bare preset is returned; this is the prefix
    reused by text-to-image prompts.
    """
    preset = preset_for(style, presets)
    if image_url:
        return FIGURINE_TEMPLATE.format(image_url=image_url, preset=preset)
    return preset


def build_text_prompt(description: str, style: int, presets: Sequence[str]) -> str:
    """Build a text-to-image prompt: `<preset>, <description>`."""
    return f"{build_figurine_prompt(style, presets)}, {description.strip()}"
