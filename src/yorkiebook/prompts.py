"""
Prompt construction for story, illustration and image-analysis requests.

The persona and story-universe brief are constant; every story request
gets exactly the same framing around the configured traits.
"""

from typing import Iterable, List, Optional, Union

from .catalog import STORY_SETTING, antagonist_description
from .models import IllustrationRequest, StoryParams

STORY_SYSTEM_PROMPT = (
    "You are a creative children's book author specializing in Yorkshire terrier "
    "adventures. You understand their unique traits: intelligence, bravery, and "
    "loyalty. Your stories capture their distinctive personalities and small but "
    "mighty spirit. You also know that Yorkshire terriers have a special rivalry "
    "with squirrels and other rodents, who often tease them despite the Yorkies' "
    "brave nature."
)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a Yorkshire terrier expert and creative character designer. You "
    "specialize in bringing out the unique personalities of Yorkies, highlighting "
    "their brave, intelligent, and affectionate nature while acknowledging their "
    "small size but big personalities."
)

ANALYSIS_PROMPT = (
    "Create a detailed character profile for the Yorkshire terrier in this image. "
    "Include a unique name that suits their appearance, specific personality traits "
    "that reflect true Yorkie characteristics, and a vivid description emphasizing "
    "their distinctive features (size, coat, expression, etc). Format the response "
    "as JSON with name, personality, and description fields."
)

STORY_UNIVERSE = {
    "main_setting": (
        "Uncle Mark's magical Yorkie farm, a sanctuary where Yorkshire Terriers "
        "discover their inner magic and their best friends."
    ),
    "antagonists": [
        "The sorcerer in the Dark Woods who keeps trying to spoil the farm's good mood",
        "An army of chaotic squirrels who are troublemakers but oddly lovable",
    ],
    "magical_elements": [
        "Enchanted dog treats that give special powers",
        "Mystical grooming tools",
        "Magic-infused water bowls",
        "Glowing flower gardens",
        "Sparkly fence posts marking safe zones",
    ],
    "themes": [
        "Finding your inner magic",
        "Friendship and loyalty",
        "Standing up to bullies",
        "Protecting the farm's good vibes",
        "Learning new spells and tricks",
    ],
}

ILLUSTRATION_SUFFIX = "Uncle Mark's Yorkie Farm"


def _bullets(items: Iterable[str]) -> str:
    return "\n".join(f"  - {item}" for item in items)


def build_story_prompt(params: StoryParams) -> str:
    """
    Build the user prompt for a story request.

    Args:
        params: Validated story configuration

    Returns:
        Prompt text asking for a JSON object with title, content and metadata
    """
    protagonist = params.protagonist
    antagonist_text = antagonist_description(params.antagonist.type) or params.antagonist.type
    if params.antagonist.personality:
        antagonist_text = f"{antagonist_text} ({params.antagonist.personality})"

    traits = protagonist.personality
    if protagonist.name:
        traits = f"named {protagonist.name}, {traits}"

    lines = [
        "Create a charming Yorkshire terrier story with these parameters:",
        f"  - Yorkshire Terrier: {protagonist.appearance or 'A Yorkshire Terrier'} with these traits: {traits}",
        f"  - Setting: {STORY_SETTING}",
        f"  - Theme: {params.theme}",
        f"  - Antagonist: {antagonist_text}",
    ]
    if params.mood:
        lines.append(f"  - Mood: {params.mood}")
    if params.farm_elements:
        lines.append(f"  - Farm elements to feature: {', '.join(params.farm_elements)}")
    if params.art_style.description:
        lines.append(
            f"  - Illustration style (for scene descriptions): "
            f"{params.art_style.style}, {params.art_style.description}"
        )

    lines += [
        "",
        "Story universe:",
        f"  - {STORY_UNIVERSE['main_setting']}",
        _bullets(STORY_UNIVERSE["antagonists"]),
        "  Magical elements:",
        _bullets(STORY_UNIVERSE["magical_elements"]),
        "  Recurring themes:",
        _bullets(STORY_UNIVERSE["themes"]),
        "",
        "Story Context:",
        "  - Yorkshire terriers have a natural rivalry with squirrels and other rodents",
        "  - Squirrels are known for teasing and being mean to Yorkshire terriers",
        "  - Weave in the farm's special enchanted elements",
        "  - The story should showcase the Yorkshire terrier's bravery in facing the antagonist",
        "",
        "Requirements:",
        "  - Story should be between 3,000-5,000 words",
        "  - Include multiple chapters",
        "  - Use descriptive, engaging language suitable for a visual novel",
        "  - Create a whimsical, adventurous tone",
        "  - Include details about the antagonist's mischievous nature",
        "",
        "Provide the response as a JSON object with:",
        "  - title: story title",
        "  - content: full story text with chapter breaks",
        "  - metadata: containing wordCount, chapters (number of chapters), tone, and "
        "protagonist (name, personality, description)",
    ]
    return "\n".join(lines)


def build_image_prompt(
    prompt: str,
    art_style: Optional[str] = None,
    colors: Optional[List[str]] = None,
) -> str:
    """Prompt for a direct image-generation request."""
    parts = [prompt.strip()]
    if colors:
        parts.append(f"A Yorkshire Terrier with a {', '.join(colors).lower()} coat")
    if art_style:
        parts.append(f"Illustrated in a {art_style} style")
    parts.append("Children's storybook illustration, no text")
    return ". ".join(parts)


def _characteristics_text(characteristics: Union[List[str], str, None]) -> str:
    if not characteristics:
        return ""
    if isinstance(characteristics, str):
        return characteristics
    return ", ".join(characteristics)


def build_illustration_prompt(request: IllustrationRequest) -> str:
    """Prompt for a queued illustration, falling back to the protagonist traits."""
    base = request.description
    if not base:
        protagonist = request.protagonist
        base = (
            f"A Yorkshire Terrier {protagonist.appearance} "
            f"with {protagonist.personality} personality"
        ).replace("  ", " ")

    prompt = base
    characteristics = _characteristics_text(request.characteristics)
    if characteristics:
        prompt += f", {characteristics}"
    if request.setting:
        prompt += f" in {request.setting}"
    if request.art_style:
        prompt += f", {request.art_style.style} style"
        if request.art_style.description:
            prompt += f" ({request.art_style.description})"
    return f"{prompt} | {ILLUSTRATION_SUFFIX}"
