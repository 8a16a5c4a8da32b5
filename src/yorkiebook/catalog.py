"""
Option catalogs offered by the story wizard.

Each catalog entry is a ``{"value", "label"}`` dict, with a ``description``
where the wizard shows one. The catalogs also drive normalization: the
antagonist and art-style descriptions backfill missing fields.
"""

from typing import Dict, List, Optional

STORY_SETTING = "Uncle Mark's Farm"

COLOR_OPTIONS: List[Dict[str, str]] = [
    {"value": "black-tan", "label": "Classic Black & Tan"},
    {"value": "neon-pink", "label": "Neon Pink & Purple"},
    {"value": "pastel-rainbow", "label": "Pastel Rainbow"},
    {"value": "electric-blue", "label": "Electric Blue & Silver"},
    {"value": "cosmic-purple", "label": "Cosmic Purple & Gold"},
    {"value": "rose-gold", "label": "Rose Gold & Pink"},
    {"value": "mint-lavender", "label": "Mint & Lavender"},
    {"value": "sunset-orange", "label": "Sunset Orange & Pink"},
    {"value": "steel-blue", "label": "Steel Blue & Tan"},
    {"value": "golden-shimmer", "label": "Golden Shimmer"},
    {"value": "silver-sparkle", "label": "Silver & Sparkles"},
    {"value": "chocolate", "label": "Rich Chocolate"},
    {"value": "parti-neon", "label": "Parti Neon"},
    {"value": "blue-tan", "label": "Classic Blue & Tan"},
    {"value": "ruby-red", "label": "Ruby Red"},
    {"value": "galaxy-swirl", "label": "Galaxy Swirl"},
    {"value": "cotton-candy", "label": "Cotton Candy"},
    {"value": "emerald-gold", "label": "Emerald & Gold"},
    {"value": "unicorn", "label": "Unicorn Fantasy"},
    {"value": "aurora", "label": "Aurora Lights"},
]

PERSONALITY_OPTIONS: List[str] = [
    "Brave and Adventurous",
    "Sweet and Gentle",
    "Clever and Curious",
    "Playful and Energetic",
    "Loyal and Protective",
    "Mischievous and Fun",
    "Elegant and Graceful",
    "Determined and Strong",
]

THEME_OPTIONS: List[Dict[str, str]] = [
    {"value": "farm-adventure", "label": "Farm Adventure", "description": "Explore Uncle Mark's Farm"},
    {"value": "friendship", "label": "Making Friends", "description": "Meeting new animal friends"},
    {"value": "helping", "label": "Helping Others", "description": "Being kind and helpful"},
    {"value": "mystery", "label": "Solving Mysteries", "description": "Finding clues and solving puzzles"},
    {"value": "learning", "label": "Learning New Things", "description": "Discovering the world"},
    {"value": "courage", "label": "Finding Courage", "description": "Overcoming fears"},
]

ANTAGONIST_OPTIONS: List[Dict[str, str]] = [
    {
        "value": "sorcerer-basic",
        "label": "Evil Sorcerer",
        "description": "A mysterious dark wizard who wants to steal the farm's magic",
    },
    {
        "value": "sorcerer-squirrels",
        "label": "Sorcerer & Squirrel Army",
        "description": "Evil wizard commanding an army of mischievous squirrels",
    },
    {
        "value": "squirrel-gang",
        "label": "The Nutty Gang",
        "description": "Organized squirrels trying to steal eggs and crops",
    },
    {
        "value": "dark-wizard",
        "label": "Dark Wizard & Shadow Creatures",
        "description": "Powerful wizard with shadow creatures threatening the farm",
    },
]

FARM_ELEMENT_OPTIONS: List[Dict[str, str]] = [
    {"value": "chickens", "label": "Chicken Coop", "description": "Protect the special golden eggs"},
    {"value": "turkeys", "label": "Turkey Squad", "description": "The farm's watchful guardians"},
    {"value": "garden", "label": "Magic Garden", "description": "Enchanted vegetables and fruits"},
    {"value": "barn", "label": "Ancient Barn", "description": "Full of magical farm secrets"},
]

ART_STYLE_OPTIONS: List[Dict[str, str]] = [
    {
        "value": "whimsical",
        "label": "Whimsical Fantasy",
        "description": "Playful and enchanting style with magical elements",
    },
    {
        "value": "studio-ghibli",
        "label": "Studio Ghibli Inspired",
        "description": "Inspired by the magical worlds of Miyazaki",
    },
    {
        "value": "watercolor",
        "label": "Dreamy Watercolor",
        "description": "Soft, flowing watercolor illustrations",
    },
    {
        "value": "pixel-art",
        "label": "Retro Pixel Art",
        "description": "Charming 16-bit style illustrations",
    },
    {
        "value": "pop-art",
        "label": "Pop Art",
        "description": "Bold, vibrant comic book style",
    },
    {
        "value": "pencil-sketch",
        "label": "Classic Pencil Sketch",
        "description": "Traditional hand-drawn appearance",
    },
    {
        "value": "3d-cartoon",
        "label": "3D Cartoon",
        "description": "Modern 3D animated style",
    },
    {
        "value": "storybook",
        "label": "Classic Storybook",
        "description": "Traditional children's book illustrations",
    },
]

ANTAGONIST_TYPES = tuple(option["value"] for option in ANTAGONIST_OPTIONS)

# Legacy antagonist values still sent by older clients
ANTAGONIST_ALIASES: Dict[str, str] = {
    "squirrel": "squirrel-gang",
}


def normalize_antagonist_type(value: Optional[str]) -> Optional[str]:
    """Map a legacy antagonist value onto its catalog value; other values pass through."""
    if value is None:
        return None
    return ANTAGONIST_ALIASES.get(value, value)


def _describe(options: List[Dict[str, str]], value: Optional[str]) -> Optional[str]:
    for option in options:
        if option["value"] == value:
            return option.get("description")
    return None


def antagonist_description(value: Optional[str]) -> Optional[str]:
    return _describe(ANTAGONIST_OPTIONS, value)


def art_style_description(value: Optional[str]) -> Optional[str]:
    return _describe(ART_STYLE_OPTIONS, value)


def get_wizard_options() -> Dict[str, list]:
    """All catalogs, keyed the way the wizard endpoints expose them."""
    return {
        "colors": COLOR_OPTIONS,
        "personalities": PERSONALITY_OPTIONS,
        "themes": THEME_OPTIONS,
        "antagonists": ANTAGONIST_OPTIONS,
        "farmElements": FARM_ELEMENT_OPTIONS,
        "artStyles": ART_STYLE_OPTIONS,
    }
