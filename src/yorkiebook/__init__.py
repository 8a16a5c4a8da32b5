"""
Yorkie Storybook

A Flask service that walks a user through a story wizard, asks generative
AI providers for a Yorkshire Terrier story and its illustrations, and
stores the results by id.
"""

from .catalog import (
    ANTAGONIST_TYPES,
    STORY_SETTING,
    get_wizard_options,
    normalize_antagonist_type,
)
from .models import Image, Story, StoryParams

__version__ = "0.1.0"

__all__ = [
    "ANTAGONIST_TYPES",
    "STORY_SETTING",
    "get_wizard_options",
    "normalize_antagonist_type",
    "Image",
    "Story",
    "StoryParams",
]
