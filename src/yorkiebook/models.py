"""
Storybook data models.

Pydantic models for everything that crosses the HTTP boundary or lives in a
repository. Field names are snake_case in Python and camelCase on the wire;
``to_dict()`` always produces the wire form.
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .catalog import ANTAGONIST_TYPES, STORY_SETTING

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to its JSON wire form."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create model from a dict (camelCase or snake_case keys), with validation."""
        return cls.model_validate(data)


class RequestModel(CamelModel):
    """Inbound payloads: surrounding whitespace is stripped before validation."""

    model_config = ConfigDict(str_strip_whitespace=True)


def _as_text(v: Any) -> Optional[str]:
    """Flatten provider-reported text fields; lists become comma-separated."""
    if v is None:
        return None
    if isinstance(v, (list, tuple)):
        return ", ".join(str(item) for item in v if item is not None)
    return v if isinstance(v, str) else str(v)


# Draft Configuration

class Protagonist(RequestModel):
    name: Optional[str] = None
    personality: str = Field(..., min_length=1)
    appearance: str = ""


class Antagonist(RequestModel):
    type: str = Field(..., min_length=1)
    personality: str = ""

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in ANTAGONIST_TYPES:
            raise ValueError(f"must be one of: {', '.join(ANTAGONIST_TYPES)}")
        return v


class ArtStyle(RequestModel):
    style: str = Field(..., min_length=1)
    description: str = ""


class StoryParams(RequestModel):
    """
    A complete story configuration, as produced by the wizard or posted by a client.

    protagonist.personality, antagonist.type, theme and artStyle.style must
    all be non-empty; mood and farmElements are optional.
    """
    protagonist: Protagonist
    antagonist: Antagonist
    theme: str = Field(..., min_length=1)
    mood: Optional[str] = None
    art_style: ArtStyle
    farm_elements: List[str] = Field(default_factory=list)
    selected_image: Optional[int] = Field(default=None, ge=1)


# Stories

class CharacterProfile(CamelModel):
    name: str = ""
    personality: str = ""
    description: str = ""

    @field_validator("name", "personality", "description", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v) or ""


class StoryMetadata(CamelModel):
    """Provider-reported statistics about a generated story."""
    word_count: Optional[int] = None
    chapters: Optional[int] = None
    tone: Optional[str] = None
    protagonist: Optional[CharacterProfile] = None

    @field_validator("word_count", "chapters", mode="before")
    @classmethod
    def coerce_count(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return int(v)
        if isinstance(v, str):
            digits = v.replace(",", "").split()[0] if v.strip() else ""
            return int(digits) if digits.isdigit() else None
        return None

    @field_validator("tone", mode="before")
    @classmethod
    def coerce_tone(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("protagonist", mode="before")
    @classmethod
    def coerce_protagonist(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"description": v}
        return v if isinstance(v, (dict, CharacterProfile)) else None


class StoryDraft(CamelModel):
    """Shape the text provider must return for a story request."""
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    metadata: StoryMetadata = Field(default_factory=StoryMetadata)

    @field_validator("metadata", mode="wrap")
    @classmethod
    def keep_story_on_bad_metadata(cls, v: Any, handler: ValidatorFunctionWrapHandler) -> StoryMetadata:
        if v is None:
            return StoryMetadata()
        try:
            return handler(v)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable story metadata: {e}")
            return StoryMetadata()


class SelectedImages(CamelModel):
    slot1: int = 1
    slot2: int = 2
    slot3: int = 3


class Story(CamelModel):
    """A generated story. Never modified once stored."""
    id: Optional[int] = None
    title: str
    protagonist: str = ""
    setting: str = STORY_SETTING
    theme: str
    content: str
    selected_images: SelectedImages = Field(default_factory=SelectedImages)
    metadata: StoryMetadata = Field(default_factory=StoryMetadata)
    art_style: Optional[ArtStyle] = None
    created_at: Optional[str] = None


# Images

class ImageAnalysis(CamelModel):
    description: str = ""
    character_profile: CharacterProfile = Field(default_factory=CharacterProfile)


class MidjourneyInfo(CamelModel):
    """Illustration job state attached to a generated image."""
    prompt: str
    status: Literal["pending", "completed", "failed"] = "pending"
    discord_message_id: Optional[str] = None
    image_url: Optional[str] = None
    art_style: Optional[str] = None


class Image(CamelModel):
    """An uploaded or generated image; ``path`` is relative to the upload folder."""
    id: Optional[int] = None
    book_id: int = 1
    path: str = ""
    order: int = 0
    selected: bool = False
    analyzed: bool = False
    analysis: Optional[ImageAnalysis] = None
    midjourney: Optional[MidjourneyInfo] = None
    created_at: Optional[str] = None

    @model_validator(mode="after")
    def check_analysis_present(self) -> "Image":
        if self.analyzed and self.analysis is None:
            raise ValueError("analyzed images must carry an analysis")
        return self


class ProtagonistTraits(RequestModel):
    name: Optional[str] = None
    personality: str = ""
    appearance: str = ""


class IllustrationRequest(RequestModel):
    """Queued illustration request (``POST /api/images/generate``)."""
    description: Optional[str] = None
    characteristics: Optional[Union[List[str], str]] = None
    setting: Optional[str] = None
    art_style: Optional[ArtStyle] = None
    protagonist: Optional[ProtagonistTraits] = None
    book_id: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def check_subject(self) -> "IllustrationRequest":
        if not self.description and not (
            self.protagonist and (self.protagonist.appearance or self.protagonist.personality)
        ):
            raise ValueError("either description or protagonist traits are required")
        return self


class ImageGenerationRequest(RequestModel):
    """Direct image generation request (``POST /api/images/generate-dalle``)."""
    prompt: str = Field(..., min_length=1)
    art_style: Optional[str] = None
    colors: Optional[List[str]] = None
    book_id: int = Field(default=1, ge=1)


# Supporting records

class CustomArtStyle(RequestModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    example_prompt: Optional[str] = None
    created_at: Optional[str] = None


class CustomArtStyleUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    example_prompt: Optional[str] = None


class DebugLogEntry(CamelModel):
    timestamp: str
    service: Literal["openai", "midjourney"]
    type: Literal["request", "response", "error"]
    content: Any = None
