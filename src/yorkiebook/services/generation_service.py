"""
Generation service.

Turns a validated configuration into a persisted Story or Image by calling
exactly one external provider. Provider calls are retried on transient
failures; repository writes and file I/O are not. Every public operation
returns ``Ok``/``Err``: expected failures come back as ``Err``, faults
propagate as exceptions.
"""

import logging
import mimetypes
import time
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar, Union, TYPE_CHECKING

import pydantic

if TYPE_CHECKING:
    from src.yorkiebook.utils.repository import ImageRepository, StoryRepository

from src.yorkiebook.models import (
    CharacterProfile,
    Image,
    ImageAnalysis,
    ImageGenerationRequest,
    IllustrationRequest,
    MidjourneyInfo,
    SelectedImages,
    Story,
    StoryDraft,
    StoryParams,
)
from src.yorkiebook.prompts import (
    ANALYSIS_PROMPT,
    ANALYSIS_SYSTEM_PROMPT,
    STORY_SYSTEM_PROMPT,
    build_illustration_prompt,
    build_image_prompt,
    build_story_prompt,
)
from src.yorkiebook.providers.base import BaseImageClient, BaseLLMClient, UNREADABLE_RESPONSE_MESSAGE
from src.yorkiebook.services.results import Err, Ok, Result
from src.yorkiebook.utils.debug_log import DebugLogStore
from src.yorkiebook.utils.errors import (
    FileMissingError,
    NotFoundError,
    ProviderError,
    ProviderTransientError,
    ValidationError,
    validation_error_from_pydantic,
)
from src.yorkiebook.utils.file_storage import ImageFileStore, public_url
from src.yorkiebook.utils.retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORY_MAX_TOKENS = 8000
ANALYSIS_MAX_TOKENS = 1000
IMAGE_SIZE = "1024x1024"

TEXT_LOG = "openai"
ILLUSTRATION_LOG = "midjourney"


def _parse_story_draft(payload: Dict[str, Any]) -> StoryDraft:
    try:
        return StoryDraft.model_validate(payload)
    except pydantic.ValidationError as e:
        logger.error(f"Story response did not match the expected shape: {e}")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE) from e


def _parse_character_profile(payload: Dict[str, Any]) -> CharacterProfile:
    try:
        profile = CharacterProfile.model_validate(payload)
    except pydantic.ValidationError as e:
        logger.error(f"Analysis response did not match the expected shape: {e}")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE) from e
    if not profile.name and not profile.description:
        logger.error(f"Analysis response carried no profile: {payload}")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE)
    return profile


class GenerationService:
    """Orchestrates provider calls and persistence for stories and images."""

    def __init__(
        self,
        story_repository: 'StoryRepository',
        image_repository: 'ImageRepository',
        text_provider: BaseLLMClient,
        image_provider: BaseImageClient,
        file_store: ImageFileStore,
        debug_log: Optional[DebugLogStore] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize generation service.

        Args:
            story_repository: Where generated stories are stored
            image_repository: Where image records are stored
            text_provider: Text and vision provider
            image_provider: Image-generation provider
            file_store: Disk storage for image bytes
            debug_log: Recent provider traffic (a private store if None)
            max_attempts: Attempts per provider call
            retry_delay: Base delay between attempts, in seconds
            sleep: Sleep function used between attempts
        """
        self.stories = story_repository
        self.images = image_repository
        self.text_provider = text_provider
        self.image_provider = image_provider
        self.file_store = file_store
        self.debug_log = debug_log if debug_log is not None else DebugLogStore()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _call_provider(
        self,
        log_service: str,
        description: str,
        request_summary: Dict[str, Any],
        call: Callable[[], Any],
        parse: Callable[[Any], T] = lambda value: value,
    ) -> T:
        """
        Run one provider call (plus response parsing) under the retry policy.

        Each attempt is recorded in the debug log; raw provider detail
        stays in the server logs.
        """
        self.debug_log.record(log_service, "request", {"operation": description, **request_summary})

        def attempt() -> T:
            try:
                return parse(call())
            except ProviderError as e:
                self.debug_log.record(log_service, "error", {
                    "operation": description,
                    "category": e.error_code,
                    "message": e.message,
                })
                raise

        result = call_with_retry(
            attempt,
            max_attempts=self.max_attempts,
            base_delay=self.retry_delay,
            sleep=self._sleep,
            description=description,
        )
        self.debug_log.record(log_service, "response", {"operation": description, "status": "ok"})
        return result

    def generate_story(self, config: Union[StoryParams, Mapping[str, Any]]) -> Result[Story]:
        """
        Generate and store a story.

        Args:
            config: Story configuration (model or wire-form dict)

        Returns:
            Ok(Story) carrying the assigned id, or Err with a ValidationError
            (no provider call made) or a provider error
        """
        try:
            params = config if isinstance(config, StoryParams) else StoryParams.model_validate(config)
        except pydantic.ValidationError as e:
            logger.info(f"Rejected story configuration: {e.error_count()} problem(s)")
            return Err(validation_error_from_pydantic(e, "Invalid story parameters"))

        prompt = build_story_prompt(params)
        try:
            draft = self._call_provider(
                TEXT_LOG,
                "story generation",
                {
                    "model": self.text_provider.model_name,
                    "theme": params.theme,
                    "antagonist": params.antagonist.type,
                },
                lambda: self.text_provider.generate_json(
                    prompt,
                    system_prompt=STORY_SYSTEM_PROMPT,
                    max_tokens=STORY_MAX_TOKENS,
                ),
                _parse_story_draft,
            )
        except ProviderError as e:
            return Err(e)

        selected_images = SelectedImages()
        if params.selected_image is not None:
            selected_images.slot1 = params.selected_image

        story = self.stories.create(Story(
            title=draft.title,
            protagonist=params.protagonist.appearance,
            theme=params.theme,
            content=draft.content,
            selected_images=selected_images,
            metadata=draft.metadata,
            art_style=params.art_style,
        ))
        logger.info(f"Generated story {story.id}: '{story.title}'")
        return Ok(story)

    def _next_order(self, book_id: int) -> int:
        return len([img for img in self.images.list_all() if img.book_id == book_id])

    def _store_generated_bytes(self, book_id: int, image_bytes: bytes) -> str:
        relative_path = self.file_store.book_path(book_id, self.file_store.random_filename(".png"))
        self.file_store.write(relative_path, image_bytes)
        return relative_path

    def generate_image(self, config: Union[ImageGenerationRequest, Mapping[str, Any]]) -> Result[Image]:
        """
        Generate an image, write it under the book's folder and store its record.

        A failed file write is not retried and propagates as an exception.
        """
        try:
            request = (
                config if isinstance(config, ImageGenerationRequest)
                else ImageGenerationRequest.model_validate(config)
            )
        except pydantic.ValidationError as e:
            return Err(validation_error_from_pydantic(e, "Invalid image request"))

        prompt = build_image_prompt(request.prompt, request.art_style, request.colors)
        try:
            image_bytes = self._call_provider(
                TEXT_LOG,
                "image generation",
                {"prompt": prompt, "bookId": request.book_id},
                lambda: self.image_provider.generate_image(prompt, size=IMAGE_SIZE),
            )
        except ProviderError as e:
            return Err(e)

        relative_path = self._store_generated_bytes(request.book_id, image_bytes)
        image = self.images.create(Image(
            book_id=request.book_id,
            path=relative_path,
            order=self._next_order(request.book_id),
        ))
        logger.info(f"Generated image {image.id} at {relative_path}")
        return Ok(image)

    def request_illustration(self, config: Union[IllustrationRequest, Mapping[str, Any]]) -> Result[Image]:
        """Create a pending illustration record; ``complete_illustration`` does the work."""
        try:
            request = (
                config if isinstance(config, IllustrationRequest)
                else IllustrationRequest.model_validate(config)
            )
        except pydantic.ValidationError as e:
            return Err(validation_error_from_pydantic(e, "Invalid illustration request"))

        prompt = build_illustration_prompt(request)
        image = self.images.create(Image(
            book_id=request.book_id,
            order=self._next_order(request.book_id),
            midjourney=MidjourneyInfo(
                prompt=prompt,
                status="pending",
                art_style=request.art_style.style if request.art_style else None,
            ),
        ))
        self.debug_log.record(ILLUSTRATION_LOG, "request", {"imageId": image.id, "prompt": prompt})
        logger.info(f"Illustration {image.id} requested")
        return Ok(image)

    def _set_illustration_status(self, image: Image, status: str) -> Image:
        return self.images.update_metadata(
            image.id,
            {"midjourney": image.midjourney.model_copy(update={"status": status})},
        )

    def complete_illustration(self, image_id: int) -> Result[Image]:
        """
        Generate the picture for a pending illustration record.

        The record ends up ``completed`` (with path and imageUrl) or ``failed``.
        """
        image = self.images.get_by_id(image_id)
        if image is None:
            return Err(NotFoundError("Image", image_id))
        if image.midjourney is None:
            return Err(ValidationError(f"Image {image_id} has no illustration request."))
        if image.midjourney.status == "completed":
            return Ok(image)

        prompt = image.midjourney.prompt
        try:
            image_bytes = self._call_provider(
                ILLUSTRATION_LOG,
                "illustration",
                {"imageId": image_id, "prompt": prompt},
                lambda: self.image_provider.generate_image(prompt, size=IMAGE_SIZE),
            )
        except ProviderError as e:
            self._set_illustration_status(image, "failed")
            logger.warning(f"Illustration {image_id} failed: {e.message}")
            return Err(e)

        try:
            relative_path = self._store_generated_bytes(image.book_id, image_bytes)
        except OSError:
            self._set_illustration_status(image, "failed")
            raise

        updated = self.images.update_metadata(image_id, {
            "path": relative_path,
            "midjourney": image.midjourney.model_copy(update={"status": "completed"}),
        })

        # imageUrl only mirrors path; a failure here does not undo the completed image
        try:
            updated = self.images.update_metadata(image_id, {
                "midjourney": updated.midjourney.model_copy(update={"image_url": public_url(relative_path)}),
            })
        except Exception as e:
            logger.warning(f"Could not record imageUrl for illustration {image_id}: {e}")

        self.debug_log.record(ILLUSTRATION_LOG, "response", {"imageId": image_id, "path": relative_path})
        logger.info(f"Illustration {image_id} completed at {relative_path}")
        return Ok(updated)

    def analyze_image(self, image_id: int) -> Result[Image]:
        """
        Produce (or return the cached) character profile for an image.

        Returns:
            Ok(Image) with ``analyzed`` set and ``analysis`` present; Err with
            NotFoundError for an unknown id, FileMissingError when the file is
            gone, or a provider error
        """
        image = self.images.get_by_id(image_id)
        if image is None:
            return Err(NotFoundError("Image", image_id))

        if image.analyzed and image.analysis is not None:
            logger.debug(f"Image {image_id} already analyzed; returning stored analysis")
            return Ok(image)

        try:
            image_bytes = self.file_store.read(image.path)
        except FileMissingError as e:
            logger.warning(f"Image {image_id} file missing: {image.path!r}")
            return Err(e)

        mime_type = mimetypes.guess_type(image.path)[0] or "image/png"
        try:
            profile = self._call_provider(
                TEXT_LOG,
                "image analysis",
                {"imageId": image_id, "model": self.text_provider.model_name, "bytes": len(image_bytes)},
                lambda: self.text_provider.analyze_image(
                    image_bytes,
                    mime_type,
                    ANALYSIS_PROMPT,
                    system_prompt=ANALYSIS_SYSTEM_PROMPT,
                    max_tokens=ANALYSIS_MAX_TOKENS,
                ),
                _parse_character_profile,
            )
        except ProviderError as e:
            return Err(e)

        updated = self.images.update_metadata(image_id, {
            "analyzed": True,
            "analysis": ImageAnalysis(description=profile.description, character_profile=profile),
        })
        logger.info(f"Analyzed image {image_id}: {profile.name}")
        return Ok(updated)
