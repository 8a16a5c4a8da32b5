"""
Service layer for the Yorkie Storybook application.

Services hold the business logic and are independent of the HTTP layer,
so they can be used by:
- Flask route handlers
- Background jobs
- Tests

``build_services`` is the container: it wires repositories, providers
and services together for one application (or one job run).
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from src.yorkiebook.providers import (
    BaseImageClient,
    BaseLLMClient,
    UnconfiguredProvider,
    create_image_provider,
    create_provider,
)
from src.yorkiebook.utils.debug_log import DebugLogStore
from src.yorkiebook.utils.file_storage import ImageFileStore
from src.yorkiebook.utils.repository import (
    ArtStyleRepository,
    ImageRepository,
    StoryRepository,
    create_repositories,
)
from .generation_service import GenerationService
from .job_service import JobService
from .results import Err, Ok, Result
from .upload_service import UploadService
from .wizard_service import (
    DraftStore,
    MemoryDraftStore,
    SessionDraftStore,
    WizardController,
    normalize_configuration,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes and jobs need, built once per application."""
    stories: StoryRepository
    images: ImageRepository
    art_styles: ArtStyleRepository
    file_store: ImageFileStore
    debug_log: DebugLogStore
    generation: GenerationService
    uploads: UploadService
    jobs: JobService


def _build_text_provider(config: Mapping[str, Any]) -> BaseLLMClient:
    name = config.get("LLM_PROVIDER", "openai")
    kwargs = {
        "model_name": config.get("LLM_MODEL"),
        "temperature": config.get("LLM_TEMPERATURE", 0.8),
        "timeout": config.get("PROVIDER_TIMEOUT_SECONDS", 120),
    }
    try:
        return create_provider(name, **kwargs)
    except ValueError as e:
        logger.warning(f"Text provider '{name}' unavailable: {e}")
        return UnconfiguredProvider(name, str(e))


def _build_image_provider(config: Mapping[str, Any]) -> BaseImageClient:
    name = config.get("IMAGE_PROVIDER", "openai")
    kwargs = {
        "model_name": config.get("IMAGE_MODEL"),
        "timeout": config.get("PROVIDER_TIMEOUT_SECONDS", 120),
    }
    try:
        return create_image_provider(name, **kwargs)
    except ValueError as e:
        logger.warning(f"Image provider '{name}' unavailable: {e}")
        return UnconfiguredProvider(name, str(e))


def build_services(
    config: Mapping[str, Any],
    text_provider: Optional[BaseLLMClient] = None,
    image_provider: Optional[BaseImageClient] = None,
    sleep: Callable[[float], None] = time.sleep,
    queue_factory: Optional[Callable[[str], Any]] = None,
) -> Services:
    """
    Build the service container from configuration.

    Args:
        config: Configuration mapping (``app.config`` or ``load_config()``)
        text_provider: Overrides the configured text/vision provider
        image_provider: Overrides the configured image provider
        sleep: Sleep function used between provider retries
        queue_factory: Overrides the RQ queue lookup

    Returns:
        Services container
    """
    stories, images, art_styles = create_repositories(
        config.get("STORAGE_BACKEND", "sqlite"),
        config.get("DATABASE_PATH"),
    )

    file_store = ImageFileStore(config["UPLOAD_FOLDER"])
    file_store.ensure_root()

    debug_log = DebugLogStore()
    generation = GenerationService(
        story_repository=stories,
        image_repository=images,
        text_provider=text_provider or _build_text_provider(config),
        image_provider=image_provider or _build_image_provider(config),
        file_store=file_store,
        debug_log=debug_log,
        max_attempts=config.get("PROVIDER_MAX_ATTEMPTS", 3),
        retry_delay=config.get("PROVIDER_RETRY_DELAY_SECONDS", 1.0),
        sleep=sleep,
    )

    return Services(
        stories=stories,
        images=images,
        art_styles=art_styles,
        file_store=file_store,
        debug_log=debug_log,
        generation=generation,
        uploads=UploadService(images, file_store),
        jobs=JobService(
            generation,
            use_background_jobs=bool(config.get("USE_BACKGROUND_JOBS", False)),
            queue_factory=queue_factory,
        ),
    )


__all__ = [
    "Services",
    "build_services",
    "GenerationService",
    "JobService",
    "UploadService",
    "WizardController",
    "DraftStore",
    "MemoryDraftStore",
    "SessionDraftStore",
    "normalize_configuration",
    "Ok",
    "Err",
    "Result",
]
