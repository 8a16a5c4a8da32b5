"""
Background job service.

Dispatches illustration jobs to an RQ queue when background jobs are
enabled; otherwise runs them inline in the request.
"""

import logging
from typing import Any, Callable, Optional, TYPE_CHECKING

from redis.exceptions import RedisError

if TYPE_CHECKING:
    from src.yorkiebook.services.generation_service import GenerationService

from src.yorkiebook.utils.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

ILLUSTRATION_QUEUE = "illustrations"
ILLUSTRATION_JOB = "src.yorkiebook.jobs.complete_illustration_job"
ILLUSTRATION_JOB_TIMEOUT = "10m"


def _default_queue_factory(name: str) -> Any:
    from rq_config import get_queue
    return get_queue(name)


class JobService:
    """Service for dispatching illustration jobs."""

    def __init__(
        self,
        generation_service: 'GenerationService',
        use_background_jobs: bool = False,
        queue_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize job service.

        Args:
            generation_service: Runs the job when it is executed inline
            use_background_jobs: Send jobs to RQ instead of running them inline
            queue_factory: Returns an RQ queue for a name (rq_config.get_queue by default)
        """
        self.generation = generation_service
        self.use_background_jobs = use_background_jobs
        self._queue_factory = queue_factory or _default_queue_factory

    def is_background_jobs_enabled(self) -> bool:
        return self.use_background_jobs

    def dispatch_illustration(self, image_id: int) -> str:
        """
        Start the illustration job for a pending image.

        Returns:
            The illustration status after dispatch: ``pending`` when queued,
            otherwise the final status of the inline run

        Raises:
            ServiceUnavailableError: If the queue cannot be reached
        """
        if self.is_background_jobs_enabled():
            try:
                queue = self._queue_factory(ILLUSTRATION_QUEUE)
                job = queue.enqueue(
                    ILLUSTRATION_JOB,
                    image_id,
                    job_timeout=ILLUSTRATION_JOB_TIMEOUT,
                )
            except RedisError as e:
                logger.error(f"Could not enqueue illustration {image_id}: {e}", exc_info=True)
                image = self.generation.images.get_by_id(image_id)
                if image is not None and image.midjourney is not None:
                    self.generation.images.update_metadata(image_id, {
                        "midjourney": image.midjourney.model_copy(update={"status": "failed"}),
                    })
                raise ServiceUnavailableError(
                    "background_jobs",
                    "The illustration queue is unavailable. Please try again later.",
                ) from e
            logger.info(f"Enqueued illustration job {job.id} for image {image_id}")
            return "pending"

        result = self.generation.complete_illustration(image_id)
        if result.ok:
            return result.value.midjourney.status
        logger.warning(f"Inline illustration {image_id} failed: {result.error.message}")
        return "failed"
