"""
Background job tasks for the Yorkie Storybook application.

These functions run inside an RQ worker (see ``worker.py``). A worker has
no Flask app, so each job builds its own service container from the
environment, against the same database and upload folder as the web app.
"""

import logging
from typing import Any, Dict

from .config import load_config
from .utils.errors import APIError

logger = logging.getLogger(__name__)


def complete_illustration_job(image_id: int) -> Dict[str, Any]:
    """
    Background job that generates the picture for a pending illustration.

    Args:
        image_id: Image record created by the illustration request

    Returns:
        Dict containing:
            - status: "completed" or "failed"
            - image_id: The processed image id
            - path: Stored image path (if completed)
            - error: Error category and message (if failed)
    """
    from .services import build_services

    logger.info(f"Starting illustration job for image {image_id}")
    services = build_services(load_config())
    result = services.generation.complete_illustration(image_id)

    if result.ok:
        image = result.value
        logger.info(f"Illustration job for image {image_id} completed")
        return {"status": "completed", "image_id": image_id, "path": image.path}

    error: APIError = result.error
    logger.error(f"Illustration job for image {image_id} failed: {error.error_code}: {error.message}")
    return {
        "status": "failed",
        "image_id": image_id,
        "error": {"category": error.error_code, "message": error.message},
    }
