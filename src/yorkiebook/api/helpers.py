"""
Helper functions for API routes.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from flask import current_app, request

if TYPE_CHECKING:
    from src.yorkiebook.services import Services

from src.yorkiebook.models import Image
from src.yorkiebook.services.wizard_service import SessionDraftStore, WizardController
from src.yorkiebook.utils.errors import ValidationError

SERVICES_EXTENSION = "yorkiebook"
LIMITER_EXTENSION = "yorkiebook_limiter"


def get_services() -> 'Services':
    """Service container registered on the current app by ``create_app``."""
    return current_app.extensions[SERVICES_EXTENSION]


def get_wizard() -> WizardController:
    """Wizard bound to the current browser's session."""
    return WizardController(SessionDraftStore())


def get_json_body() -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises:
        ValidationError: If the body is missing, not JSON, or not an object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError(
            "Request body must be a JSON object.",
            details=[{"path": "", "message": "Expected a JSON object"}],
        )
    return data


def get_bool_arg(name: str) -> Optional[bool]:
    """Parse an optional boolean query parameter ("true"/"false")."""
    value = request.args.get(name)
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(
        f"Query parameter '{name}' must be true or false.",
        details=[{"path": name, "message": f"Invalid boolean: {value}"}],
    )


def get_book_id(raw: Any) -> int:
    """Book id from a form field or JSON value; defaults to 1."""
    if raw is None or raw == "":
        return 1
    try:
        book_id = int(raw)
    except (TypeError, ValueError):
        book_id = 0
    if book_id < 1:
        raise ValidationError(
            "bookId must be a positive integer.",
            details=[{"path": "bookId", "message": f"Invalid book id: {raw}"}],
        )
    return book_id


def build_profile_response(image: Image) -> Dict[str, Any]:
    """Analyze response: character profile fields merged with the image path."""
    profile = image.analysis.character_profile
    return {
        "id": image.id,
        "name": profile.name,
        "personality": profile.personality,
        "description": profile.description or image.analysis.description,
        "path": image.path,
    }
