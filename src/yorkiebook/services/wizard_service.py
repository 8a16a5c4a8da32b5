"""
Story wizard: step sequencing, per-step validation and draft persistence.

The draft lives in a ``DraftStore``. In the web app that is the signed
Flask session cookie, so each browser keeps its own draft across reloads.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import pydantic
from flask import session

from src.yorkiebook.catalog import (
    antagonist_description,
    art_style_description,
    normalize_antagonist_type,
)
from src.yorkiebook.models import StoryParams
from src.yorkiebook.utils.errors import ValidationError, validation_error_from_pydantic

logger = logging.getLogger(__name__)

STEP_ORDER = ("appearance", "personality", "story", "art-style", "review")
DATA_STEPS = STEP_ORDER[:-1]

MAX_COLOR_SELECTIONS = 3
MAX_ART_STYLE_SELECTIONS = 3

SESSION_KEY = "wizard_draft"

# Defaults applied once, in finalize().
DEFAULT_PROTAGONIST_NAME = ""
APPEARANCE_TEMPLATE = "A beautiful Yorkshire Terrier with a magical blend of {colors} colors"
DEFAULT_ANTAGONIST_PERSONALITY = "Mischievous and sneaky"
DEFAULT_MOOD = "Lighthearted"
DEFAULT_ART_STYLE_DESCRIPTION = "Colorful and expressive"
DEFAULT_FARM_ELEMENTS = ["barn", "tractor", "fields"]

REQUIRED_FIELDS = (
    ("protagonist", "personality"),
    ("antagonist", "type"),
    ("theme",),
    ("artStyle", "style"),
)


def empty_draft() -> Dict[str, Any]:
    return {
        "appearance": [],
        "personality": "",
        "story": {"theme": "", "antagonist": "", "elements": []},
        "art-style": [],
    }


class DraftStore(ABC):
    """Key-value storage for one user's in-progress draft."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return every saved step value (possibly empty)."""

    @abstractmethod
    def save(self, step_key: str, value: Any) -> None:
        """Persist one step value immediately."""

    @abstractmethod
    def clear(self) -> None:
        """Drop the whole draft."""


class MemoryDraftStore(DraftStore):
    """Draft kept in a plain dict; used by scripts and tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = copy.deepcopy(initial or {})

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def save(self, step_key: str, value: Any) -> None:
        self._values[step_key] = copy.deepcopy(value)

    def clear(self) -> None:
        self._values.clear()


class SessionDraftStore(DraftStore):
    """Draft kept in the Flask session. Requires an active request context."""

    def __init__(self, key: str = SESSION_KEY):
        self.key = key

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(session.get(self.key) or {})

    def save(self, step_key: str, value: Any) -> None:
        values = dict(session.get(self.key) or {})
        values[step_key] = value
        session[self.key] = values
        session.modified = True

    def clear(self) -> None:
        session.pop(self.key, None)


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _selection_problems(field: str, value: Any, maximum: int, noun: str) -> List[Dict[str, str]]:
    selections = [item for item in _as_list(value) if _as_text(item)]
    if not selections:
        return [{"path": field, "message": f"Please select at least one {noun}."}]
    if len(selections) > maximum:
        return [{"path": field, "message": f"You can select up to {maximum} {noun}s."}]
    return []


def _check_appearance(value: Any) -> List[Dict[str, str]]:
    return _selection_problems("appearance", value, MAX_COLOR_SELECTIONS, "color")


def _check_personality(value: Any) -> List[Dict[str, str]]:
    if not _as_text(value):
        return [{"path": "personality", "message": "Please select a personality."}]
    return []


def _check_story(value: Any) -> List[Dict[str, str]]:
    story = _as_mapping(value)
    problems = []
    if not _as_text(story.get("theme")):
        problems.append({"path": "story.theme", "message": "Please select a theme."})
    if not _as_text(story.get("antagonist")):
        problems.append({"path": "story.antagonist", "message": "Please select an antagonist."})
    if not [e for e in _as_list(story.get("elements")) if _as_text(e)]:
        problems.append({"path": "story.elements", "message": "Please select at least one farm element."})
    return problems


def _check_art_style(value: Any) -> List[Dict[str, str]]:
    return _selection_problems("art-style", value, MAX_ART_STYLE_SELECTIONS, "art style")


STEP_POLICIES: Dict[str, Callable[[Any], List[Dict[str, str]]]] = {
    "appearance": _check_appearance,
    "personality": _check_personality,
    "story": _check_story,
    "art-style": _check_art_style,
}


def normalize_configuration(
    raw: Dict[str, Any],
    colors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Fill defaults into a raw story configuration.

    This is the only place defaults are substituted:

    =========================  ===================================================
    protagonist.name           ""
    protagonist.appearance     "A beautiful Yorkshire Terrier with a magical blend
                               of {colors} colors"
    antagonist.type            "squirrel" becomes "squirrel-gang"
    antagonist.personality     catalog description, else "Mischievous and sneaky"
    mood                       "Lighthearted"
    artStyle.description       catalog description, else "Colorful and expressive"
    farmElements               ["barn", "tractor", "fields"]
    =========================  ===================================================

    Required fields (protagonist.personality, antagonist.type, theme and
    artStyle.style) are never invented.

    Args:
        raw: Configuration in wire (camelCase) form
        colors: Selected color labels used to describe the protagonist

    Returns:
        A new, normalized configuration dict
    """
    config = copy.deepcopy(raw)

    protagonist = config.setdefault("protagonist", {})
    if not protagonist.get("name"):
        protagonist["name"] = DEFAULT_PROTAGONIST_NAME
    if not protagonist.get("appearance") and colors:
        protagonist["appearance"] = APPEARANCE_TEMPLATE.format(
            colors=", ".join(colors).lower()
        )

    antagonist = config.setdefault("antagonist", {})
    antagonist["type"] = normalize_antagonist_type(antagonist.get("type"))
    if not antagonist.get("personality"):
        antagonist["personality"] = (
            antagonist_description(antagonist["type"]) or DEFAULT_ANTAGONIST_PERSONALITY
        )

    if not config.get("mood"):
        config["mood"] = DEFAULT_MOOD

    art_style = config.setdefault("artStyle", {})
    if not art_style.get("description"):
        art_style["description"] = (
            art_style_description(art_style.get("style")) or DEFAULT_ART_STYLE_DESCRIPTION
        )

    if not config.get("farmElements"):
        config["farmElements"] = list(DEFAULT_FARM_ELEMENTS)

    return config


def _missing_required(config: Dict[str, Any]) -> List[Dict[str, str]]:
    problems = []
    for path in REQUIRED_FIELDS:
        value: Any = config
        for key in path:
            value = value.get(key) if isinstance(value, dict) else None
        if not _as_text(value):
            problems.append({"path": ".".join(path), "message": "Field required"})
    return problems


class WizardController:
    """
    Walks one user through the ordered wizard steps.

    Steps are ``appearance`` → ``personality`` → ``story`` → ``art-style`` →
    ``review``. Values are saved as-is; each step's policy is checked only
    when advancing past it.
    """

    def __init__(self, store: DraftStore):
        self.store = store

    def load_draft(self) -> Dict[str, Any]:
        """All saved step values, with empty defaults for unsaved steps."""
        draft = empty_draft()
        draft.update({k: v for k, v in self.store.load().items() if k in DATA_STEPS})
        return draft

    def save_step_value(self, step_key: str, value: Any) -> Dict[str, Any]:
        """
        Overwrite the stored value for one step.

        Raises:
            ValidationError: If step_key is not a data-collecting step
        """
        if step_key not in DATA_STEPS:
            raise ValidationError(
                f"Unknown wizard step '{step_key}'.",
                details=[{"path": "step", "message": f"must be one of: {', '.join(DATA_STEPS)}"}],
            )
        self.store.save(step_key, value)
        return self.load_draft()

    def advance(self, current_step: str) -> Optional[str]:
        """
        Validate the current step and return the next step id.

        Returns:
            The next step id, or None after ``review``

        Raises:
            ValidationError: Naming every field that blocks the step
        """
        if current_step not in STEP_ORDER:
            raise ValidationError(
                f"Unknown wizard step '{current_step}'.",
                details=[{"path": "step", "message": f"must be one of: {', '.join(STEP_ORDER)}"}],
            )

        draft = self.load_draft()
        if current_step == "review":
            problems = []
            for step in DATA_STEPS:
                problems.extend(STEP_POLICIES[step](draft[step]))
        else:
            problems = STEP_POLICIES[current_step](draft[current_step])

        if problems:
            raise ValidationError(f"The '{current_step}' step is incomplete.", details=problems)

        index = STEP_ORDER.index(current_step)
        return STEP_ORDER[index + 1] if index + 1 < len(STEP_ORDER) else None

    def finalize(self) -> StoryParams:
        """
        Assemble the draft into a normalized, complete story configuration.

        Raises:
            ValidationError: If a required field is empty or a value is invalid
        """
        draft = self.load_draft()
        story = _as_mapping(draft["story"])
        styles = [s for s in _as_list(draft["art-style"]) if _as_text(s)]
        colors = [c for c in _as_list(draft["appearance"]) if _as_text(c)]

        raw = {
            "protagonist": {"personality": _as_text(draft["personality"])},
            "antagonist": {"type": _as_text(story.get("antagonist"))},
            "theme": _as_text(story.get("theme")),
            "artStyle": {"style": styles[0] if styles else ""},
            "farmElements": [e for e in _as_list(story.get("elements")) if _as_text(e)],
        }
        if len(styles) > 1:
            descriptions = [art_style_description(s) or s for s in styles]
            raw["artStyle"]["description"] = "; ".join(descriptions)

        config = normalize_configuration(raw, colors=colors)

        problems = _missing_required(config)
        if problems:
            raise ValidationError("The story configuration is incomplete.", details=problems)

        try:
            return StoryParams.model_validate(config)
        except pydantic.ValidationError as e:
            raise validation_error_from_pydantic(e, "The story configuration is invalid.") from e

    def clear(self) -> None:
        self.store.clear()
        logger.debug("Wizard draft cleared")
