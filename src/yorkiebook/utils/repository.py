"""
Repository abstraction layer for stories, images and custom art styles.

Every repository assigns integer ids from a counter that starts at 1 and
is never reused. ``get_by_id`` returns None for unknown ids; only updates
raise ``NotFoundError``. Two backends implement the interfaces: the
in-memory classes below and the SQLite classes in ``db_storage``.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging

from pydantic import BaseModel

from ..models import CustomArtStyle, Image, Story
from .errors import NotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

STORAGE_BACKENDS = ("sqlite", "memory")


def merge_model(record: ModelT, updates: Dict[str, Any]) -> ModelT:
    """
    Merge ``updates`` (keyed by Python field name) into a copy of ``record``.

    The merged record is re-validated, so invariants such as
    "analyzed implies analysis" hold after every update.
    """
    data = record.model_dump()
    for key, value in updates.items():
        if key not in type(record).model_fields:
            raise ValueError(f"Unknown field '{key}' for {type(record).__name__}")
        data[key] = value.model_dump() if isinstance(value, BaseModel) else value
    return type(record).model_validate(data)


class StoryRepository(ABC):
    """
    Abstract interface for story storage.

    Stories are immutable once created: there is no update or delete.
    """

    @abstractmethod
    def create(self, story: Story) -> Story:
        """
        Store a new story.

        Args:
            story: Story without an id

        Returns:
            The stored story, carrying its assigned id and createdAt
        """

    @abstractmethod
    def get_by_id(self, story_id: int) -> Optional[Story]:
        """Return the story, or None if no story has that id."""

    @abstractmethod
    def list_all(self) -> List[Story]:
        """All stories in insertion order."""

    def count(self) -> int:
        return len(self.list_all())


class ImageRepository(ABC):
    """Abstract interface for image metadata storage."""

    @abstractmethod
    def create(self, image: Image) -> Image:
        """Store a new image record and return it with its id."""

    @abstractmethod
    def get_by_id(self, image_id: int) -> Optional[Image]:
        """Return the image, or None if no image has that id."""

    @abstractmethod
    def list_all(
        self,
        analyzed: Optional[bool] = None,
        selected: Optional[bool] = None,
    ) -> List[Image]:
        """
        Images in insertion order.

        Args:
            analyzed: When given, keep only images with this analyzed flag
            selected: When given, keep only images with this selected flag
        """

    @abstractmethod
    def update_metadata(self, image_id: int, updates: Dict[str, Any]) -> Image:
        """
        Merge fields into an existing image.

        Args:
            image_id: Image to update
            updates: Field values keyed by Python field name

        Returns:
            The updated image

        Raises:
            NotFoundError: If no image has that id
        """

    def count(self) -> int:
        return len(self.list_all())


class ArtStyleRepository(ABC):
    """Abstract interface for user-defined art styles."""

    @abstractmethod
    def create(self, style: CustomArtStyle) -> CustomArtStyle:
        pass

    @abstractmethod
    def get_by_id(self, style_id: int) -> Optional[CustomArtStyle]:
        pass

    @abstractmethod
    def list_all(self) -> List[CustomArtStyle]:
        pass

    @abstractmethod
    def update(self, style_id: int, updates: Dict[str, Any]) -> CustomArtStyle:
        """Merge fields into an existing style; NotFoundError when absent."""

    def count(self) -> int:
        return len(self.list_all())


class InMemoryTable(Generic[ModelT]):
    """Id-keyed record table for one process; the counter is lock-guarded."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        self._records: Dict[int, ModelT] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def insert(self, record: ModelT) -> ModelT:
        with self._lock:
            record_id = self._next_id
            self._next_id += 1
            stored = record.model_copy(
                update={"id": record_id, "created_at": datetime.now().isoformat()},
                deep=True,
            )
            self._records[record_id] = stored
        return stored.model_copy(deep=True)

    def get(self, record_id: int) -> Optional[ModelT]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def values(self) -> List[ModelT]:
        with self._lock:
            records = list(self._records.values())
        return [r.model_copy(deep=True) for r in records]

    def update(self, record_id: int, updates: Dict[str, Any]) -> ModelT:
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise NotFoundError(self.resource_type, record_id)
            merged = merge_model(current, updates)
            self._records[record_id] = merged
        return merged.model_copy(deep=True)


class InMemoryStoryRepository(StoryRepository):
    """Stories kept for the lifetime of the process."""

    def __init__(self):
        self._table: InMemoryTable[Story] = InMemoryTable("Story")

    def create(self, story: Story) -> Story:
        return self._table.insert(story)

    def get_by_id(self, story_id: int) -> Optional[Story]:
        return self._table.get(story_id)

    def list_all(self) -> List[Story]:
        return self._table.values()


class InMemoryImageRepository(ImageRepository):
    """Image records kept for the lifetime of the process."""

    def __init__(self):
        self._table: InMemoryTable[Image] = InMemoryTable("Image")

    def create(self, image: Image) -> Image:
        return self._table.insert(image)

    def get_by_id(self, image_id: int) -> Optional[Image]:
        return self._table.get(image_id)

    def list_all(
        self,
        analyzed: Optional[bool] = None,
        selected: Optional[bool] = None,
    ) -> List[Image]:
        images = self._table.values()
        if analyzed is not None:
            images = [img for img in images if img.analyzed == analyzed]
        if selected is not None:
            images = [img for img in images if img.selected == selected]
        return images

    def update_metadata(self, image_id: int, updates: Dict[str, Any]) -> Image:
        return self._table.update(image_id, updates)


class InMemoryArtStyleRepository(ArtStyleRepository):

    def __init__(self):
        self._table: InMemoryTable[CustomArtStyle] = InMemoryTable("ArtStyle")

    def create(self, style: CustomArtStyle) -> CustomArtStyle:
        return self._table.insert(style)

    def get_by_id(self, style_id: int) -> Optional[CustomArtStyle]:
        return self._table.get(style_id)

    def list_all(self) -> List[CustomArtStyle]:
        return self._table.values()

    def update(self, style_id: int, updates: Dict[str, Any]) -> CustomArtStyle:
        return self._table.update(style_id, updates)


def create_repositories(backend: str = "sqlite", db_path: Optional[str] = None) -> tuple:
    """
    Factory function to create the story, image and art-style repositories.

    Args:
        backend: "sqlite" (durable, the default) or "memory"
        db_path: SQLite database file, required for the sqlite backend

    Returns:
        Tuple of (StoryRepository, ImageRepository, ArtStyleRepository)
    """
    if backend == "memory":
        logger.info("Creating in-memory repositories")
        return (
            InMemoryStoryRepository(),
            InMemoryImageRepository(),
            InMemoryArtStyleRepository(),
        )

    if backend == "sqlite":
        if not db_path:
            raise ValueError("db_path is required for the sqlite storage backend")
        from .db_storage import (
            SqliteArtStyleRepository,
            SqliteImageRepository,
            SqliteStoryRepository,
            init_database,
        )
        logger.info(f"Creating SQLite repositories at {db_path}")
        init_database(db_path)
        return (
            SqliteStoryRepository(db_path),
            SqliteImageRepository(db_path),
            SqliteArtStyleRepository(db_path),
        )

    raise ValueError(
        f"Unknown storage backend: {backend}. Supported backends: {', '.join(STORAGE_BACKENDS)}"
    )
