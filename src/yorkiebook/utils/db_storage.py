"""
SQLite-backed repositories.

Durable storage for stories, images and custom art styles. Ids come from
``INTEGER PRIMARY KEY AUTOINCREMENT`` so they are never reused, even
across restarts. Nested fields are stored as JSON text.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from ..models import CustomArtStyle, Image, Story
from .errors import NotFoundError
from .repository import ArtStyleRepository, ImageRepository, StoryRepository, merge_model

logger = logging.getLogger(__name__)


def get_db_connection(db_path: str) -> sqlite3.Connection:
    """Get a database connection, creating the parent directory if needed."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=30)
    conn.row_factory = sqlite3.Row  # Enable column access by name
    return conn


@contextmanager
def db_transaction(db_path: str):
    """Context manager for database transactions."""
    conn = get_db_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_database(db_path: str) -> None:
    """Initialize the database schema."""
    with db_transaction(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS stories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                protagonist TEXT NOT NULL,
                setting TEXT NOT NULL,
                theme TEXT NOT NULL,
                content TEXT NOT NULL,
                selected_images TEXT NOT NULL,
                metadata TEXT NOT NULL,
                art_style TEXT,
                created_at TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS images (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL DEFAULT 1,
                path TEXT NOT NULL DEFAULT '',
                image_order INTEGER NOT NULL DEFAULT 0,
                selected INTEGER NOT NULL DEFAULT 0,
                analyzed INTEGER NOT NULL DEFAULT 0,
                analysis TEXT,
                midjourney TEXT,
                created_at TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS art_styles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT NOT NULL,
                example_prompt TEXT,
                created_at TEXT
            )
        """)
        # Create index for faster filtered listing
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_images_book_id
            ON images(book_id)
        """)


def _dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value.model_dump(mode="json"))


def _load_json(value: Optional[str]) -> Any:
    return json.loads(value) if value else None


class SqliteStoryRepository(StoryRepository):
    """Story repository persisted in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = str(db_path)

    def _row_to_story(self, row: sqlite3.Row) -> Story:
        return Story.model_validate({
            "id": row["id"],
            "title": row["title"],
            "protagonist": row["protagonist"],
            "setting": row["setting"],
            "theme": row["theme"],
            "content": row["content"],
            "selected_images": _load_json(row["selected_images"]),
            "metadata": _load_json(row["metadata"]),
            "art_style": _load_json(row["art_style"]),
            "created_at": row["created_at"],
        })

    def create(self, story: Story) -> Story:
        created_at = datetime.now().isoformat()
        with db_transaction(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO stories (title, protagonist, setting, theme, content,
                                     selected_images, metadata, art_style, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    story.title,
                    story.protagonist,
                    story.setting,
                    story.theme,
                    story.content,
                    _dump_json(story.selected_images),
                    _dump_json(story.metadata),
                    _dump_json(story.art_style),
                    created_at,
                ),
            )
            story_id = cursor.lastrowid
        logger.debug(f"Saved story {story_id} to database")
        return story.model_copy(update={"id": story_id, "created_at": created_at}, deep=True)

    def get_by_id(self, story_id: int) -> Optional[Story]:
        with db_transaction(self.db_path) as conn:
            row = conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,)).fetchone()
        return self._row_to_story(row) if row else None

    def list_all(self) -> List[Story]:
        with db_transaction(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM stories ORDER BY id").fetchall()
        return [self._row_to_story(row) for row in rows]

    def count(self) -> int:
        with db_transaction(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM stories").fetchone()[0]


class SqliteImageRepository(ImageRepository):
    """Image repository persisted in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = str(db_path)

    def _row_to_image(self, row: sqlite3.Row) -> Image:
        return Image.model_validate({
            "id": row["id"],
            "book_id": row["book_id"],
            "path": row["path"],
            "order": row["image_order"],
            "selected": bool(row["selected"]),
            "analyzed": bool(row["analyzed"]),
            "analysis": _load_json(row["analysis"]),
            "midjourney": _load_json(row["midjourney"]),
            "created_at": row["created_at"],
        })

    def create(self, image: Image) -> Image:
        created_at = datetime.now().isoformat()
        with db_transaction(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO images (book_id, path, image_order, selected, analyzed,
                                    analysis, midjourney, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    image.book_id,
                    image.path,
                    image.order,
                    int(image.selected),
                    int(image.analyzed),
                    _dump_json(image.analysis),
                    _dump_json(image.midjourney),
                    created_at,
                ),
            )
            image_id = cursor.lastrowid
        return image.model_copy(update={"id": image_id, "created_at": created_at}, deep=True)

    def get_by_id(self, image_id: int) -> Optional[Image]:
        with db_transaction(self.db_path) as conn:
            row = conn.execute("SELECT * FROM images WHERE id = ?", (image_id,)).fetchone()
        return self._row_to_image(row) if row else None

    def list_all(
        self,
        analyzed: Optional[bool] = None,
        selected: Optional[bool] = None,
    ) -> List[Image]:
        query = "SELECT * FROM images"
        clauses = []
        params: List[Any] = []
        if analyzed is not None:
            clauses.append("analyzed = ?")
            params.append(int(analyzed))
        if selected is not None:
            clauses.append("selected = ?")
            params.append(int(selected))
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"

        with db_transaction(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_image(row) for row in rows]

    def update_metadata(self, image_id: int, updates: Dict[str, Any]) -> Image:
        with db_transaction(self.db_path) as conn:
            # Take the write lock before reading so concurrent merges serialize
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM images WHERE id = ?", (image_id,)).fetchone()
            if row is None:
                raise NotFoundError("Image", image_id)
            merged = merge_model(self._row_to_image(row), updates)
            conn.execute(
                """
                UPDATE images
                SET book_id = ?, path = ?, image_order = ?, selected = ?, analyzed = ?,
                    analysis = ?, midjourney = ?
                WHERE id = ?
                """,
                (
                    merged.book_id,
                    merged.path,
                    merged.order,
                    int(merged.selected),
                    int(merged.analyzed),
                    _dump_json(merged.analysis),
                    _dump_json(merged.midjourney),
                    image_id,
                ),
            )
        return merged

    def count(self) -> int:
        with db_transaction(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM images").fetchone()[0]


class SqliteArtStyleRepository(ArtStyleRepository):
    """Custom art styles persisted in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = str(db_path)

    @staticmethod
    def _row_to_style(row: sqlite3.Row) -> CustomArtStyle:
        return CustomArtStyle.model_validate({
            "id": row["id"],
            "name": row["name"],
            "description": row["description"],
            "example_prompt": row["example_prompt"],
            "created_at": row["created_at"],
        })

    def create(self, style: CustomArtStyle) -> CustomArtStyle:
        created_at = datetime.now().isoformat()
        with db_transaction(self.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO art_styles (name, description, example_prompt, created_at) "
                "VALUES (?, ?, ?, ?)",
                (style.name, style.description, style.example_prompt, created_at),
            )
            style_id = cursor.lastrowid
        return style.model_copy(update={"id": style_id, "created_at": created_at}, deep=True)

    def get_by_id(self, style_id: int) -> Optional[CustomArtStyle]:
        with db_transaction(self.db_path) as conn:
            row = conn.execute("SELECT * FROM art_styles WHERE id = ?", (style_id,)).fetchone()
        return self._row_to_style(row) if row else None

    def list_all(self) -> List[CustomArtStyle]:
        with db_transaction(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM art_styles ORDER BY id").fetchall()
        return [self._row_to_style(row) for row in rows]

    def update(self, style_id: int, updates: Dict[str, Any]) -> CustomArtStyle:
        with db_transaction(self.db_path) as conn:
            # Take the write lock before reading so concurrent merges serialize
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM art_styles WHERE id = ?", (style_id,)).fetchone()
            if row is None:
                raise NotFoundError("ArtStyle", style_id)
            merged = merge_model(self._row_to_style(row), updates)
            conn.execute(
                "UPDATE art_styles SET name = ?, description = ?, example_prompt = ? WHERE id = ?",
                (merged.name, merged.description, merged.example_prompt, style_id),
            )
        return merged
