"""
Upload service.

Stores uploaded images under the book's folder. ZIP archives are expanded
and every image entry becomes its own Image record.
"""

import io
import logging
import uuid
import zipfile
from pathlib import PurePosixPath
from typing import List, TYPE_CHECKING

from werkzeug.utils import secure_filename

if TYPE_CHECKING:
    from src.yorkiebook.utils.repository import ImageRepository

from src.yorkiebook.models import Image
from src.yorkiebook.utils.errors import ValidationError
from src.yorkiebook.utils.file_storage import ImageFileStore, is_image_filename

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
MACOS_METADATA_DIR = "__MACOSX"


def is_zip_archive(data: bytes) -> bool:
    return data[:4] == ZIP_MAGIC


class UploadService:
    """Writes uploaded bytes to disk and records them in the image repository."""

    def __init__(self, image_repository: 'ImageRepository', file_store: ImageFileStore):
        self.images = image_repository
        self.file_store = file_store

    def _next_order(self, book_id: int) -> int:
        return len([img for img in self.images.list_all() if img.book_id == book_id])

    def _unique_path(self, book_id: int, filename: str) -> str:
        name = secure_filename(filename)
        if not name:
            suffix = PurePosixPath(filename).suffix.lower() or ".png"
            name = self.file_store.random_filename(suffix)
        relative_path = self.file_store.book_path(book_id, name)
        if self.file_store.exists(relative_path):
            relative_path = self.file_store.book_path(book_id, f"{uuid.uuid4().hex[:8]}-{name}")
        return relative_path

    def _store(self, book_id: int, filename: str, data: bytes, order: int) -> Image:
        relative_path = self._unique_path(book_id, filename)
        self.file_store.write(relative_path, data)
        return self.images.create(Image(book_id=book_id, path=relative_path, order=order))

    def save_uploaded_file(self, data: bytes, filename: str, book_id: int = 1) -> List[Image]:
        """
        Store an uploaded file.

        Args:
            data: Raw uploaded bytes
            filename: Client-supplied filename
            book_id: Book the images belong to

        Returns:
            The created Image records, in upload order

        Raises:
            ValidationError: If the upload is empty or an unreadable archive
        """
        if not data:
            raise ValidationError(
                "No file uploaded.",
                details=[{"path": "file", "message": "The uploaded file is empty."}],
            )

        if is_zip_archive(data):
            return self._save_archive(data, book_id)

        image = self._store(book_id, filename, data, self._next_order(book_id))
        logger.info(f"Stored upload {image.path} as image {image.id}")
        return [image]

    def _save_archive(self, data: bytes, book_id: int) -> List[Image]:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise ValidationError(
                "The uploaded archive could not be read.",
                details=[{"path": "file", "message": str(e)}],
            ) from e

        created: List[Image] = []
        order = self._next_order(book_id)
        with archive:
            for entry in archive.infolist():
                if entry.is_dir() or MACOS_METADATA_DIR in entry.filename.split("/"):
                    continue
                entry_name = PurePosixPath(entry.filename).name
                if not entry_name or entry_name.startswith(".") or not is_image_filename(entry_name):
                    continue
                try:
                    image = self._store(book_id, entry_name, archive.read(entry), order)
                except (OSError, zipfile.BadZipFile, RuntimeError, ValueError) as e:
                    logger.error(f"Skipping archive entry {entry.filename}: {e}")
                    continue
                created.append(image)
                order += 1

        logger.info(f"Stored {len(created)} image(s) from archive for book {book_id}")
        return created
