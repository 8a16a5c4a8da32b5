"""
Local disk storage for uploaded and generated image bytes.

Files live under ``<upload folder>/book-<bookId>/`` and are referenced by
their path relative to the upload folder (served at ``/uploads/<path>``).
"""

import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Union

from .errors import FileMissingError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp")
URL_PREFIX = "/uploads/"


def is_image_filename(filename: str) -> bool:
    return PurePosixPath(filename).suffix.lower() in IMAGE_EXTENSIONS


def public_url(relative_path: str) -> str:
    return f"{URL_PREFIX}{relative_path}"


class ImageFileStore:
    """Reads and writes image files below a single root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    @staticmethod
    def book_path(book_id: int, filename: str) -> str:
        return f"book-{book_id}/{filename}"

    @staticmethod
    def random_filename(extension: str = ".png") -> str:
        return f"{uuid.uuid4().hex}{extension}"

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path for a stored relative path.

        A leading ``/uploads/`` prefix is accepted. Paths escaping the root
        are reported as missing files.
        """
        cleaned = relative_path
        if cleaned.startswith(URL_PREFIX):
            cleaned = cleaned[len(URL_PREFIX):]
        cleaned = cleaned.lstrip("/")
        if not cleaned:
            raise FileMissingError(relative_path)

        candidate = (self.root / cleaned).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            logger.warning(f"Rejected path outside upload folder: {relative_path}")
            raise FileMissingError(relative_path)
        return candidate

    def write(self, relative_path: str, data: bytes) -> Path:
        """Write bytes to a relative path; OSError propagates to the caller."""
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug(f"Wrote {len(data)} bytes to {target}")
        return target

    def read(self, relative_path: str) -> bytes:
        """
        Read a stored file.

        Raises:
            FileMissingError: If the file does not exist on disk
        """
        target = self.resolve(relative_path)
        if not target.is_file():
            raise FileMissingError(relative_path)
        return target.read_bytes()

    def exists(self, relative_path: str) -> bool:
        try:
            return self.resolve(relative_path).is_file()
        except FileMissingError:
            return False
