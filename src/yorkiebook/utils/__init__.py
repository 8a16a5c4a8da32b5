"""
Utility modules for the Yorkie Storybook service.

Modules:
- errors: Error taxonomy and Flask error handlers
- retry: Bounded retry around provider calls
- repository: Repository interfaces and in-memory implementations
- db_storage: SQLite repository implementations
- file_storage: Image bytes on local disk
- debug_log: Recent provider traffic
"""

from .errors import (
    APIError,
    ValidationError,
    NotFoundError,
    FileMissingError,
    ProviderError,
    ProviderTransientError,
    ProviderFatalError,
    register_error_handlers,
)
from .retry import call_with_retry
from .repository import (
    StoryRepository,
    ImageRepository,
    ArtStyleRepository,
    create_repositories,
)
from .file_storage import ImageFileStore
from .debug_log import DebugLogStore

__all__ = [
    "APIError",
    "ValidationError",
    "NotFoundError",
    "FileMissingError",
    "ProviderError",
    "ProviderTransientError",
    "ProviderFatalError",
    "register_error_handlers",
    "call_with_retry",
    "StoryRepository",
    "ImageRepository",
    "ArtStyleRepository",
    "create_repositories",
    "ImageFileStore",
    "DebugLogStore",
]
