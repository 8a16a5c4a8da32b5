"""
Shared pytest fixtures for test suite.

Provides scripted fake providers, an in-memory service container and a
Flask app/client wired to it, so no test talks to a real provider, Redis
or the project database.
"""

import io
import zipfile
from typing import Any, Dict, List, Optional

import pytest

from app import create_app
from src.yorkiebook.models import CharacterProfile, Image, ImageAnalysis
from src.yorkiebook.providers.base import BaseImageClient, BaseLLMClient
from src.yorkiebook.services import build_services

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

STORY_RESPONSE = {
    "title": "Pixie and the Nutty Gang",
    "content": "Once upon a time on Uncle Mark's Farm, a tiny Yorkie named Pixie...",
    "metadata": {"wordCount": 3200, "chapters": 5, "tone": "Lighthearted"},
}

PROFILE_RESPONSE = {
    "name": "Pixie",
    "personality": "Brave and Adventurous",
    "description": "A tiny Yorkie with a neon pink and purple coat.",
}


class FakeTextProvider(BaseLLMClient):
    """
    Scripted text/vision provider.

    Each queued outcome is either a dict (returned) or an exception (raised);
    when the script runs out the default response is returned.
    """

    provider_name = "fake"

    def __init__(self, story_response: Optional[Dict[str, Any]] = None,
                 profile_response: Optional[Dict[str, Any]] = None):
        self.story_response = story_response or dict(STORY_RESPONSE)
        self.profile_response = profile_response or dict(PROFILE_RESPONSE)
        self.script: List[Any] = []
        self.calls: List[Dict[str, Any]] = []

    @property
    def model_name(self) -> str:
        return "fake-model"

    def queue(self, *outcomes: Any) -> None:
        self.script.extend(outcomes)

    def _next(self, default: Dict[str, Any]) -> Dict[str, Any]:
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return default

    def generate_json(self, prompt, system_prompt=None, temperature=None, max_tokens=None):
        self.calls.append({"kind": "text", "prompt": prompt, "system_prompt": system_prompt})
        return self._next(self.story_response)

    def analyze_image(self, image_bytes, mime_type, prompt, system_prompt=None, max_tokens=None):
        self.calls.append({"kind": "vision", "bytes": image_bytes, "mime_type": mime_type})
        return self._next(self.profile_response)


class FakeImageProvider(BaseImageClient):
    """Scripted image provider; returns PNG_BYTES unless an outcome is queued."""

    provider_name = "fake"

    def __init__(self):
        self.script: List[Any] = []
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *outcomes: Any) -> None:
        self.script.extend(outcomes)

    def generate_image(self, prompt, size="1024x1024"):
        self.calls.append({"prompt": prompt, "size": size})
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return PNG_BYTES


def make_zip(entries: Dict[str, bytes]) -> bytes:
    """Build an in-memory ZIP archive from {name: bytes}."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def analyzed_image(path: str = "book-1/pixie.png", name: str = "Pixie") -> Image:
    profile = CharacterProfile(name=name, personality="Brave", description=f"{name} the Yorkie")
    return Image(
        path=path,
        analyzed=True,
        analysis=ImageAnalysis(description=profile.description, character_profile=profile),
    )


@pytest.fixture
def text_provider():
    return FakeTextProvider()


@pytest.fixture
def image_provider():
    return FakeImageProvider()


@pytest.fixture
def sleep_calls():
    """Delays requested by the retry loop (nothing actually sleeps)."""
    return []


@pytest.fixture
def test_config(tmp_path):
    """Configuration for an isolated, in-memory application."""
    return {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "RATELIMIT_ENABLED": False,
        "STORAGE_BACKEND": "memory",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "USE_BACKGROUND_JOBS": False,
        "PROVIDER_MAX_ATTEMPTS": 3,
        "PROVIDER_RETRY_DELAY_SECONDS": 1.0,
    }


@pytest.fixture
def services(test_config, text_provider, image_provider, sleep_calls):
    """Service container backed by in-memory repositories and fake providers."""
    return build_services(
        test_config,
        text_provider=text_provider,
        image_provider=image_provider,
        sleep=sleep_calls.append,
    )


@pytest.fixture
def app(test_config, services):
    """Flask application wired to the test service container."""
    flask_app = create_app(config=test_config, services=services)
    yield flask_app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def story_config():
    """A complete story configuration in wire form."""
    return {
        "protagonist": {
            "name": "Pixie",
            "personality": "Brave and Adventurous",
            "appearance": "A tiny Yorkie with a neon pink coat",
        },
        "antagonist": {"type": "squirrel-gang", "personality": "Sneaky"},
        "theme": "friendship",
        "mood": "Lighthearted",
        "artStyle": {"style": "watercolor", "description": "Soft watercolor"},
        "farmElements": ["barn", "chickens"],
    }
