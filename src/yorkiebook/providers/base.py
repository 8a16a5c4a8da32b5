"""
Provider interfaces for text, vision and image generation.

Concrete providers translate their SDK's exceptions into
``ProviderTransientError`` / ``ProviderFatalError`` so callers never see
SDK-specific exception types.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..utils.errors import ProviderFatalError, ProviderTransientError

logger = logging.getLogger(__name__)

UNREADABLE_RESPONSE_MESSAGE = "The AI provider returned an unreadable response. Please try again."


def parse_json_payload(text: Optional[str], provider: str) -> Dict[str, Any]:
    """
    Parse a provider's JSON reply, tolerating markdown code fences.

    Raises:
        ProviderTransientError: If the reply is empty, not JSON, or not an object
    """
    if not text or not text.strip():
        logger.error(f"{provider} returned an empty response")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE, provider=provider)

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"{provider} returned invalid JSON: {e}. Raw response: {text[:500]}")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE, provider=provider) from e

    if not isinstance(payload, dict):
        logger.error(f"{provider} returned JSON {type(payload).__name__}, expected an object")
        raise ProviderTransientError(UNREADABLE_RESPONSE_MESSAGE, provider=provider)
    return payload


class BaseLLMClient(ABC):
    """Text and vision provider that answers with JSON objects."""

    provider_name = "llm"

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model used for requests."""

    @abstractmethod
    def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Send one text request and return the parsed JSON object.

        Raises:
            ProviderTransientError: Rate limit, 5xx, timeout or unreadable reply
            ProviderFatalError: Authentication, content policy or oversized input
        """

    @abstractmethod
    def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send one image plus prompt and return the parsed JSON object."""


class BaseImageClient(ABC):
    """Image-generation provider."""

    provider_name = "image"

    @abstractmethod
    def generate_image(self, prompt: str, size: str = "1024x1024") -> bytes:
        """
        Generate one image and return its decoded bytes.

        Raises:
            ProviderTransientError / ProviderFatalError as for BaseLLMClient
        """


class UnconfiguredProvider(BaseLLMClient, BaseImageClient):
    """
    Stand-in for a provider that could not be constructed (usually a missing API key).

    The app still starts; every generation call fails with a 503 ProviderFatal.
    """

    def __init__(self, provider_name: str, reason: str):
        self.provider_name = provider_name
        self.reason = reason

    @property
    def model_name(self) -> str:
        return "unconfigured"

    def _fail(self):
        logger.error(f"{self.provider_name} provider is not configured: {self.reason}")
        raise ProviderFatalError(
            "The AI provider is not configured on this server. Please contact support.",
            status_code=503,
            provider=self.provider_name,
        )

    def generate_json(self, prompt, system_prompt=None, temperature=None, max_tokens=None):
        self._fail()

    def analyze_image(self, image_bytes, mime_type, prompt, system_prompt=None, max_tokens=None):
        self._fail()

    def generate_image(self, prompt, size="1024x1024"):
        self._fail()
