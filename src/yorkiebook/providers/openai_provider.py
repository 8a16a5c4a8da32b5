"""
OpenAI provider implementation.

Chat completions in JSON mode serve story generation and image analysis;
the images API serves illustrations. All OpenAI-specific code, including
the mapping of SDK exceptions onto the error taxonomy, lives here.
"""

import base64
import logging
import os
from typing import Any, Dict, Optional

import openai
from openai import OpenAI

from ..utils.errors import (
    RATE_LIMIT_MESSAGE,
    ProviderError,
    ProviderFatalError,
    ProviderTransientError,
)
from .base import BaseImageClient, BaseLLMClient, parse_json_payload

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_IMAGE_MODEL = "dall-e-3"
DEFAULT_TIMEOUT_SECONDS = 120.0

AUTH_MESSAGE = "The AI provider rejected our credentials. Please contact support."
MODEL_MESSAGE = "The requested AI model is not available. Please try again later."
QUOTA_MESSAGE = "The AI provider account has run out of quota. Please contact support."
CONTENT_POLICY_MESSAGE = (
    "The request was rejected by the AI provider's content policy. "
    "Please adjust your story selections and try again."
)
TOO_LARGE_MESSAGE = "The request was too large for the AI provider. Please use a smaller image or prompt."
UNAVAILABLE_MESSAGE = "The AI provider is temporarily unavailable. Please try again in a few moments."
REJECTED_MESSAGE = "The AI provider rejected the request."


def _retry_after(error: openai.APIStatusError) -> Optional[int]:
    response = getattr(error, "response", None)
    if response is None:
        return None
    value = response.headers.get("retry-after")
    try:
        return max(1, int(float(value))) if value else None
    except ValueError:
        return None


def _error_text(error: openai.APIError) -> str:
    parts = [str(error)]
    if isinstance(error.body, dict):
        parts.append(str(error.body.get("message", "")))
        inner = error.body.get("error")
        if isinstance(inner, dict):
            parts.append(str(inner.get("message", "")))
            parts.append(str(inner.get("code", "")))
    return " ".join(parts).lower()


def classify_openai_error(error: openai.APIError, provider: str = "openai") -> ProviderError:
    """
    Map an OpenAI SDK exception onto the error taxonomy.

    Args:
        error: Exception raised by the openai client
        provider: Provider label recorded on the resulting error

    Returns:
        ProviderTransientError or ProviderFatalError with a user-facing message
    """
    code = (getattr(error, "code", None) or "").lower()
    text = _error_text(error)

    if isinstance(error, openai.RateLimitError):
        if code == "insufficient_quota" or "insufficient_quota" in text:
            return ProviderFatalError(QUOTA_MESSAGE, status_code=502, provider=provider)
        return ProviderTransientError(
            RATE_LIMIT_MESSAGE,
            status_code=429,
            retry_after=_retry_after(error),
            provider=provider,
        )

    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(error, openai.APIConnectionError):
        return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)

    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderFatalError(AUTH_MESSAGE, status_code=502, provider=provider)

    if isinstance(error, openai.NotFoundError):
        return ProviderFatalError(MODEL_MESSAGE, status_code=502, provider=provider)

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        if status == 413 or code == "context_length_exceeded" or "maximum context length" in text:
            return ProviderFatalError(TOO_LARGE_MESSAGE, status_code=413, provider=provider)
        if "content_policy" in code or "content_policy_violation" in text or "content policy" in text:
            return ProviderFatalError(CONTENT_POLICY_MESSAGE, status_code=400, provider=provider)
        if status >= 500:
            return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)
        return ProviderFatalError(REJECTED_MESSAGE, status_code=502, provider=provider)

    # Response validation errors and other SDK failures without a status
    return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)


class OpenAIProvider(BaseLLMClient):
    """Text and vision requests through OpenAI chat completions in JSON mode."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.8,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[OpenAI] = None,
    ):
        """
        Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key (if None, uses OPENAI_API_KEY env var)
            model_name: Chat model (default: gpt-4o)
            temperature: Default sampling temperature
            timeout: Per-request timeout in seconds
            client: Pre-built client, mainly for tests

        Raises:
            ValueError: If no client is given and no API key is available
        """
        self._model_name = model_name or DEFAULT_OPENAI_MODEL
        self.temperature = temperature
        self.timeout = timeout

        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            # Retries are handled by the generation service
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._client = client

        logger.info(f"Initialized OpenAIProvider with model: {self._model_name}")

    @property
    def model_name(self) -> str:
        return self._model_name

    def _complete(self, messages: list, temperature: Optional[float], max_tokens: Optional[int]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self._model_name,
            "messages": messages,
            "response_format": {"type": "json_object"},
            "timeout": self.timeout,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            logger.error(f"OpenAI chat completion failed: {type(e).__name__}: {e}")
            raise classify_openai_error(e, self.provider_name) from e

        choice = response.choices[0] if response.choices else None
        if choice is not None and choice.finish_reason == "content_filter":
            raise ProviderFatalError(CONTENT_POLICY_MESSAGE, status_code=400, provider=self.provider_name)
        content = choice.message.content if choice is not None else None
        return parse_json_payload(content, self.provider_name)

    def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return self._complete(
            messages,
            temperature if temperature is not None else self.temperature,
            max_tokens,
        )

    def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
            ],
        })
        return self._complete(messages, None, max_tokens)


class OpenAIImageProvider(BaseImageClient):
    """Illustrations through the OpenAI images API."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[OpenAI] = None,
    ):
        self.model_name = model_name or DEFAULT_IMAGE_MODEL
        self.timeout = timeout
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._client = client

    def generate_image(self, prompt: str, size: str = "1024x1024") -> bytes:
        try:
            response = self._client.images.generate(
                model=self.model_name,
                prompt=prompt,
                n=1,
                size=size,
                response_format="b64_json",
                timeout=self.timeout,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI image generation failed: {type(e).__name__}: {e}")
            raise classify_openai_error(e, self.provider_name) from e

        image_base64 = response.data[0].b64_json if response.data else None
        if not image_base64:
            logger.error("Image generation returned empty image data")
            raise ProviderTransientError(
                "The image service returned no image. Please try again.",
                provider=self.provider_name,
            )
        try:
            return base64.b64decode(image_base64)
        except ValueError as e:
            logger.error(f"Image generation returned undecodable data: {e}")
            raise ProviderTransientError(
                "The image service returned an unreadable image. Please try again.",
                provider=self.provider_name,
            ) from e
