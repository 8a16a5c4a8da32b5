"""
Google Gemini provider implementation.

This module provides the GeminiProvider class for text and vision requests
against Google's Generative AI models. All Gemini-specific code, including
the mapping of google-api-core exceptions onto the error taxonomy, is
isolated here.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ..utils.errors import (
    RATE_LIMIT_MESSAGE,
    ProviderError,
    ProviderFatalError,
    ProviderTransientError,
)
from .base import BaseLLMClient, parse_json_payload
from .openai_provider import (
    AUTH_MESSAGE,
    CONTENT_POLICY_MESSAGE,
    MODEL_MESSAGE,
    REJECTED_MESSAGE,
    TOO_LARGE_MESSAGE,
    UNAVAILABLE_MESSAGE,
)

logger = logging.getLogger(__name__)

ALLOWED_MODELS: List[str] = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash",
    "gemini-1.5-pro",
    "gemini-1.5-flash",
]

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT_SECONDS = 120.0


def _validate_gemini_model_name(model_name: str) -> str:
    """
    Validate and normalize a Gemini model name.

    Args:
        model_name: Model name (with or without 'models/' prefix)

    Returns:
        Normalized model name with 'models/' prefix

    Raises:
        ValueError: If model is not in the allowed list
    """
    base_name = model_name.replace("models/", "")
    if base_name not in ALLOWED_MODELS:
        raise ValueError(
            f"Invalid Gemini model: {model_name}. Allowed models: {', '.join(ALLOWED_MODELS)}"
        )
    return f"models/{base_name}"


def classify_gemini_error(error: Exception, provider: str = "gemini") -> Optional[ProviderError]:
    """
    Map a google-api-core (or network) exception onto the error taxonomy.

    Returns:
        The classified error, or None if the exception is not a provider failure
    """
    if isinstance(error, google_exceptions.ResourceExhausted):
        return ProviderTransientError(RATE_LIMIT_MESSAGE, status_code=429, provider=provider)
    if isinstance(error, (
        google_exceptions.ServiceUnavailable,
        google_exceptions.InternalServerError,
        google_exceptions.DeadlineExceeded,
    )):
        return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)
    if isinstance(error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return ProviderFatalError(AUTH_MESSAGE, status_code=502, provider=provider)
    if isinstance(error, google_exceptions.NotFound):
        return ProviderFatalError(MODEL_MESSAGE, status_code=502, provider=provider)
    if isinstance(error, google_exceptions.InvalidArgument):
        text = str(error).lower()
        if "too large" in text or "exceeds" in text or "token" in text:
            return ProviderFatalError(TOO_LARGE_MESSAGE, status_code=413, provider=provider)
        if "safety" in text or "blocked" in text:
            return ProviderFatalError(CONTENT_POLICY_MESSAGE, status_code=400, provider=provider)
        return ProviderFatalError(REJECTED_MESSAGE, status_code=502, provider=provider)
    if isinstance(error, google_exceptions.GoogleAPICallError):
        if error.code is not None and int(error.code) >= 500:
            return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)
        return ProviderFatalError(REJECTED_MESSAGE, status_code=502, provider=provider)
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ProviderTransientError(UNAVAILABLE_MESSAGE, status_code=503, provider=provider)
    return None


class GeminiProvider(BaseLLMClient):
    """
    Provider for interacting with Google Gemini API.

    The ``google.generativeai`` module is injected (defaulting to the real
    one), so tests can pass a mock module instead of patching imports.
    """

    provider_name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.8,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        genai_module: Any = None,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key (if None, uses GOOGLE_API_KEY env var)
            model_name: Model name (default: gemini-2.5-flash)
            temperature: Generation temperature (default: 0.8)
            timeout: Per-request timeout in seconds
            genai_module: Replacement for ``google.generativeai``

        Raises:
            ValueError: If the API key is missing or the model name is invalid
        """
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError("GOOGLE_API_KEY environment variable is required")

        self._genai = genai_module if genai_module is not None else genai
        self._genai.configure(api_key=self.api_key)

        self._model_name = _validate_gemini_model_name(model_name or DEFAULT_GEMINI_MODEL)
        self.temperature = temperature
        self.timeout = timeout

        logger.info(f"Initialized GeminiProvider with model: {self._model_name}")

    @property
    def model_name(self) -> str:
        """Get the model name being used by this provider."""
        return self._model_name

    def _generate(
        self,
        contents: Any,
        system_prompt: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"response_mime_type": "application/json"}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens

        try:
            model = self._genai.GenerativeModel(self._model_name, system_instruction=system_prompt)
            response = model.generate_content(
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            classified = classify_gemini_error(e, self.provider_name)
            if classified is None:
                raise
            logger.error(f"Gemini generation failed: {type(e).__name__}: {e}")
            raise classified from e

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            logger.warning(f"Gemini blocked the prompt: {feedback.block_reason}")
            raise ProviderFatalError(CONTENT_POLICY_MESSAGE, status_code=400, provider=self.provider_name)

        try:
            text = response.text
        except ValueError as e:
            # .text raises when no candidate part was returned (usually a safety stop)
            logger.warning(f"Gemini returned no text: {e}")
            raise ProviderFatalError(CONTENT_POLICY_MESSAGE, status_code=400, provider=self.provider_name) from e

        return parse_json_payload(text, self.provider_name)

    def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._generate(
            prompt,
            system_prompt,
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
        contents = [prompt, {"mime_type": mime_type, "data": image_bytes}]
        return self._generate(contents, system_prompt, None, max_tokens)
