"""
Provider factory.

Builds text/vision and image providers from configuration. Providers are
constructed per application by the service container; there is no
module-level default instance.
"""

import logging
from typing import Optional

from .base import BaseImageClient, BaseLLMClient
from .gemini import GeminiProvider
from .openai_provider import OpenAIImageProvider, OpenAIProvider

logger = logging.getLogger(__name__)

TEXT_PROVIDERS = ("openai", "gemini")
IMAGE_PROVIDERS = ("openai",)


def create_provider(provider_name: Optional[str] = None, **kwargs) -> BaseLLMClient:
    """
    Create a text/vision provider instance.

    Args:
        provider_name: 'openai' (default) or 'gemini'
        **kwargs: Provider-specific configuration (api_key, model_name, temperature, timeout)

    Returns:
        BaseLLMClient instance

    Raises:
        ValueError: If provider_name is invalid or the provider cannot be created
    """
    provider_name = (provider_name or "openai").lower()

    if provider_name == "openai":
        return OpenAIProvider(**kwargs)
    if provider_name == "gemini":
        return GeminiProvider(**kwargs)

    raise ValueError(
        f"Unknown LLM provider: {provider_name}. "
        f"Supported providers: {', '.join(TEXT_PROVIDERS)}"
    )


def create_image_provider(provider_name: Optional[str] = None, **kwargs) -> BaseImageClient:
    """
    Create an image-generation provider instance.

    Raises:
        ValueError: If provider_name is invalid or the provider cannot be created
    """
    provider_name = (provider_name or "openai").lower()

    if provider_name == "openai":
        return OpenAIImageProvider(**kwargs)

    raise ValueError(
        f"Unknown image provider: {provider_name}. "
        f"Supported providers: {', '.join(IMAGE_PROVIDERS)}"
    )
