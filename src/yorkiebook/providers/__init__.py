"""
Generative AI provider implementations.

OpenAI serves text, vision and illustrations; Google Gemini serves text
and vision.
"""

from .base import BaseImageClient, BaseLLMClient, UnconfiguredProvider
from .factory import create_image_provider, create_provider
from .gemini import GeminiProvider
from .openai_provider import OpenAIImageProvider, OpenAIProvider

__all__ = [
    "BaseLLMClient",
    "BaseImageClient",
    "UnconfiguredProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "OpenAIImageProvider",
    "create_provider",
    "create_image_provider",
]
