"""
Classification providers.

A closed set of provider variants sharing one ``classify(request)`` contract.
"""

from .base import ClassificationProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .ollama import OllamaProvider
from .factory import PROVIDER_CLASSES, create_provider, create_providers

__all__ = [
    "ClassificationProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "PROVIDER_CLASSES",
    "create_provider",
    "create_providers",
]
