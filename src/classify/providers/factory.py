"""
Provider factory.

Builds the ordered provider list for the chain from configuration.
"""

import logging
from typing import Dict, List, Optional, Type

import requests

from ..core.exceptions import ConfigError
from ..core.types import ProviderConfig
from .anthropic import AnthropicProvider
from .base import ClassificationProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider


logger = logging.getLogger(__name__)

PROVIDER_CLASSES: Dict[str, Type[ClassificationProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "ollama": OllamaProvider,
}


def create_provider(
    config: ProviderConfig,
    session: Optional[requests.Session] = None,
) -> ClassificationProvider:
    """
    Create a single provider.

    Raises:
        ConfigError: If the provider name is unknown
    """
    provider_class = PROVIDER_CLASSES.get(config.name)
    if provider_class is None:
        raise ConfigError(
            f"Unknown provider '{config.name}'. "
            f"Available: {', '.join(sorted(PROVIDER_CLASSES))}"
        )
    return provider_class(config, session=session)


def create_providers(
    configs: List[ProviderConfig],
    session: Optional[requests.Session] = None,
) -> List[ClassificationProvider]:
    """
    Create providers in priority order, skipping disabled or keyless ones.

    Args:
        configs: Provider configurations in priority order
        session: Optional shared requests session

    Returns:
        List of providers, in the given order

    Raises:
        ConfigError: If any configured provider name is unknown
    """
    session = session or requests.Session()
    providers = []
    for config in configs:
        if config.name not in PROVIDER_CLASSES:
            raise ConfigError(f"Unknown provider '{config.name}'")
        if not config.is_usable:
            logger.info(f"Skipping provider {config.name}: disabled or missing API key")
            continue
        providers.append(create_provider(config, session=session))

    logger.info(f"Provider chain order: {[p.name for p in providers]}")
    return providers
