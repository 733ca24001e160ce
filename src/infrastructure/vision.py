"""
Vision client factory.

Picks the AI backend from settings. Missing credentials are a
configuration error raised here, at construction time, so the analyzer
never retries something that can't succeed.
"""

import logging

from src.config import Settings
from src.core.analysis.analyzer import VisionModelClient
from src.core.errors import ConfigurationError

from .anthropic import AnthropicConfig, AnthropicVisionClient
from .azure_openai import AzureOpenAIConfig, AzureOpenAIVisionClient

logger = logging.getLogger(__name__)


def create_vision_client(settings: Settings) -> VisionModelClient:
    missing = settings.validate_required_fields()
    if missing:
        raise ConfigurationError(
            f"Missing configuration for {settings.ai_provider}: {', '.join(missing)}"
        )

    if settings.ai_provider == "anthropic":
        logger.info("Using Anthropic vision client", extra={"model": settings.anthropic_model})
        return AnthropicVisionClient(AnthropicConfig(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
            top_p=settings.ai_top_p,
        ))

    return AzureOpenAIVisionClient(AzureOpenAIConfig(
        endpoint=settings.azure_openai_endpoint,
        api_key=settings.azure_openai_api_key,
        deployment_name=settings.azure_openai_deployment_name,
        api_version=settings.azure_openai_api_version,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
        top_p=settings.ai_top_p,
    ))
