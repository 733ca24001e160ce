"""
Azure OpenAI vision client.

Sends the frames of one analysis as `image_url` parts of a single chat
completion. Like the Claude wrapper, it is deliberately thin: prompts,
retries and response parsing all live in the analyzer.
"""

import logging
from dataclasses import dataclass

from openai import APIError, AsyncAzureOpenAI, RateLimitError

from src.core.analysis.analyzer import VisionClientError


logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-02-01"


class AzureOpenAIClientError(VisionClientError):
    """Raised when API calls fail."""
    pass


class AzureRateLimitExceeded(AzureOpenAIClientError):
    pass


@dataclass
class AzureOpenAIConfig:
    endpoint: str
    api_key: str
    deployment_name: str = "gpt-4-vision"
    api_version: str = DEFAULT_API_VERSION
    max_tokens: int = 4000
    temperature: float = 0.1
    top_p: float = 0.95

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ValueError("Azure OpenAI endpoint is required")
        if not self.api_key:
            raise ValueError("API key is required")
        if not self.deployment_name:
            raise ValueError("Deployment name is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")


class AzureOpenAIVisionClient:
    """VisionModelClient implementation on an Azure OpenAI deployment."""

    def __init__(self, config: AzureOpenAIConfig, client: AsyncAzureOpenAI | None = None) -> None:
        self._config = config
        self._client = client or AsyncAzureOpenAI(
            azure_endpoint=config.endpoint,
            api_key=config.api_key,
            api_version=config.api_version,
            max_retries=0,
        )
        logger.info(
            "Azure OpenAI client initialized",
            extra={"deployment": config.deployment_name},
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        image_data_uris: list[str],
    ) -> str:
        user_content: list[dict] = [{"type": "text", "text": user_prompt}]
        for data_uri in image_data_uris:
            user_content.append({
                "type": "image_url",
                "image_url": {"url": data_uri, "detail": "high"},
            })

        try:
            response = await self._client.chat.completions.create(
                model=self._config.deployment_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                top_p=self._config.top_p,
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise AzureRateLimitExceeded("API rate limit exceeded") from e
        except APIError as e:
            logger.error("API error", extra={"error": str(e)})
            raise AzureOpenAIClientError(f"API error: {e.message}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def test_connection(self) -> bool:
        try:
            await self._client.chat.completions.create(
                model=self._config.deployment_name,
                messages=[{"role": "user", "content": "Test connection"}],
                max_tokens=10,
            )
            logger.info("Azure OpenAI connection test succeeded")
            return True
        except APIError as e:
            logger.error("Azure OpenAI connection test failed", extra={"error": str(e)})
            return False
