"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements our VisionModelClient protocol
2. Converts frame data URIs into Claude's base64 image blocks
3. Translates SDK errors into VisionClientError subclasses the analyzer retries

The analyzer owns retries, so the SDK's own retry loop is switched off.
"""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import APIError, RateLimitError

from src.core.analysis.analyzer import VisionClientError


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClientError(VisionClientError):
    """Raised when API calls fail."""
    pass


class RateLimitExceeded(AnthropicClientError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """
    Configuration for the Anthropic client.

    Low temperature: the analysis has to come back as parseable JSON, not
    prose with flair.
    """
    api_key: str
    model: str = DEFAULT_MODEL
    max_tokens: int = 4000
    temperature: float = 0.1
    top_p: float = 0.95

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """
    Split "data:image/png;base64,AAAA" into ("image/png", "AAAA").

    Raises ValueError for anything that isn't a base64 data URI.
    """
    if not data_uri.startswith("data:"):
        raise ValueError("Not a data URI")

    header, sep, payload = data_uri.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("Only base64 data URIs are supported")

    media_type = header[len("data:"):-len(";base64")]
    return media_type or "image/png", payload


class AnthropicVisionClient:
    """
    VisionModelClient implementation using Claude.

    Knows Anthropic's message format but nothing about RPA. It sends
    images and text and gets text back.
    """

    def __init__(self, config: AnthropicConfig, client: anthropic.AsyncAnthropic | None = None) -> None:
        self._config = config
        self._client = client or anthropic.AsyncAnthropic(api_key=config.api_key, max_retries=0)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        image_data_uris: list[str],
    ) -> str:
        content = self._build_image_content(image_data_uris, user_prompt)

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                top_p=self._config.top_p,
                system=system_prompt,
                messages=[
                    {"role": "user", "content": content}
                ],
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded") from e
        except APIError as e:
            logger.error("API error", extra={"error": str(e)})
            raise AnthropicClientError(f"API error: {e.message}") from e

        return self._extract_text_response(response)

    async def test_connection(self) -> bool:
        try:
            await self._client.messages.create(
                model=self._config.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Test connection"}],
            )
            return True
        except APIError as e:
            logger.error("Anthropic connection test failed", extra={"error": str(e)})
            return False

    def _build_image_content(
        self,
        image_data_uris: list[str],
        text_prompt: str,
    ) -> list[dict]:
        """
        Build the content array for a multi-image request.

        Claude expects:
        [
            {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "..."}},
            {"type": "image", "source": {...}},
            {"type": "text", "text": "..."}
        ]
        """
        content: list[dict] = []

        for data_uri in image_data_uris:
            try:
                media_type, payload = split_data_uri(data_uri)
            except ValueError as e:
                raise AnthropicClientError(f"Invalid image data: {e}") from e

            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": payload,
                }
            })

        # text prompt goes last, after the images it refers to
        content.append({
            "type": "text",
            "text": text_prompt,
        })

        return content

    def _extract_text_response(self, response) -> str:
        if not response.content:
            return ""

        text_blocks = [
            block.text
            for block in response.content
            if hasattr(block, "text")
        ]

        return "\n".join(text_blocks)
