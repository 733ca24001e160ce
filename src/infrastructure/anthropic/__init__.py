"""
Anthropic Claude API client wrapper.

Implements the VisionModelClient protocol from core.analysis.analyzer.
"""

from .client import AnthropicConfig, AnthropicClientError, AnthropicVisionClient

__all__ = ["AnthropicConfig", "AnthropicClientError", "AnthropicVisionClient"]
