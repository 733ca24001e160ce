"""
Azure OpenAI client wrapper.

Implements the VisionModelClient protocol from core.analysis.analyzer.
"""

from .client import AzureOpenAIClientError, AzureOpenAIConfig, AzureOpenAIVisionClient

__all__ = ["AzureOpenAIClientError", "AzureOpenAIConfig", "AzureOpenAIVisionClient"]
