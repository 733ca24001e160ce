"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- azure_openai: Azure OpenAI vision client
- anthropic: Claude API client
- video: FFmpeg transcoder
- documents: file output (markdown, JSON, Excel)

These wrappers translate between external formats and our domain models.
"""
