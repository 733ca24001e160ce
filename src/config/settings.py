"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file) with
sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The transcoder mock mode enables local development without FFmpeg.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "RPA Video Analyzer API"
    api_version: str = "v1"

    # AI Provider
    ai_provider: Literal["azure_openai", "anthropic"] = Field(
        default="azure_openai",
        description="Which vision model backs the analysis: azure_openai or anthropic."
    )

    # Azure OpenAI Configuration
    azure_openai_endpoint: str = Field(
        default="",
        description="Azure OpenAI resource endpoint. Required when ai_provider is azure_openai."
    )
    azure_openai_api_key: str = Field(
        default="",
        description="Azure OpenAI API key. Required when ai_provider is azure_openai."
    )
    azure_openai_deployment_name: str = Field(
        default="gpt-4-vision",
        description="Name of the vision-capable deployment."
    )
    azure_openai_api_version: str = Field(
        default="2024-02-01",
        description="Azure OpenAI REST API version."
    )

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key. Required when ai_provider is anthropic."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model to use."
    )

    # Model Sampling
    ai_max_tokens: int = Field(
        default=4000,
        description="Max tokens for the analysis response. The JSON for a long process is large."
    )
    ai_temperature: float = Field(
        default=0.1,
        description="Low temperature keeps the response close to the requested JSON shape."
    )
    ai_top_p: float = Field(
        default=0.95,
        description="Nucleus sampling cutoff."
    )

    # Analysis Behavior
    analysis_frame_budget: int = Field(
        default=15,
        description="Maximum frames sent to the model per analysis. Limits payload size and cost."
    )
    ai_max_attempts: int = Field(
        default=3,
        description="Attempts per analysis before giving up with an AI service error."
    )
    ai_retry_base_delay_ms: int = Field(
        default=1000,
        description="Base delay for exponential backoff between attempts."
    )

    # Frame Extraction
    frame_interval_seconds: float = Field(
        default=5,
        gt=0,
        description="Default seconds between sampled frames."
    )
    max_frames: int = Field(
        default=50,
        ge=1,
        description="Default upper bound on frames sampled from one video."
    )
    frame_timeout_seconds: float = Field(
        default=30,
        description="Per-frame extraction timeout. A frame that takes longer is skipped."
    )
    temp_dir: str = Field(
        default="temp/video-processing",
        description="Root for per-extraction session directories."
    )
    output_dir: str = Field(
        default="output",
        description="Where generated documents are written."
    )
    transcoder_mock_mode: bool = Field(
        default=False,
        description="Use placeholder frames instead of FFmpeg. Enables local dev without FFmpeg."
    )
    ffmpeg_path: str = Field(default="ffmpeg", description="Path to the ffmpeg binary")
    ffprobe_path: str = Field(default="ffprobe", description="Path to the ffprobe binary")

    # Documents
    default_author: str = Field(
        default="Automated RPA Analysis System",
        description="Author recorded on generated documents when none is given."
    )
    default_version: str = Field(
        default="1.0",
        description="Version recorded on generated documents."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the chosen AI provider.

        Returns list of missing environment variables.
        This is separate from Pydantic validation because requirements
        depend on which provider is selected.
        """
        missing = []

        if self.ai_provider == "azure_openai":
            if not self.azure_openai_endpoint:
                missing.append("AZURE_OPENAI_ENDPOINT")
            if not self.azure_openai_api_key:
                missing.append("AZURE_OPENAI_API_KEY")
            if not self.azure_openai_deployment_name:
                missing.append("AZURE_OPENAI_DEPLOYMENT_NAME")
        elif self.ai_provider == "anthropic":
            if not self.anthropic_api_key:
                missing.append("ANTHROPIC_API_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
