"""Configuration management for Codialog."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API Keys
    groq_api_key: Optional[str] = Field(None, description="Groq API key for the fallback generator")
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key for the fallback generator")

    # Model Configuration
    reasoning_model: str = Field("llama-3.1-70b-versatile", description="Groq model used for script generation")
    fallback_model: str = Field("gpt-4o-mini", description="OpenAI model used when Groq is not configured")
    llm_timeout: float = Field(30.0, description="Text-generation request timeout in seconds")
    llm_max_tokens: int = Field(1000, description="Maximum tokens for a generated script")

    # Compiler Configuration
    fallback_threshold: float = Field(0.5, description="Coverage ratio below which the fallback generator runs")
    complexity_min_indicators: int = Field(2, description="Complexity indicators that mark a form as complex")

    # Runner Configuration
    runner_command: str = Field("tagui", description="Automation runner command line")
    browser_target: str = Field("chrome", description="Browser target passed to the runner")
    execution_timeout: float = Field(300.0, description="Default script execution timeout in seconds")
    staging_dir: Optional[str] = Field(None, description="Directory for staged scripts (system temp if unset)")
    script_suffix: str = Field(".tag", description="File suffix for staged scripts")

    # Application Configuration
    debug: bool = Field(False, description="Enable debug mode")
    log_level: str = Field("INFO", description="Logging level")

    # Server Configuration
    host: str = Field("127.0.0.1", description="Server host")
    port: int = Field(4000, description="Server port")
    reload: bool = Field(False, description="Enable auto-reload")
    allowed_origins: list[str] = Field(["*"], description="CORS allowed origins")


# Global settings instance
settings = Settings()
