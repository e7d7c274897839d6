"""
Configuration settings for HealthFlow.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from healthflow.engine.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "HealthFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Graph runtime
    MAX_STEPS: int = 25  # Node executions allowed per run

    # Language model client
    LLM_TEMPERATURE: float = 0.0
    LLM_TIMEOUT: float = 60.0  # Seconds
    LLM_MAX_RETRIES: int = 2

    # Logging
    LOG_LEVEL: str = "INFO"


class LLMSettings(BaseSettings):
    """Endpoint settings for the OpenAI-compatible chat model."""

    model_config = SettingsConfigDict(env_file="local.env", case_sensitive=True, extra="ignore")

    ENDPOINT_ID: Optional[str] = None
    ENDPOINT_API_KEY: Optional[str] = None
    ARK_BASE_URL: Optional[str] = None


def load_llm_settings(env_file: Optional[str] = "local.env") -> LLMSettings:
    """
    Load the chat model endpoint settings.

    Values come from the environment first, then from env_file.

    Raises:
        ConfigurationError: naming every variable that is missing or empty
    """
    llm_settings = LLMSettings(_env_file=env_file)
    missing = [
        name for name in LLMSettings.model_fields
        if not getattr(llm_settings, name)
    ]
    if missing:
        raise ConfigurationError(missing, source=env_file)
    return llm_settings


# Global settings instance
settings = Settings()
