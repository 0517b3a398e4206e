"""
Configuration module for the Clinic Management backend.
Loads settings from environment variables with Azure OpenAI and Cosmos DB support.
"""

from typing import List

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Azure OpenAI Configuration
    azure_openai_endpoint: str = Field(
        default="",
        alias="AZURE_OPENAI_ENDPOINT",
        description="Azure OpenAI endpoint URL"
    )
    azure_openai_deployment: str = Field(
        default="gpt-4o",
        alias="AZURE_OPENAI_DEPLOYMENT",
        description="Azure OpenAI deployment name used for chat completions"
    )
    azure_openai_api_version: str = Field(
        default="2024-10-21",
        alias="AZURE_OPENAI_API_VERSION",
        description="Azure OpenAI API version"
    )
    azure_openai_api_key: str = Field(
        default="",
        alias="AZURE_OPENAI_API_KEY",
        description="API key; when empty DefaultAzureCredential is used instead"
    )

    # AI Assistant Configuration
    ai_timeout_seconds: float = Field(
        default=30.0,
        alias="AI_TIMEOUT_SECONDS",
        description="Timeout for a single completion call (calls are never retried)"
    )
    ai_history_limit: int = Field(
        default=5,
        alias="AI_HISTORY_LIMIT",
        description="Number of prior conversation turns forwarded to the model"
    )

    # Application Configuration
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=5000,
        alias="APP_PORT",
        description="Port to bind the application"
    )
    cors_allow_origins: List[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_ORIGINS",
        description="Origins allowed by the CORS middleware"
    )

    # Record Store Configuration
    seed_sample_news: bool = Field(
        default=True,
        alias="SEED_SAMPLE_NEWS",
        description="Populate the news feed with sample articles at startup"
    )

    # Document Database (profile documents)
    cosmos_endpoint: str = Field(
        default="",
        alias="COSMOS_ENDPOINT",
        description="Cosmos DB endpoint; profile mirroring is disabled when empty"
    )
    cosmos_database: str = Field(
        default="clinic",
        alias="COSMOS_DATABASE",
        description="Cosmos DB database name"
    )

    # Identity
    session_ttl_hours: int = Field(
        default=24,
        alias="SESSION_TTL_HOURS",
        description="Lifetime of an issued session token"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


# Global settings instance
settings = Settings()
