"""
Azure OpenAI Client Manager.
Provides the async Azure OpenAI client used by the health assistant, with
API key or DefaultAzureCredential (managed identity) authentication.
"""

import logging
from typing import Optional
from openai import AsyncAzureOpenAI
from azure.identity import DefaultAzureCredential, get_bearer_token_provider

from config import settings

logger = logging.getLogger(__name__)


def normalize_endpoint(endpoint: str) -> str:
    """Strip the /openai/v1 suffix and trailing slash some portals hand out."""
    for suffix in ("/openai/v1/", "/openai/v1"):
        if endpoint.endswith(suffix):
            endpoint = endpoint[: -len(suffix)]
            break
    return endpoint.rstrip("/")


class AzureOpenAIClientManager:
    """
    Singleton manager for AsyncAzureOpenAI client.

    Authentication:
    - AZURE_OPENAI_API_KEY when set
    - otherwise DefaultAzureCredential (managed identity, Azure CLI, environment)

    The client never retries on its own; a failed call is reported to the
    caller once.
    """

    _instance = None
    _client: Optional[AsyncAzureOpenAI] = None
    _credential: Optional[DefaultAzureCredential] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def get_client(self) -> AsyncAzureOpenAI:
        """Get or create the AsyncAzureOpenAI client."""
        if self._client is None:
            azure_endpoint = normalize_endpoint(settings.azure_openai_endpoint)

            if settings.azure_openai_api_key:
                logger.info("Initializing AsyncAzureOpenAI client with API key...")
                auth = {"api_key": settings.azure_openai_api_key}
            else:
                logger.info("Initializing AsyncAzureOpenAI client with DefaultAzureCredential...")
                self._credential = DefaultAzureCredential()
                auth = {
                    "azure_ad_token_provider": get_bearer_token_provider(
                        self._credential,
                        "https://cognitiveservices.azure.com/.default"
                    )
                }

            self._client = AsyncAzureOpenAI(
                azure_endpoint=azure_endpoint,
                api_version=settings.azure_openai_api_version,
                timeout=settings.ai_timeout_seconds,
                max_retries=0,
                **auth,
            )

            logger.info(f"AsyncAzureOpenAI client initialized: {azure_endpoint}")

        return self._client

    async def close(self):
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            self._credential.close()
            self._credential = None


# Global client manager instance
client_manager = AzureOpenAIClientManager()
