"""
Cosmos DB Profile Directory.

Document database access for user profile documents, keyed by the user id
the identity layer hands out. Mirrors the profile lookup/creation the client
apps perform against their document store.

Uses DefaultAzureCredential for flexible authentication.
"""

import logging
from typing import Any, Dict, Optional

from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError
from azure.identity import DefaultAzureCredential

from core.domain import ClinicError
from shared.cosmos_config import get_profile_container_name

logger = logging.getLogger(__name__)


class ProfileStoreError(ClinicError):
    """Raised when the document database cannot be read or written."""


class ProfileDirectory:
    """Get/set access to the user profile container."""

    def __init__(self, container: Any):
        """
        Args:
            container: A Cosmos DB container client (or anything with
                ``read_item`` and ``upsert_item``)
        """
        self._container = container

    @classmethod
    def from_endpoint(cls, endpoint: str, database_name: str) -> "ProfileDirectory":
        """Connect to Cosmos DB and bind the user profile container."""
        logger.info("Initializing profile Cosmos DB client...")
        credential = DefaultAzureCredential(
            exclude_interactive_browser_credential=True,
        )
        client = CosmosClient(endpoint, credential=credential)
        database = client.get_database_client(database_name)
        container = database.get_container_client(get_profile_container_name("users"))
        logger.info(f"Profile Cosmos DB client initialized: {database_name}")
        return cls(container)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Look up a profile document.

        Returns:
            The profile without Cosmos system fields, or None if absent

        Raises:
            ProfileStoreError: If the database call fails
        """
        try:
            document = self._container.read_item(item=user_id, partition_key=user_id)
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            logger.error(f"Error reading profile {user_id}: {e}")
            raise ProfileStoreError("Failed to read user profile") from e

        return {k: v for k, v in document.items() if not k.startswith("_")}

    def save_profile(self, user_id: str, profile: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or replace a profile document.

        Raises:
            ProfileStoreError: If the database call fails
        """
        document = {**profile, "id": user_id}
        try:
            self._container.upsert_item(document)
        except CosmosHttpResponseError as e:
            logger.error(f"Error saving profile {user_id}: {e}")
            raise ProfileStoreError("Failed to save user profile") from e

        logger.info(f"Saved profile document for user {user_id}")
        return document
