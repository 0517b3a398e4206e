"""
Azure Cosmos DB Configuration.

Centralized configuration for the document database that holds user profile
documents. The identity layer mirrors every registered user into this
database so profile lookups work for accounts created outside the record
store.

Environment Variables (optional overrides):
    COSMOS_ENDPOINT - Cosmos DB endpoint (profile mirroring is off when unset)
    COSMOS_DATABASE - Database name
"""

from config import settings

# =============================================================================
# COSMOS DB CONNECTION
# =============================================================================

COSMOS_ENDPOINT = settings.cosmos_endpoint

DATABASE_NAME = settings.cosmos_database

# =============================================================================
# PROFILE CONTAINERS
# =============================================================================

# Format: logical_name -> (container_name, partition_key_path)
PROFILE_CONTAINERS = {
    "users": ("Clinic_UserProfiles", "/id"),
}

PROFILE_CONTAINER_NAMES = {
    key: name for key, (name, _) in PROFILE_CONTAINERS.items()
}

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_profile_container_name(logical_name: str) -> str:
    """Get the actual container name for a logical profile container name."""
    if logical_name in PROFILE_CONTAINER_NAMES:
        return PROFILE_CONTAINER_NAMES[logical_name]
    return logical_name


def is_document_db_configured() -> bool:
    """Whether a Cosmos DB endpoint has been configured."""
    return bool(COSMOS_ENDPOINT)
