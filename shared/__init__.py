"""
Shared modules for the Clinic Management application.

This package contains shared configuration used across the application.
"""

from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    PROFILE_CONTAINERS,
    get_profile_container_name,
    is_document_db_configured,
)

__all__ = [
    "COSMOS_ENDPOINT",
    "DATABASE_NAME",
    "PROFILE_CONTAINERS",
    "get_profile_container_name",
    "is_document_db_configured",
]
