"""
Data Layer Base Classes.

The data layer provides the Repository pattern for data access.
This abstracts away the specific data store and provides a clean
interface for the domain layer.

Key principles:
- Repositories handle create/read/update operations only (records are never deleted)
- No business logic in repositories
- Return domain objects, not raw dicts
- A failed update leaves the stored record untouched
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging

from pydantic import BaseModel

from .domain import RecordNotFoundError

logger = logging.getLogger(__name__)

# Type variable for entity types
T = TypeVar("T", bound=BaseModel)


@dataclass
class QueryOptions:
    """Options for repository queries."""
    filters: Dict[str, Any] = field(default_factory=dict)
    order_by: Optional[str] = None
    order_desc: bool = False
    limit: Optional[int] = None


class Repository(ABC, Generic[T]):
    """
    Abstract base class for repositories.

    A Repository provides data access methods for a specific entity type.
    Type parameter T represents the entity type this repository manages;
    every entity exposes a string ``id`` attribute.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """
        Get an entity by its ID.

        Args:
            id: The entity's unique identifier

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def find(self, options: Optional[QueryOptions] = None) -> List[T]:
        """
        Find entities matching the query options.

        Args:
            options: Query options for filtering, sorting and limiting

        Returns:
            The matching entities
        """
        pass

    @abstractmethod
    def add(self, entity: T) -> T:
        """
        Store a fully constructed entity.

        Args:
            entity: The entity to store

        Returns:
            The stored entity
        """
        pass

    @abstractmethod
    def update(self, id: str, updates: Dict[str, Any]) -> T:
        """
        Merge partial fields into an existing entity.

        Args:
            id: The entity's unique identifier
            updates: Field name to new value

        Returns:
            The updated entity

        Raises:
            RecordNotFoundError: If no entity has this ID
        """
        pass


class InMemoryRepository(Repository[T]):
    """
    Repository backed by an insertion-ordered dict.

    All operations are synchronous so, on a single event loop, no caller can
    observe a half-written record. Entities are immutable pydantic models and
    updates swap in a new instance.
    """

    def __init__(self, entity_name: str):
        """
        Initialize an empty repository.

        Args:
            entity_name: Human-readable entity name used in errors and logs
        """
        self.entity_name = entity_name
        self._records: Dict[str, T] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get_by_id(self, id: str) -> Optional[T]:
        return self._records.get(id)

    def get_all(self) -> List[T]:
        return list(self._records.values())

    def find(self, options: Optional[QueryOptions] = None) -> List[T]:
        options = options or QueryOptions()

        matches = [
            record for record in self._records.values()
            if all(getattr(record, name) == value for name, value in options.filters.items())
        ]

        if options.order_by:
            # sorted() is stable, ties keep insertion order
            matches = sorted(
                matches,
                key=lambda record: getattr(record, options.order_by),
                reverse=options.order_desc,
            )

        if options.limit is not None:
            matches = matches[:options.limit]

        return matches

    def add(self, entity: T) -> T:
        self._records[entity.id] = entity
        logger.debug(f"Stored {self.entity_name} {entity.id}")
        return entity

    def update(self, id: str, updates: Dict[str, Any]) -> T:
        existing = self._records.get(id)
        if existing is None:
            raise RecordNotFoundError(self.entity_name, id)

        unknown = set(updates) - set(type(existing).model_fields)
        if unknown:
            raise ValueError(f"{self.entity_name} has no field(s): {', '.join(sorted(unknown))}")

        updated = existing.model_copy(update=updates)
        self._records[id] = updated
        logger.debug(f"Updated {self.entity_name} {id}: {sorted(updates)}")
        return updated
