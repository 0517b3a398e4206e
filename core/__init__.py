"""
Core Framework for the Clinic backend.

This module provides the base classes and interfaces the clinic package
builds on. The layered architecture ensures:

1. Domain Layer - Pure business rules and the error taxonomy, no I/O
2. Data Layer - Repository pattern for data access
"""

from .domain import (
    PolicyEngine,
    PolicyDecision,
    PolicyResult,
    Validator,
    ValidationError,
    ClinicError,
    RecordNotFoundError,
    SchemaValidationError,
    TransitionError,
    AssistantError,
    AuthenticationError,
)
from .data import Repository, InMemoryRepository, QueryOptions

__all__ = [
    # Domain
    "PolicyEngine",
    "PolicyDecision",
    "PolicyResult",
    "Validator",
    "ValidationError",
    # Errors
    "ClinicError",
    "RecordNotFoundError",
    "SchemaValidationError",
    "TransitionError",
    "AssistantError",
    "AuthenticationError",
    # Data
    "Repository",
    "InMemoryRepository",
    "QueryOptions",
]
