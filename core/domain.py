"""
Domain Layer Base Classes.

The domain layer contains pure business logic with no external dependencies.
This makes business rules:
- Easy to test (no mocking needed)
- Reusable from HTTP routes and the realtime relay alike
- Clear and self-documenting

It also defines the error taxonomy shared by every layer. Errors are raised
where a rule is broken and translated into HTTP responses only at the
boundary (see clinic/routes.py).

Example Usage:
    class SessionStatusPolicy(PolicyEngine):
        def evaluate(self, context: dict) -> PolicyDecision:
            # Pure business logic here
            ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List
from datetime import datetime, timezone
from enum import Enum


class PolicyResult(Enum):
    """Result of a policy evaluation."""
    APPROVED = "approved"
    DENIED = "denied"


@dataclass
class PolicyDecision:
    """
    What a policy decided about a requested change.

    Attributes:
        result: Approved or denied
        reason: Message surfaced to the caller when denied
        metadata: Extra facts the caller may act on (e.g. "unchanged")
    """
    result: PolicyResult
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_approved(self) -> bool:
        return self.result == PolicyResult.APPROVED

    @property
    def is_denied(self) -> bool:
        return self.result == PolicyResult.DENIED


class PolicyEngine(ABC):
    """
    A business rule set that judges a context object.

    Engines never touch the record store; callers apply the decision.
    """

    @abstractmethod
    def evaluate(self, context: Any) -> PolicyDecision:
        """
        Judge the context.

        Args:
            context: Everything the rule needs, usually a small dataclass

        Returns:
            The decision and its reason
        """
        pass


@dataclass
class ValidationError:
    """One field-level problem found in a request body."""
    field: str
    message: str
    code: str = "invalid"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code}


class Validator(ABC):
    """
    Checks a request body before it is allowed near the record store.
    """

    @abstractmethod
    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        """
        Collect every problem with ``data``.

        Returns:
            Field errors, empty when the body is acceptable
        """
        pass

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return not self.validate(data)


# =============================================================================
# ERRORS
# =============================================================================

class ClinicError(Exception):
    """Base class for all errors raised by the clinic backend."""


class RecordNotFoundError(ClinicError):
    """Raised when an update targets an identifier the store does not hold."""

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found")


class SchemaValidationError(ClinicError):
    """
    Raised when a request body does not match an entity schema.

    Carries the structured list of field errors so the boundary can report
    every problem at once.
    """

    def __init__(self, entity: str, errors: List[ValidationError]):
        self.entity = entity
        self.errors = errors
        summary = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(summary or f"Invalid {entity} data")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": f"Invalid {self.entity} data",
            "error": str(self),
            "details": [e.to_dict() for e in self.errors],
        }


class TransitionError(ClinicError):
    """Raised when a status change would move a record backwards."""


class AssistantError(ClinicError):
    """Raised when the AI completion provider fails for any reason."""


class AuthenticationError(ClinicError):
    """Raised when credentials or session tokens cannot be validated."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
