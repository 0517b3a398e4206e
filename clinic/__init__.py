"""
Clinic Management Package.

Structure:
- schemas.py: Entity models and per-entity request schemas
- domain/: Pure business logic (no I/O)
  - policies.py: SessionStatusPolicy, SessionLifecycle, defaults
- storage.py: ClinicStorage, the in-memory record store
- assistant.py: HealthAssistant, the AI chat gateway
- relay.py: ChatRelay, realtime fan-out of chat frames
- profiles.py: ProfileDirectory, Cosmos DB profile documents
- routes.py: FastAPI routes and exception handlers
"""

from .storage import ClinicStorage
from .assistant import HealthAssistant
from .relay import ChatRelay

__all__ = [
    "ClinicStorage",
    "HealthAssistant",
    "ChatRelay",
]
