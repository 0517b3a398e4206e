"""Clinic domain layer - pure business logic."""

from .policies import (
    DEFAULT_APPOINTMENT_DURATION,
    DEFAULT_DOCTOR_RATING,
    SessionStatusPolicy,
    SessionTransitionContext,
    SessionLifecycle,
    clamp_rating,
)

__all__ = [
    "DEFAULT_APPOINTMENT_DURATION",
    "DEFAULT_DOCTOR_RATING",
    "SessionStatusPolicy",
    "SessionTransitionContext",
    "SessionLifecycle",
    "clamp_rating",
]
