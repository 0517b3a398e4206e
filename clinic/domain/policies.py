"""
Clinic Domain Policies.

Pure business rules for clinic records.
These classes have NO I/O dependencies - they can be unit tested in isolation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from core.domain import PolicyEngine, PolicyDecision, PolicyResult, TransitionError, utc_now

from ..schemas import SessionStatus, TelemedicineSession


# =============================================================================
# CONSTANTS
# =============================================================================

# Appointment length in minutes when the booking does not say
DEFAULT_APPOINTMENT_DURATION = 30

# Doctor ratings are whole stars
DEFAULT_DOCTOR_RATING = 0
MIN_DOCTOR_RATING = 0
MAX_DOCTOR_RATING = 5

# Telemedicine sessions only move forward through these states
SESSION_STATUS_ORDER = {
    SessionStatus.WAITING: 0,
    SessionStatus.ACTIVE: 1,
    SessionStatus.ENDED: 2,
}


# =============================================================================
# POLICY ENGINES
# =============================================================================

@dataclass
class SessionTransitionContext:
    """Context for session status policy evaluation."""
    current_status: SessionStatus
    requested_status: SessionStatus


class SessionStatusPolicy(PolicyEngine):
    """
    Rules for moving a telemedicine session between statuses.

    waiting -> active -> ended, skipping forward is allowed,
    requesting the current status is a no-op, going back is denied.
    """

    def evaluate(self, context: SessionTransitionContext) -> PolicyDecision:
        current = SESSION_STATUS_ORDER[context.current_status]
        requested = SESSION_STATUS_ORDER[context.requested_status]

        if requested < current:
            return PolicyDecision(
                result=PolicyResult.DENIED,
                reason=(
                    f"Cannot move session from {context.current_status.value} "
                    f"back to {context.requested_status.value}"
                ),
            )

        return PolicyDecision(
            result=PolicyResult.APPROVED,
            reason="Status change allowed",
            metadata={"unchanged": requested == current},
        )


# =============================================================================
# SERVICES
# =============================================================================

@dataclass
class SessionLifecycle:
    """
    Works out the partial update for a session status change.

    Stamps ``started_at`` when a session goes active and ``ended_at`` when it
    ends, so ``started_at <= ended_at`` holds for every stored session.
    """
    policy: SessionStatusPolicy = field(default_factory=SessionStatusPolicy)

    def transition(
        self,
        session: TelemedicineSession,
        status: SessionStatus,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Build the updates that move ``session`` to ``status``.

        Args:
            session: The stored session
            status: The requested status
            now: Clock override for tests

        Returns:
            Field updates to merge into the session (empty for a no-op)

        Raises:
            TransitionError: If the move would go backwards
        """
        decision = self.policy.evaluate(SessionTransitionContext(
            current_status=session.status,
            requested_status=status,
        ))
        if decision.is_denied:
            raise TransitionError(decision.reason)
        if decision.metadata.get("unchanged"):
            return {}

        now = now or utc_now()
        updates: Dict[str, Any] = {"status": status}

        if status in (SessionStatus.ACTIVE, SessionStatus.ENDED) and session.started_at is None:
            updates["started_at"] = now
        if status == SessionStatus.ENDED:
            updates["ended_at"] = now

        return updates


def clamp_rating(rating: Optional[int]) -> int:
    """Doctor rating with the default applied and bounds enforced."""
    if rating is None:
        return DEFAULT_DOCTOR_RATING
    return max(MIN_DOCTOR_RATING, min(MAX_DOCTOR_RATING, rating))
