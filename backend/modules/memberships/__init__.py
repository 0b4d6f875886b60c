"""
Memberships module.

Membership lifecycle (NONE -> ACTIVE <-> EXPIRED) and the USER <-> MEMBER
role transitions it drives.

Public API:
- IMembershipService: Interface for status, revocation and expiry sweep
- MembershipLifecycle: Transition rules used inside store transactions
- Membership, MembershipState, MembershipStatus, RoleTransition,
  SweepResult, MembershipCancellation: Models
- Membership exceptions
"""

from .interfaces import IMembershipService
from .lifecycle import MembershipLifecycle, TransitionOutcome, membership_state
from .models import (
    Membership,
    MembershipState,
    MembershipStatus,
    RoleTransition,
    SweepResult,
    MembershipCancellation,
)
from .exceptions import (
    MembershipNotFoundError,
    MembershipAlreadyActiveError,
    MembershipNotActiveError,
)

__all__ = [
    # Interface
    "IMembershipService",
    # Lifecycle
    "MembershipLifecycle",
    "TransitionOutcome",
    "membership_state",
    # Models
    "Membership",
    "MembershipState",
    "MembershipStatus",
    "RoleTransition",
    "SweepResult",
    "MembershipCancellation",
    # Exceptions
    "MembershipNotFoundError",
    "MembershipAlreadyActiveError",
    "MembershipNotActiveError",
]
