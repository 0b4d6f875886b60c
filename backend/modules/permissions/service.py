"""
Permission decision procedure.

Pure and synchronous: the result depends only on (permission, role,
ownership pair). The role must come from the caller's profile, never from
client input or the cached token claim.
"""

import logging
from typing import Optional, Union

from shared.models import AppRole

from .exceptions import PermissionDeniedError
from .models import OwnerPair, Permission, PermissionResult
from .table import allowed_roles

logger = logging.getLogger(__name__)


def _parse_permission(permission: Union[Permission, str]) -> Optional[Permission]:
    if isinstance(permission, Permission):
        return permission
    try:
        return Permission(permission)
    except ValueError:
        return None


def check_permission(
    permission: Union[Permission, str],
    role: AppRole,
    owner_pair: Optional[OwnerPair] = None,
) -> PermissionResult:
    """
    Decide whether ``role`` may perform ``permission``.

    Args:
        permission: Permission identifier (enum member or its string value)
        role: Caller's role as read from the profile
        owner_pair: (caller id, resource owner id), required for ``:own``
            permissions and ignored otherwise

    Returns:
        PermissionResult with allowed flag and, when denied, a reason
    """
    parsed = _parse_permission(permission)
    if parsed is None:
        # Fail closed on identifiers outside the closed set.
        logger.error("Unknown permission identifier: %r", permission)
        return PermissionResult(allowed=False, reason=f"Unknown permission: {permission}")

    if role not in allowed_roles(parsed):
        return PermissionResult(
            allowed=False,
            reason=f"Role {role.value} does not have permission {parsed.value}",
        )

    if parsed.requires_ownership:
        if owner_pair is None:
            return PermissionResult(
                allowed=False,
                reason=f"Permission {parsed.value} requires an ownership check",
            )
        if owner_pair.owner_id != owner_pair.resource_owner_id:
            return PermissionResult(
                allowed=False,
                reason="You can only perform this action on your own resources",
            )

    return PermissionResult(allowed=True)


def require_permission(
    permission: Union[Permission, str],
    role: AppRole,
    owner_pair: Optional[OwnerPair] = None,
) -> None:
    """
    Raise PermissionDeniedError unless ``check_permission`` allows.

    Raises:
        PermissionDeniedError: If the permission is denied
    """
    result = check_permission(permission, role, owner_pair)
    if not result.allowed:
        logger.debug("Denied %s for role %s: %s", permission, role.value, result.reason)
        raise PermissionDeniedError(
            permission=str(getattr(permission, "value", permission)),
            role=role.value,
            reason=result.reason,
        )


def has_any_permission(
    permissions: list[tuple[Permission, Optional[OwnerPair]]],
    role: AppRole,
) -> PermissionResult:
    """
    Allow if any of the (permission, owner pair) alternatives allows.

    Used where an action is reachable through an ``:own`` permission or a
    broader one, e.g. cancelling a purchase.
    """
    reason: Optional[str] = None
    for permission, owner_pair in permissions:
        result = check_permission(permission, role, owner_pair)
        if result.allowed:
            return result
        reason = reason or result.reason
    return PermissionResult(allowed=False, reason=reason or "Permission denied")
