"""
Permissions module.

Maps (permission, caller role, optional ownership pair) to allow/deny.

Public API:
- check_permission / require_permission / has_any_permission
- Permission, OwnerPair, PermissionResult
- PERMISSION_TABLE
- PermissionDeniedError
"""

from .models import Permission, OwnerPair, PermissionResult
from .table import PERMISSION_TABLE, allowed_roles
from .service import check_permission, require_permission, has_any_permission
from .exceptions import PermissionDeniedError

__all__ = [
    # Decision procedure
    "check_permission",
    "require_permission",
    "has_any_permission",
    # Models
    "Permission",
    "OwnerPair",
    "PermissionResult",
    # Table
    "PERMISSION_TABLE",
    "allowed_roles",
    # Exceptions
    "PermissionDeniedError",
]
