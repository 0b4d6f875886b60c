"""
The permission table.

Explicit per permission rather than a numeric role hierarchy: some
capabilities are not monotonic in role (per product type carve-outs are
layered on top by the store module).
"""

from shared.models import AppRole

from .models import Permission

ALL_ROLES = frozenset(AppRole)

PERMISSION_TABLE: dict[Permission, frozenset[AppRole]] = {
    Permission.PRODUCTS_CREATE: frozenset({AppRole.ADMIN, AppRole.STAFF}),
    Permission.PRODUCTS_DELETE: frozenset({AppRole.ADMIN}),
    Permission.PRODUCTS_DELETE_OWN: frozenset({AppRole.ADMIN, AppRole.STAFF}),
    Permission.ACCESS_ADMIN: frozenset({AppRole.ADMIN, AppRole.STAFF}),
    Permission.ACCESS_MEMBER: frozenset({AppRole.ADMIN, AppRole.STAFF, AppRole.MEMBER}),
    Permission.MEMBERSHIPS_MANAGE: frozenset({AppRole.ADMIN}),
    Permission.MEMBERSHIPS_CANCEL_OWN: ALL_ROLES,
    Permission.PURCHASES_CANCEL_OWN: ALL_ROLES,
    Permission.PURCHASES_CANCEL_ANY: frozenset({AppRole.ADMIN}),
}


def allowed_roles(permission: Permission) -> frozenset[AppRole]:
    """Roles listed for a permission (empty if the table has no entry)."""
    return PERMISSION_TABLE.get(permission, frozenset())
