"""
Claims module.

Keeps the identity provider's cached role claim consistent with the
authoritative profile role.

Public API:
- IClaimsStore / IClaimsSynchronizer: Interfaces
- ClaimsSyncResult: Sync outcome
- ClaimsStoreError
"""

from .interfaces import IClaimsStore, IClaimsSynchronizer
from .models import ClaimsSyncResult
from .exceptions import ClaimsStoreError

__all__ = [
    # Interfaces
    "IClaimsStore",
    "IClaimsSynchronizer",
    # Models
    "ClaimsSyncResult",
    # Exceptions
    "ClaimsStoreError",
]
