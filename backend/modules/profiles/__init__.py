"""
Profiles module.

Lazily provisions the application profile for each authenticated identity.

Public API:
- IProfileService: Interface for provisioning and lookup
- Profile: Profile model
- ProfileNotFoundError
"""

from .interfaces import IProfileService
from .models import Profile
from .exceptions import ProfileNotFoundError

__all__ = [
    "IProfileService",
    "Profile",
    "ProfileNotFoundError",
]
