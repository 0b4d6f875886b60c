"""
Authentication service implementation.

Validates Supabase JWT tokens and provides user authentication.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings, get_settings
from shared.models import AuthenticatedUser

from .interfaces import IAuthService
from .models import JWTPayload
from .exceptions import (
    AuthNotConfiguredError,
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
)

logger = logging.getLogger(__name__)

JWT_AUDIENCE = "authenticated"


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    Uses Supabase JWT tokens (HS256, signed with the project JWT secret).
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate a JWT token and return the authenticated user.

        The ``app_role`` claim is validated against AppRole here, at the
        boundary, and is never used for permission decisions.
        """
        if not token:
            raise MissingTokenError()
        if not self._settings.supabase_jwt_secret:
            logger.error("SUPABASE_JWT_SECRET is not set; rejecting all tokens")
            raise AuthNotConfiguredError()

        try:
            payload = jwt.decode(
                token,
                self._settings.supabase_jwt_secret,
                algorithms=["HS256"],
                audience=JWT_AUDIENCE,
            )
            jwt_payload = JWTPayload(**payload)
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(str(e))
        except PydanticValidationError:
            raise InvalidTokenError("Token is missing required claims")

        return AuthenticatedUser(
            id=jwt_payload.sub,
            email=jwt_payload.email or None,
            email_verified=jwt_payload.is_email_verified,
            last_sign_in=datetime.fromtimestamp(jwt_payload.iat, tz=timezone.utc),
            claim_role=jwt_payload.claim_role,
        )


# Module-level instance getter
_service_instance: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get the auth service singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = AuthService()
    return _service_instance


def reset_auth_service() -> None:
    """Reset the auth service singleton (for testing)."""
    global _service_instance
    _service_instance = None
