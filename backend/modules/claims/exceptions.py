"""
Claims module exceptions.
"""

from shared.exceptions import ExternalServiceError


class ClaimsStoreError(ExternalServiceError):
    """Raised when the claims store cannot be read or written."""

    def __init__(self, message: str, auth_user_id: str):
        super().__init__(
            message,
            service="claims",
            code="CLAIMS_STORE_ERROR",
            details={"auth_user_id": auth_user_id},
        )
