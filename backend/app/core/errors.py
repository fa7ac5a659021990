from __future__ import annotations

from fastapi import status


class AccessControlError(Exception):
    """Base class for failures of the tenant access pipeline.

    Each subclass maps to one stable HTTP status and machine-readable code so
    the portal UI can branch (login redirect, permission error, client picker).
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "access_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class AuthenticationError(AccessControlError):
    """No valid principal behind the request. The client must sign in again."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"


class AuthorizationError(AccessControlError):
    """Valid principal, but the role or client membership does not allow the operation."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class ProfileIntegrityError(AuthorizationError):
    """A client-role profile without a client_id. Indicates a provisioning bug."""

    code = "client_association_missing"


class ResolutionError(AccessControlError):
    """The active client for the request could not be determined."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "active_client_required"


class AssociationValidationError(AccessControlError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "invalid_association"


class SyncError(AccessControlError):
    """The association reconciliation failed and was rolled back as a whole."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "association_sync_failed"
