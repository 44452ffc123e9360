"""
Domain Exceptions

Error taxonomy raised by the reservation engine. Each error carries the
HTTP status a transport layer should map it to.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base class for every error raised by the domain"""

    status_code = 400
    default_code = 'error'

    def __init__(self, message: str, *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {'code': self.default_code, 'message': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class NotFoundError(DomainError):
    """A property, booking, policy or user does not exist"""

    status_code = 404
    default_code = 'not_found'


class ValidationError(DomainError):
    """Bad input or a business rule violation"""

    status_code = 400
    default_code = 'invalid'


class PermissionDeniedError(DomainError):
    """The actor may not perform the operation"""

    status_code = 403
    default_code = 'permission_denied'


class ConflictError(DomainError):
    """Overlapping reservation or a lost concurrent update"""

    status_code = 409
    default_code = 'conflict'


class StorageError(DomainError):
    """Persistence failed; the transaction was rolled back"""

    status_code = 500
    default_code = 'storage_error'
