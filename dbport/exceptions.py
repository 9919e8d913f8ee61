"""Error taxonomy for export, import and backup operations."""

from typing import Any, Dict, Optional


class PortError(Exception):
    """Base for all dbport errors."""

    status_code = 500
    error_type = "InternalServerError"

    def __init__(self, message: str, context: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        """Error body in the shape HTTP callers report."""
        return {
            "errors": [{
                "message": self.message,
                "context": self.context,
                "type": self.error_type,
            }]
        }


class UnknownVersionError(PortError):
    """The registry has no shape for the requested version."""
    status_code = 400
    error_type = "UnknownVersionError"


class UnsupportedVersionError(PortError):
    """A valid export whose version cannot be migrated to the current one."""
    status_code = 400
    error_type = "UnsupportedVersionError"


class UnsupportedFormatError(PortError):
    """Input is not a versioned, table-keyed export document."""
    status_code = 400
    error_type = "UnsupportedFormatError"


class UnknownTableError(PortError):
    """A table name that is not registered for the version in use."""
    status_code = 400
    error_type = "UnknownTableError"


class InvalidFilenameError(PortError):
    """Backup filename rejected by sanitization."""
    status_code = 422
    error_type = "ValidationError"


class UnsupportedMediaTypeError(PortError):
    """Uploaded file is not JSON."""
    status_code = 415
    error_type = "UnsupportedMediaTypeError"


class UnprocessableEntityError(PortError):
    """Import request without a file."""
    status_code = 422
    error_type = "ValidationError"


class ForbiddenError(PortError):
    """Caller may not perform the operation."""
    status_code = 403
    error_type = "NoPermissionError"


class NotFoundError(PortError):
    """Requested backup file does not exist."""
    status_code = 404
    error_type = "NotFoundError"


class OperationCancelledError(PortError):
    """Operation was cancelled or ran past its deadline."""
    status_code = 408
    error_type = "RequestTimeoutError"


class StorageError(PortError):
    """Durable storage failed while writing or reading a backup."""
    status_code = 500
    error_type = "InternalServerError"


class IntegrityError(PortError):
    """A write collided with an existing identity or unique value."""
    status_code = 409
    error_type = "IntegrityError"

    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column
