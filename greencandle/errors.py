"""Typed failures raised by the call and subscriber services.

Every error carries an HTTP-equivalent status code so the API layer can
render it without knowing which service raised it.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base error with error_code support"""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": "fail",
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class NotFound(AppError):
    """A Call, Target or User id does not resolve."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(message, details={"resource": resource, "id": identifier} if identifier else None)
        self.resource = resource
        self.identifier = identifier


class TargetNotFound(NotFound):
    def __init__(self, target_id: str, call_id: Optional[str] = None):
        super().__init__("Target", target_id)
        self.call_id = call_id


class InvalidDate(AppError):
    status_code = 400
    error_code = "INVALID_DATE"

    def __init__(self, value: Any):
        super().__init__(f"Invalid date: {value!r}", details={"value": str(value)})
        self.value = value


class ValidationFailed(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class Conflict(AppError):
    status_code = 409
    error_code = "CONFLICT"
