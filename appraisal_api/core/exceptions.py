from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )

class ValidationFailedError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_FAILED",
            details=details
        )

class InvalidTransitionError(AppException):
    """Raised when a workflow action is attempted from a state that does not allow it."""
    def __init__(self, action: str, current_status: str, allowed_from=()):
        super().__init__(
            message=f"Cannot perform '{action}' on an appraisal in status '{current_status}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"action": action, "status": current_status, "allowed_from": list(allowed_from)}
        )

class SubmissionLockedError(AppException):
    def __init__(self, message: str = "Appraisal submissions are currently locked by HR"):
        super().__init__(
            message=message,
            status_code=423,
            error_code="SUBMISSION_LOCKED"
        )


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )
