"""
Exception classes for the Assembly Factory
Flow: Error occurrence → Classification → Logging → HTTP response → Client handling

Error Types: Validation → Not Found → Conflict → Transition/Guard → Store
HTTP Status: 400 → 404 → 409 → 409 → 503
"""

from typing import Any, Dict, Optional

from assembly_factory.core.logging import get_logger

logger = get_logger(__name__)


class AssemblyFactoryException(Exception):
    """
    Base exception class for the Assembly Factory.

    Features:
    - Structured error context
    - HTTP status code mapping
    - Optional error codes
    - Logged once on construction
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        """Initialize base exception."""
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

        logger.warning(
            "Assembly factory exception occurred",
            error_type=self.__class__.__name__,
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=self.details,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Render the error as a JSON-serializable response body."""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(AssemblyFactoryException):
    """
    Validation error for input/configuration validation.

    Raised for missing names, empty part lists, bad permutations and
    config values that do not fit their field spec. Returns 400.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        """Initialize validation error."""
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["invalid_value"] = str(value)

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=400,
        )
        self.field = field
        self.value = value


class NotFoundError(AssemblyFactoryException):
    """Resource not found error. Returns 404."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: str = "NOT_FOUND",
    ):
        """Initialize not found error."""
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(AssemblyFactoryException):
    """Conflict error for duplicate codes or duplicate parts. Returns 409."""

    def __init__(
        self,
        message: str,
        conflicting_resource: Optional[str] = None,
        error_code: str = "RESOURCE_CONFLICT",
    ):
        """Initialize conflict error."""
        details = {}
        if conflicting_resource:
            details["conflicting_resource"] = conflicting_resource

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=409,
        )
        self.conflicting_resource = conflicting_resource


class InvalidTransitionError(AssemblyFactoryException):
    """
    Lifecycle transition requested from a status that does not allow it.

    Raised before any persistence write, so the stored status is unchanged.
    """

    def __init__(
        self,
        action: str,
        current_status: str,
        assembly_id: Optional[str] = None,
        error_code: str = "INVALID_TRANSITION",
    ):
        """Initialize invalid transition error."""
        details: Dict[str, Any] = {"action": action, "current_status": current_status}
        if assembly_id:
            details["assembly_id"] = assembly_id

        super().__init__(
            message=f"Cannot {action} an assembly in status {current_status}",
            error_code=error_code,
            details=details,
            status_code=409,
        )
        self.action = action
        self.current_status = current_status
        self.assembly_id = assembly_id


class AssemblyLockedError(AssemblyFactoryException):
    """Membership edit attempted on a deployed assembly. Returns 409."""

    def __init__(
        self,
        assembly_id: str,
        operation: str,
        error_code: str = "ASSEMBLY_LOCKED",
    ):
        """Initialize locked assembly error."""
        super().__init__(
            message=f"Assembly {assembly_id} is deployed; roll it back before '{operation}'",
            error_code=error_code,
            details={"assembly_id": assembly_id, "operation": operation},
            status_code=409,
        )
        self.assembly_id = assembly_id
        self.operation = operation


class StoreError(AssemblyFactoryException):
    """
    Persistence layer failure.

    The only error class meant to be shown to the user as an actionable,
    retryable failure. Returns 503.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        error_code: str = "STORE_UNAVAILABLE",
    ):
        """Initialize store error."""
        details: Dict[str, Any] = {"retryable": True}
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=503,
        )
        self.operation = operation
