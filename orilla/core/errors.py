"""
Typed errors raised by the approval core.

Every error carries a class-level ``code`` (machine readable, API safe) and
an ``http_status`` used by the exception handlers in ``orilla.main``.
Services raise these; routers roll back and let the handlers render them.

    OrillaError
    +-- PermissionDeniedError        403  PERMISSION_DENIED
    +-- InvalidStateTransitionError  409  INVALID_STATE_TRANSITION
    +-- ConflictError                409  CONFLICT
    +-- ValidationError              422  VALIDATION_ERROR
    +-- NotFoundError                404  NOT_FOUND
"""

from typing import Optional


class OrillaError(Exception):
    code: str = "ORILLA_ERROR"
    http_status: int = 400

    def __init__(self, message: str, *, reason: Optional[str] = None):
        self.message = message
        self.reason = reason
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "reason": self.reason,
        }


class PermissionDeniedError(OrillaError):
    """Actor lacks the role or capability for the action."""

    code: str = "PERMISSION_DENIED"
    http_status: int = 403

    def __init__(self, reason: str):
        super().__init__(reason, reason=reason)


class InvalidStateTransitionError(OrillaError):
    """Transition does not exist from the current state, or a structural
    precondition (such as every entry being approved) does not hold."""

    code: str = "INVALID_STATE_TRANSITION"
    http_status: int = 409

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        action: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.current_status = current_status
        self.action = action
        super().__init__(message, reason=reason)


class ConflictError(OrillaError):
    """The record changed between read and conditional write."""

    code: str = "CONFLICT"
    http_status: int = 409

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            message
            or f"{entity_type} {entity_id} was modified concurrently; reload and try again"
        )


class ValidationError(OrillaError):
    code: str = "VALIDATION_ERROR"
    http_status: int = 422


class NotFoundError(OrillaError):
    code: str = "NOT_FOUND"
    http_status: int = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")
