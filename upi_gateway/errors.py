"""
Domain errors for the gateway.

Services raise these; ``main`` turns them into JSON responses of the form
``{"detail": ..., "code": ..., "field": ...}`` using ``http_status``.
"""
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class. Subclasses pick the HTTP status and machine code."""

    http_status = 500
    code = "gateway_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


# ---------- 4xx ----------

class ValidationError(GatewayError):
    http_status = 400
    code = "validation_error"


class InvalidAmount(ValidationError):
    code = "invalid_amount"

    def __init__(self, message: str = "Amount must be greater than 0"):
        super().__init__(message, field="amount")


class InvalidStatus(ValidationError):
    code = "invalid_status"


class Unauthenticated(GatewayError):
    http_status = 401
    code = "unauthenticated"


class Forbidden(GatewayError):
    http_status = 403
    code = "forbidden"


class NotFound(GatewayError):
    http_status = 404
    code = "not_found"


class Conflict(GatewayError):
    http_status = 409
    code = "conflict"


class DuplicateIdentifier(Conflict):
    code = "duplicate_identifier"

    def __init__(self, identifier: str):
        super().__init__(f"UPI ID '{identifier}' already exists", field="identifier")
        self.identifier = identifier


class DuplicateUsername(Conflict):
    code = "duplicate_username"

    def __init__(self, username: str):
        super().__init__(f"Username '{username}' already exists", field="username")


class AlreadyFinalized(Conflict, InvalidStatus):
    """The transaction left ``pending`` before this transition could apply.

    Also an ``InvalidStatus`` so webhook callers catching that still see it;
    the HTTP status comes from ``Conflict``.
    """

    code = "already_finalized"

    def __init__(self, txn_id: str, status: str):
        super().__init__(f"Transaction {txn_id} is already {status}")
        self.txn_id = txn_id
        self.status = status


# ---------- 5xx ----------

class ResourceExhausted(GatewayError):
    http_status = 503
    code = "resource_exhausted"


class NoAddressAvailable(ResourceExhausted):
    code = "no_address_available"

    def __init__(self, message: str = "No active UPI IDs available"):
        super().__init__(message)


class RenderingFailed(GatewayError):
    http_status = 500
    code = "rendering_failed"
