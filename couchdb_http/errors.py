from __future__ import annotations

"""Error taxonomy for CouchDB HTTP API failures.

Every failed call surfaces as a ``CouchDBError`` subclass chosen by the HTTP
status code (or by a transport failure when no response was received).
"""

from enum import Enum
import json
from typing import Any


class ErrorKind(str, Enum):
    """Stable machine-readable error kinds."""

    INVALID_ARGUMENT = "invalid_argument"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    RUNTIME = "runtime"
    CONNECTION = "connection"
    NOT_IMPLEMENTED = "not_implemented"


class CouchDBError(RuntimeError):
    """Base class for every error raised by the client."""

    kind: ErrorKind = ErrorKind.RUNTIME

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        error: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Keep the original status and CouchDB's ``error``/``reason`` pair."""

        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        """Serialize into a JSON-friendly payload."""

        return {
            "error": self.kind.value,
            "status_code": self.status_code,
            "message": self.message,
            "couchdb_error": self.error,
            "reason": self.reason,
        }


class InvalidArgumentError(CouchDBError, ValueError):
    """400: malformed JSON payload or illegal database/document name."""

    kind = ErrorKind.INVALID_ARGUMENT


class UnauthorizedError(CouchDBError):
    """401: missing or wrong credentials."""

    kind = ErrorKind.UNAUTHORIZED


class NotFoundError(CouchDBError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(CouchDBError):
    """409: document update conflict (stale or missing ``rev``)."""

    kind = ErrorKind.CONFLICT


class DuplicateError(CouchDBError):
    """412: resource already exists."""

    kind = ErrorKind.DUPLICATE


class RejectedError(CouchDBError):
    """417: documents rejected by bulk or validation functions."""

    kind = ErrorKind.REJECTED


class CouchDBRuntimeError(CouchDBError):
    kind = ErrorKind.RUNTIME


class CouchDBConnectionError(CouchDBError):
    """Raised when no HTTP response was received (DNS, refused, timeout)."""

    kind = ErrorKind.CONNECTION


class CouchDBNotImplementedError(CouchDBError, NotImplementedError):
    """Raised by operations this client deliberately does not support."""

    kind = ErrorKind.NOT_IMPLEMENTED


STATUS_ERRORS: dict[int, type[CouchDBError]] = {
    400: InvalidArgumentError,
    401: UnauthorizedError,
    404: NotFoundError,
    409: ConflictError,
    412: DuplicateError,
    417: RejectedError,
}


def parse_error_body(content: bytes) -> tuple[str | None, str | None]:
    """Extract CouchDB's ``{"error": ..., "reason": ...}`` pair if present."""

    if not content:
        return None, None
    try:
        payload = json.loads(content)
    except ValueError:
        return None, None
    if not isinstance(payload, dict):
        return None, None
    error = payload.get("error")
    reason = payload.get("reason")
    return (
        str(error) if error is not None else None,
        str(reason) if reason is not None else None,
    )


def error_for_status(
    status_code: int,
    message: str,
    content: bytes = b"",
) -> CouchDBError:
    """Build the error matching ``status_code``; unknown codes map to runtime."""

    error_class = STATUS_ERRORS.get(status_code, CouchDBRuntimeError)
    error, reason = parse_error_body(content)
    return error_class(message, status_code, error=error, reason=reason)
