"""Status errors returned by the metrics API handlers."""

from __future__ import annotations

from http import HTTPStatus

STATUS_FAILURE = "Failure"
REASON_BAD_REQUEST = "BadRequest"
REASON_INTERNAL_ERROR = "InternalError"

_SIMPLE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _quote(text: str) -> str:
    """Return ``text`` as a double-quoted literal with non-printable characters escaped."""
    parts = []
    for char in text:
        if char in _SIMPLE_ESCAPES:
            parts.append(_SIMPLE_ESCAPES[char])
        elif char.isprintable():
            parts.append(char)
        else:
            code = ord(char)
            if code < 0x80:
                parts.append(f"\\x{code:02x}")
            elif code <= 0xFFFF:
                parts.append(f"\\u{code:04x}")
            else:
                parts.append(f"\\U{code:08x}")
    return '"' + "".join(parts) + '"'


class StatusError(Exception):
    """An API error carrying an HTTP status code and a machine-readable reason."""

    def __init__(
        self,
        message: str,
        *,
        code: int,
        reason: str,
        status: str = STATUS_FAILURE,
        causes: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.reason = reason
        self.status = status
        self.causes = list(causes or [])

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code}, "
            f"reason={self.reason!r}, status={self.status!r})"
        )

    def as_status(self) -> dict:
        """Return the error as a Status object suitable for an API response body."""
        status = {
            "kind": "Status",
            "apiVersion": "v1",
            "status": self.status,
            "message": self.message,
            "reason": self.reason,
            "code": self.code,
        }
        if self.causes:
            status["details"] = {"causes": [{"message": cause} for cause in self.causes]}
        return status


def new_operation_not_supported_error(operation: str) -> StatusError:
    """Return an error stating that the requested API operation is not supported."""
    return StatusError(
        f"Operation: {_quote(operation)} is not implemented",
        code=int(HTTPStatus.NOT_IMPLEMENTED),
        reason=REASON_BAD_REQUEST,
    )


def new_internal_error(message: str) -> StatusError:
    """Return an error describing an unexpected internal failure."""
    return StatusError(
        f"Internal error occurred: {message}",
        code=int(HTTPStatus.INTERNAL_SERVER_ERROR),
        reason=REASON_INTERNAL_ERROR,
        causes=[message],
    )