"""Error taxonomy for the cemetery service and its JSON error envelope.

Every error crossing the HTTP boundary carries a stable machine-readable
``kind`` and a human-readable ``message``. Storage and stack details stay in
the logs.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class CemeteryError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(CemeteryError):
    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str, errors: list[FieldError] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [FieldError(field, message)])

    @classmethod
    def from_errors(cls, errors: list[FieldError]) -> "ValidationError":
        return cls(errors[0].message, errors)

    @property
    def fields(self) -> list[str]:
        return [error.field for error in self.errors]

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["fields"] = [error.to_dict() for error in self.errors]
        return payload


class NotFoundError(CemeteryError):
    kind = "not_found"
    status_code = 404


class ConflictError(CemeteryError):
    kind = "conflict"
    status_code = 409


class TransactionError(CemeteryError):
    kind = "transaction_error"
    status_code = 500


_HTTP_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


def error_response(kind: str, message: str, status_code: int, extra: dict[str, object] | None = None):
    body: dict[str, object] = {"kind": kind, "message": message}
    if extra:
        body.update(extra)
    return jsonify({"success": False, "error": body}), status_code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CemeteryError)
    def handle_cemetery_error(error: CemeteryError):
        if error.status_code >= 500:
            log.error("request_failed", kind=error.kind, message=error.message)
        payload = error.to_dict()
        return jsonify({"success": False, "error": payload}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        status_code = error.code or 500
        kind = _HTTP_KINDS.get(status_code, "http_error")
        return error_response(kind, error.description or error.name, status_code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        log.exception("unhandled_error", error_type=type(error).__name__)
        return error_response(TransactionError.kind, "Internal error", 500)
