"""Typed failures raised by the resize pipeline.

Every failure path surfaces one of these. The HTTP layer maps them to status
codes through ``status_code`` and serializes them with ``to_dict``.
"""

from __future__ import annotations

from typing import Any


class ResizeError(Exception):
    """Base class for all resize failures.

    Attributes:
        kind: Stable error kind reported to clients
        status_code: HTTP status the transport layer should use
        state: Orchestrator state in which the failure happened (if known)
    """

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str, *, state: str | None = None):
        super().__init__(message)
        self.message = message
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        """Serialize as the error response body."""
        return {"errorKind": self.kind, "message": self.message}


class ValidationError(ResizeError):
    """Malformed or missing request fields, or an unsafe model identifier."""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(ResizeError):
    """The source model does not exist."""

    kind = "NotFoundError"
    status_code = 404


class GeometryError(ResizeError):
    """No bounding box could be computed for the scene."""

    kind = "GeometryError"


class DivisionByZeroError(ResizeError):
    """An original extent is zero while resizing to an explicit size."""

    kind = "DivisionByZeroError"


class ModelIOError(ResizeError):
    """Reading or writing a model file failed."""

    kind = "IOError"


class InternalError(ResizeError):
    """Unexpected failure, usually in the scene document codec."""

    kind = "InternalError"


class DocumentFormatError(InternalError):
    """The scene document is not valid glTF 2.0."""
