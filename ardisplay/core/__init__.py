"""Core modules for ardisplay."""

from .config import ArDisplayConfig, ServerConfig, ServiceConfig
from .errors import (
    DivisionByZeroError,
    DocumentFormatError,
    GeometryError,
    InternalError,
    ModelIOError,
    NotFoundError,
    ResizeError,
    ValidationError,
)

__all__ = [
    "ArDisplayConfig",
    "ServerConfig",
    "ServiceConfig",
    "DivisionByZeroError",
    "DocumentFormatError",
    "GeometryError",
    "InternalError",
    "ModelIOError",
    "NotFoundError",
    "ResizeError",
    "ValidationError",
]
