"""Scene graph transform helpers."""

from .transform import Transform3D, apply_matrix

__all__ = [
    "Transform3D",
    "apply_matrix",
]
