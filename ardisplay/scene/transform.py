"""3D transformation utilities for scene graph nodes.

Provides Transform3D for representing a glTF node's local transform
(translation, rotation quaternion, per-axis scale), with conversion to
4x4 homogeneous transformation matrices.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field
from scipy.spatial.transform import Rotation


class Transform3D(BaseModel):
    """3D transformation: translation + rotation + scale.

    Attributes:
        translation: XYZ translation in document units
        rotation: Unit quaternion as (x, y, z, w), glTF order
        scale: Per-axis scale factors
    """

    translation: tuple[float, float, float] = Field(
        default=(0.0, 0.0, 0.0),
        description="XYZ translation"
    )
    rotation: tuple[float, float, float, float] = Field(
        default=(0.0, 0.0, 0.0, 1.0),
        description="Rotation quaternion (x, y, z, w)"
    )
    scale: tuple[float, float, float] = Field(
        default=(1.0, 1.0, 1.0),
        description="Per-axis scale factors"
    )

    model_config = {"frozen": True}

    def to_matrix(self) -> NDArray[np.float64]:
        """Convert to 4x4 homogeneous transformation matrix.

        The transformation order is: Scale -> Rotate -> Translate
        This means the matrix is built as: T @ R @ S

        Returns:
            4x4 transformation matrix

        Raises:
            ValueError: If the rotation quaternion has zero norm
        """
        s = np.diag([*self.scale, 1.0]).astype(np.float64)

        # scipy also uses scalar-last quaternions
        rot = Rotation.from_quat(self.rotation)
        r = np.eye(4, dtype=np.float64)
        r[:3, :3] = rot.as_matrix()

        t = np.eye(4, dtype=np.float64)
        t[:3, 3] = self.translation

        return t @ r @ s

    @staticmethod
    def matrix_from_gltf(values: Sequence[float]) -> NDArray[np.float64]:
        """Convert a glTF column-major 16-element matrix to a 4x4 array.

        Raises:
            ValueError: If the sequence does not hold 16 numbers
        """
        arr = np.asarray(values, dtype=np.float64)
        if arr.shape != (16,):
            raise ValueError(f"Node matrix must have 16 elements, got {arr.size}")
        return arr.reshape(4, 4).T

    def apply_to_points(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Apply transformation to an Nx3 array of points.

        Args:
            points: Nx3 array of XYZ coordinates

        Returns:
            Transformed Nx3 array of points
        """
        return apply_matrix(self.to_matrix(), points)

    @classmethod
    def identity(cls) -> Transform3D:
        """Return identity transform (no transformation)."""
        return cls()

    def __repr__(self) -> str:
        return (
            f"Transform3D(t={self.translation}, "
            f"r={self.rotation}, s={self.scale})"
        )


def apply_matrix(matrix: NDArray[np.float64], points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Apply a 4x4 affine matrix to an Nx3 array of points."""
    # Convert to homogeneous coordinates (Nx4)
    ones = np.ones((len(points), 1), dtype=np.float64)
    homogeneous = np.hstack([points, ones])

    transformed = (matrix @ homogeneous.T).T
    return transformed[:, :3]
