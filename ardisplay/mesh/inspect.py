"""Model inspection using trimesh.

Loads a glTF/GLB model as a trimesh scene to report mesh statistics
(vertex and face counts, watertightness, extents) for the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import trimesh

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ModelInspector:
    """Load a 3D model and summarize its geometry."""

    SUPPORTED_FORMATS = {".glb", ".gltf"}

    def __init__(self, path: str | Path):
        """Load a model from file.

        Args:
            path: Path to a .glb or .gltf file
        """
        self.path = Path(path)

        if not self.path.exists():
            raise FileNotFoundError(f"Model file not found: {self.path}")

        if self.path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {self.path.suffix}. "
                f"Supported: {self.SUPPORTED_FORMATS}"
            )

        self._scene = trimesh.load(str(self.path), force="scene")

    @property
    def scene(self) -> trimesh.Scene:
        """Return the loaded trimesh scene."""
        return self._scene

    @property
    def meshes(self) -> list[trimesh.Trimesh]:
        """Return the scene's triangle meshes."""
        return [
            geom for geom in self._scene.geometry.values()
            if isinstance(geom, trimesh.Trimesh)
        ]

    @property
    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return (min, max) bounding box coordinates in world space."""
        if self._scene.bounds is None:
            raise ValueError("Model contains no geometry")
        return self._scene.bounds[0], self._scene.bounds[1]

    @property
    def size(self) -> NDArray[np.float64]:
        """Return size of bounding box (x, y, z)."""
        lo, hi = self.bounds
        return hi - lo

    @property
    def num_vertices(self) -> int:
        return sum(len(m.vertices) for m in self.meshes)

    @property
    def num_faces(self) -> int:
        return sum(len(m.faces) for m in self.meshes)

    @property
    def is_watertight(self) -> bool:
        """Check if every mesh is watertight (closed)."""
        meshes = self.meshes
        return bool(meshes) and all(m.is_watertight for m in meshes)

    def stats(self) -> dict:
        """Return statistics about the model."""
        lo, hi = self.bounds
        return {
            "path": str(self.path),
            "num_meshes": len(self.meshes),
            "num_vertices": self.num_vertices,
            "num_faces": self.num_faces,
            "is_watertight": self.is_watertight,
            "bounds_min": lo.tolist(),
            "bounds_max": hi.tolist(),
            "size": (hi - lo).tolist(),
        }

    def __repr__(self) -> str:
        return (
            f"ModelInspector({self.path.name}, "
            f"{self.num_vertices} vertices, "
            f"{self.num_faces} faces)"
        )
