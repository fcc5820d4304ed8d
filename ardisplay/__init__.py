"""ardisplay - AR product model resizing service.

Rescales glTF/GLB product models to physical dimensions for in-browser AR
viewing, and caches each rescaled variant for reuse.
"""

__version__ = "0.1.0"

from .core.config import ArDisplayConfig, ServiceConfig
from .gltf.bounds import BoundingBox, compute_scene_bounds
from .gltf.document import SceneDocument, read_document, write_document
from .resize.scale import ExplicitSize, ScaleVector, UniformScale
from .resize.service import ResizeResult, ResizeService

__all__ = [
    "ArDisplayConfig",
    "ServiceConfig",
    "BoundingBox",
    "compute_scene_bounds",
    "SceneDocument",
    "read_document",
    "write_document",
    "ExplicitSize",
    "ScaleVector",
    "UniformScale",
    "ResizeResult",
    "ResizeService",
]
