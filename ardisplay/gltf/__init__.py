"""glTF scene document codec and geometry queries."""

from .bounds import BoundingBox, compute_scene_bounds, read_accessor
from .document import (
    Node,
    Scene,
    SceneDocument,
    encode_document,
    parse_glb,
    parse_gltf,
    read_document,
    write_document,
)

__all__ = [
    "BoundingBox",
    "compute_scene_bounds",
    "read_accessor",
    "Node",
    "Scene",
    "SceneDocument",
    "encode_document",
    "parse_glb",
    "parse_gltf",
    "read_document",
    "write_document",
]
