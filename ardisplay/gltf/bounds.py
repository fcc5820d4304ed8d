
"""Axis-aligned bounding boxes of glTF scenes.

Bounds are computed from the actual vertex positions of every mesh reachable
from a scene's roots, transformed by the node hierarchy as currently laid
out in the document. Compressed primitives are measured from the min/max
their POSITION accessor declares, and skinned meshes are posed by their
joints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator

import numpy as np
from numpy.typing import NDArray

from ..core.errors import DocumentFormatError, GeometryError
from ..scene.transform import Transform3D, apply_matrix
from .document import Node, SceneDocument

logger = logging.getLogger(__name__)

COMPONENT_DTYPES = {
    5120: np.dtype("<i1"),
    5121: np.dtype("<u1"),
    5122: np.dtype("<i2"),
    5123: np.dtype("<u2"),
    5125: np.dtype("<u4"),
    5126: np.dtype("<f4"),
}

TYPE_COMPONENTS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Vertex data behind these (on a primitive or a buffer view) is not readable
# from the plain buffer; such POSITION accessors are measured from min/max
COMPRESSION_EXTENSIONS = frozenset({
    "KHR_draco_mesh_compression",
    "EXT_meshopt_compression",
    "KHR_meshopt_compression",
})

SUPPORTED_REQUIRED_EXTENSIONS = COMPRESSION_EXTENSIONS | {
    "KHR_mesh_quantization",
    "KHR_lights_punctual",
}

# Required extensions with these prefixes only affect shading
GEOMETRY_NEUTRAL_PREFIXES = ("KHR_materials_", "KHR_texture_", "EXT_texture_")


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box given by its min and max corners."""

    min: tuple[float, float, float]
    max: tuple[float, float, float]

    @classmethod
    def from_points(cls, points: NDArray[np.float64]) -> BoundingBox:
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls(
            min=(float(lo[0]), float(lo[1]), float(lo[2])),
            max=(float(hi[0]), float(hi[1]), float(hi[2])),
        )

    @property
    def extents(self) -> tuple[float, float, float]:
        """Size along each axis (width, height, depth)."""
        return (
            self.max[0] - self.min[0],
            self.max[1] - self.min[1],
            self.max[2] - self.min[2],
        )

    @property
    def center(self) -> tuple[float, float, float]:
        return (
            (self.min[0] + self.max[0]) / 2,
            (self.min[1] + self.max[1]) / 2,
            (self.min[2] + self.max[2]) / 2,
        )

    def union(self, other: BoundingBox) -> BoundingBox:
        return BoundingBox(
            min=tuple(min(a, b) for a, b in zip(self.min, other.min)),  # type: ignore[arg-type]
            max=tuple(max(a, b) for a, b in zip(self.max, other.max)),  # type: ignore[arg-type]
        )


def _normalize(values: NDArray, dtype: np.dtype) -> NDArray[np.float64]:
    """Map normalized integer components to [0, 1] or [-1, 1]."""
    info = np.iinfo(dtype)
    out = values.astype(np.float64) / float(info.max)
    if info.min < 0:
        out = np.maximum(out, -1.0)
    return out


def _read_view(
    doc: SceneDocument,
    view_index: int,
    byte_offset: int,
    count: int,
    components: int,
    dtype: np.dtype,
) -> NDArray:
    """Read `count` elements of `components` values from a buffer view."""
    views = doc.gltf.get("bufferViews", [])
    if not 0 <= view_index < len(views):
        raise DocumentFormatError(f"Buffer view {view_index} does not exist")
    view = views[view_index]
    if "buffer" not in view or "byteLength" not in view:
        raise DocumentFormatError(f"Buffer view {view_index} lacks buffer or byteLength")

    data = doc.buffer_bytes(int(view["buffer"]))
    element_size = components * dtype.itemsize
    stride = int(view.get("byteStride", 0)) or element_size
    start = int(view.get("byteOffset", 0)) + byte_offset

    view_end = int(view.get("byteOffset", 0)) + int(view["byteLength"])
    needed = start + (count - 1) * stride + element_size if count else start
    if needed > view_end or view_end > len(data):
        raise DocumentFormatError(f"Accessor reads past the end of buffer view {view_index}")

    return np.ndarray(
        shape=(count, components),
        dtype=dtype,
        buffer=data,
        offset=start,
        strides=(stride, dtype.itemsize),
    )


def read_accessor(doc: SceneDocument, index: int) -> NDArray[np.float64]:
    """Decode an accessor into an (count, components) float64 array.

    Handles byte strides, normalized integers and sparse substitution.
    Accessors without a buffer view decode as zeros, as glTF specifies.

    Raises:
        DocumentFormatError: If the accessor is malformed
    """
    accessors = doc.gltf.get("accessors", [])
    if not 0 <= index < len(accessors):
        raise DocumentFormatError(f"Accessor {index} does not exist")
    acc: dict[str, Any] = accessors[index]

    try:
        dtype = COMPONENT_DTYPES[int(acc["componentType"])]
        components = TYPE_COMPONENTS[acc["type"]]
        count = int(acc["count"])
    except KeyError as e:
        raise DocumentFormatError(f"Accessor {index} is missing or has invalid {e}") from e

    if "bufferView" in acc:
        raw = _read_view(
            doc, int(acc["bufferView"]), int(acc.get("byteOffset", 0)), count, components, dtype
        )
    else:
        raw = np.zeros((count, components), dtype=dtype)

    if acc.get("normalized") and dtype.kind in "iu":
        values = _normalize(raw, dtype)
    else:
        values = raw.astype(np.float64)

    sparse = acc.get("sparse")
    if sparse:
        try:
            n = int(sparse["count"])
            idx_spec = sparse["indices"]
            val_spec = sparse["values"]
            idx_dtype = COMPONENT_DTYPES[int(idx_spec["componentType"])]
            idx_view = int(idx_spec["bufferView"])
            val_view = int(val_spec["bufferView"])
        except KeyError as e:
            raise DocumentFormatError(f"Sparse accessor {index} is missing {e}") from e
        indices = _read_view(
            doc, idx_view, int(idx_spec.get("byteOffset", 0)), n, 1, idx_dtype
        ).reshape(-1)
        sparse_raw = _read_view(
            doc, val_view, int(val_spec.get("byteOffset", 0)), n, components, dtype
        )
        if acc.get("normalized") and dtype.kind in "iu":
            sparse_values = _normalize(sparse_raw, dtype)
        else:
            sparse_values = sparse_raw.astype(np.float64)
        if n and int(indices.max()) >= count:
            raise DocumentFormatError(f"Sparse index out of range in accessor {index}")
        values = values.copy()
        values[indices.astype(np.int64)] = sparse_values

    return values


def local_matrix(node: Node) -> NDArray[np.float64]:
    """Return a node's local transform as a 4x4 matrix.

    Raises:
        GeometryError: If the node transform is degenerate
    """
    try:
        if node.matrix is not None:
            return Transform3D.matrix_from_gltf(node.matrix)
        return Transform3D(
            translation=tuple(node.translation or (0.0, 0.0, 0.0)),
            rotation=tuple(node.rotation or (0.0, 0.0, 0.0, 1.0)),
            scale=tuple(node.scale or (1.0, 1.0, 1.0)),
        ).to_matrix()
    except ValueError as e:
        raise GeometryError(f"Invalid transform on node {node.name!r}: {e}") from e


def iter_world_matrices(
    doc: SceneDocument,
    scene_index: int,
) -> Iterator[tuple[int, NDArray[np.float64]]]:
    """Walk a scene's node tree, yielding (handle, world matrix) pairs.

    Raises:
        DocumentFormatError: If the hierarchy contains a cycle
    """
    if not 0 <= scene_index < len(doc.scenes):
        raise DocumentFormatError(f"Scene {scene_index} does not exist")

    visited: set[int] = set()
    stack = [(root, np.eye(4)) for root in reversed(doc.scenes[scene_index].nodes)]
    while stack:
        handle, parent_matrix = stack.pop()
        if handle in visited:
            raise DocumentFormatError(f"Node {handle} is reachable twice (cycle or shared child)")
        visited.add(handle)

        node = doc.nodes[handle]
        world = parent_matrix @ local_matrix(node)
        yield handle, world
        stack.extend((child, world) for child in reversed(node.children))


def check_required_extensions(doc: SceneDocument) -> None:
    """Reject documents that require an extension we cannot measure through.

    Raises:
        GeometryError: If `extensionsRequired` names an unsupported extension
    """
    unsupported = [
        name for name in doc.gltf.get("extensionsRequired", [])
        if name not in SUPPORTED_REQUIRED_EXTENSIONS
        and not name.startswith(GEOMETRY_NEUTRAL_PREFIXES)
    ]
    if unsupported:
        raise GeometryError(
            f"Model requires unsupported glTF extension(s): {', '.join(unsupported)}"
        )


def _is_compressed(doc: SceneDocument, primitive: dict[str, Any], accessor: dict[str, Any]) -> bool:
    """Whether a POSITION accessor's values cannot be read from its buffer view."""
    if COMPRESSION_EXTENSIONS & set(primitive.get("extensions", {})):
        return True
    if "bufferView" not in accessor:
        # No data and no sparse substitution: the real values live elsewhere
        return "sparse" not in accessor
    views = doc.gltf.get("bufferViews", [])
    view_index = int(accessor["bufferView"])
    if not 0 <= view_index < len(views):
        return False
    return bool(COMPRESSION_EXTENSIONS & set(views[view_index].get("extensions", {})))


def accessor_corners(doc: SceneDocument, index: int) -> NDArray[np.float64]:
    """Return the 8 corners of the box declared by an accessor's min/max.

    Raises:
        GeometryError: If the accessor does not declare a 3D min/max
    """
    accessor = doc.gltf["accessors"][index]
    lo, hi = accessor.get("min"), accessor.get("max")
    if lo is None or hi is None or len(lo) != 3 or len(hi) != 3:
        raise GeometryError(
            f"POSITION accessor {index} has no readable data and no min/max to measure"
        )

    bounds = np.array([lo, hi], dtype=np.float64)
    dtype = COMPONENT_DTYPES.get(int(accessor.get("componentType", 5126)))
    # min/max hold the stored values, before normalization
    if accessor.get("normalized") and dtype is not None and dtype.kind in "iu":
        bounds = _normalize(bounds, dtype)

    return np.array([
        [bounds[i, 0], bounds[j, 1], bounds[k, 2]]
        for i in (0, 1) for j in (0, 1) for k in (0, 1)
    ])


def _node_world_matrix(doc: SceneDocument, handle: int, parents: dict[int, int]) -> NDArray[np.float64]:
    """World matrix of a node outside the traversed scene."""
    matrix = np.eye(4)
    seen: set[int] = set()
    current: int | None = handle
    while current is not None:
        if current in seen:
            raise DocumentFormatError(f"Node {current} is its own ancestor")
        seen.add(current)
        matrix = local_matrix(doc.nodes[current]) @ matrix
        current = parents.get(current)
    return matrix


def joint_matrices(
    doc: SceneDocument,
    skin_index: int,
    worlds: dict[int, NDArray[np.float64]],
) -> NDArray[np.float64]:
    """Per-joint skinning matrices (joint world @ inverse bind matrix).

    Args:
        doc: Scene document
        skin_index: Index into the document's skins
        worlds: World matrices of the traversed scene, by node handle

    Returns:
        (joints, 4, 4) array

    Raises:
        DocumentFormatError: If the skin is malformed
    """
    skins = doc.gltf.get("skins", [])
    if not 0 <= skin_index < len(skins):
        raise DocumentFormatError(f"Skin {skin_index} does not exist")
    skin = skins[skin_index]

    joints = [int(j) for j in skin.get("joints", [])]
    if not joints:
        raise DocumentFormatError(f"Skin {skin_index} has no joints")
    for joint in joints:
        if not 0 <= joint < len(doc.nodes):
            raise DocumentFormatError(f"Skin {skin_index} references missing joint {joint}")

    if "inverseBindMatrices" in skin:
        values = read_accessor(doc, int(skin["inverseBindMatrices"]))
        if values.shape != (len(joints), 16):
            raise DocumentFormatError(
                f"Skin {skin_index} needs {len(joints)} MAT4 inverse bind matrices"
            )
        # Column-major, like node matrices
        inverse_bind = values.reshape(-1, 4, 4).transpose(0, 2, 1)
    else:
        inverse_bind = np.broadcast_to(np.eye(4), (len(joints), 4, 4))

    parents: dict[int, int] | None = None
    matrices = []
    for joint, inverse in zip(joints, inverse_bind):
        world = worlds.get(joint)
        if world is None:
            if parents is None:
                parents = doc.parents()
            world = _node_world_matrix(doc, joint, parents)
        matrices.append(world @ inverse)
    return np.stack(matrices)


def skin_points(
    doc: SceneDocument,
    primitive: dict[str, Any],
    points: NDArray[np.float64],
    matrices: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Pose a skinned primitive's vertices with linear blend skinning.

    Raises:
        DocumentFormatError: If joint or weight attributes are missing or
            inconsistent
        GeometryError: If a vertex has no joint influence
    """
    attributes = primitive.get("attributes", {})
    homogeneous = np.hstack([points, np.ones((len(points), 1))])
    skinned = np.zeros((len(points), 4))
    total = np.zeros(len(points))

    set_index = 0
    while f"JOINTS_{set_index}" in attributes:
        weight_key = f"WEIGHTS_{set_index}"
        if weight_key not in attributes:
            raise DocumentFormatError(f"JOINTS_{set_index} has no matching {weight_key}")
        joints = read_accessor(doc, int(attributes[f"JOINTS_{set_index}"])).astype(np.int64)
        weights = read_accessor(doc, int(attributes[weight_key]))
        if joints.shape != (len(points), 4) or weights.shape != joints.shape:
            raise DocumentFormatError(f"Joint set {set_index} does not match the vertex count")
        if joints.size and (joints.min() < 0 or joints.max() >= len(matrices)):
            raise DocumentFormatError(f"Joint set {set_index} references a missing joint")

        for k in range(4):
            posed = np.einsum("nij,nj->ni", matrices[joints[:, k]], homogeneous)
            skinned += weights[:, k:k + 1] * posed
            total += weights[:, k]
        set_index += 1

    if set_index == 0:
        raise DocumentFormatError("Skinned primitive has no JOINTS_0 attribute")
    if np.any(total <= 0):
        raise GeometryError("Skinned primitive has vertices with zero total weight")
    return skinned[:, :3] / total[:, None]


def compute_scene_bounds(doc: SceneDocument, scene_index: int | None = None) -> BoundingBox:
    """Compute the bounding box of all geometry in a scene.

    Compressed primitives (Draco, meshopt) and POSITION accessors without
    data are measured from their declared min/max. Skinned meshes ignore
    their node's transform and are posed by their joints.

    Args:
        doc: Scene document
        scene_index: Scene to measure (defaults to the document's active scene)

    Returns:
        BoundingBox in the scene's root coordinate space

    Raises:
        GeometryError: If the document has no scenes, the scene contains no
            vertices, or the document requires an unsupported extension
    """
    check_required_extensions(doc)
    if not doc.scenes:
        raise GeometryError("Document contains no scenes")
    if scene_index is None:
        scene_index = doc.active_scene_index

    meshes = doc.gltf.get("meshes", [])
    accessors = doc.gltf.get("accessors", [])
    worlds = dict(iter_world_matrices(doc, scene_index))
    box: BoundingBox | None = None
    primitive_count = 0

    for handle, world in worlds.items():
        node = doc.nodes[handle]
        if node.mesh is None:
            continue
        if not 0 <= node.mesh < len(meshes):
            raise DocumentFormatError(f"Node {handle} references missing mesh {node.mesh}")

        skin = node.extra.get("skin")
        matrices = joint_matrices(doc, int(skin), worlds) if skin is not None else None

        for primitive in meshes[node.mesh].get("primitives", []):
            position = primitive.get("attributes", {}).get("POSITION")
            if position is None:
                continue
            position = int(position)
            if not 0 <= position < len(accessors):
                raise DocumentFormatError(f"Accessor {position} does not exist")

            if _is_compressed(doc, primitive, accessors[position]):
                if matrices is not None:
                    raise GeometryError(
                        f"Cannot measure compressed skinned primitive on node {handle}"
                    )
                points = apply_matrix(world, accessor_corners(doc, position))
            else:
                local = read_accessor(doc, position)
                if len(local) == 0:
                    continue
                if local.shape[1] != 3:
                    raise DocumentFormatError(f"POSITION accessor {position} is not VEC3")
                if matrices is not None:
                    points = skin_points(doc, primitive, local, matrices)
                else:
                    points = apply_matrix(world, local)

            prim_box = BoundingBox.from_points(points)
            box = prim_box if box is None else box.union(prim_box)
            primitive_count += 1

    if box is None:
        raise GeometryError("Scene contains no renderable geometry")
    if not all(np.isfinite(box.min)) or not all(np.isfinite(box.max)):
        raise GeometryError("Scene bounds are not finite")

    logger.debug(f"Scene {scene_index} bounds over {primitive_count} primitives: {box.extents}")
    return box
