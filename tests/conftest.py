"""Shared fixtures: small glTF documents built in memory."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np
import pytest

from ardisplay.core.config import ServiceConfig
from ardisplay.gltf.document import SceneDocument, write_document

# Corner i has coordinates (x, y, z) = bits (i >> 2, i >> 1, i) of i
BOX_FACES = np.array([
    [0, 1, 3], [0, 3, 2],
    [4, 6, 7], [4, 7, 5],
    [0, 4, 5], [0, 5, 1],
    [2, 3, 7], [2, 7, 6],
    [0, 2, 6], [0, 6, 4],
    [1, 5, 7], [1, 7, 3],
], dtype="<u4")


def box_vertices(
    extents: Sequence[float] = (1.0, 1.0, 1.0),
    center: Sequence[float] = (0.0, 0.0, 0.0),
) -> np.ndarray:
    """Return the 8 corners of an axis-aligned box as float32."""
    corners = np.array(
        [[x, y, z] for x in (-0.5, 0.5) for y in (-0.5, 0.5) for z in (-0.5, 0.5)],
        dtype=np.float64,
    )
    return (corners * np.asarray(extents) + np.asarray(center)).astype("<f4")


def build_document(
    meshes: Sequence[np.ndarray],
    nodes: list[dict],
    scenes: list[list[int]],
    default_scene: int | None = 0,
) -> SceneDocument:
    """Build a GLB-backed document from vertex arrays.

    Each vertex array becomes one mesh with a single triangle primitive.
    8-vertex arrays get box indices.
    """
    blob = bytearray()
    buffer_views: list[dict] = []
    accessors: list[dict] = []
    gltf_meshes: list[dict] = []

    for verts in meshes:
        verts = np.asarray(verts, dtype="<f4")
        data = verts.tobytes()
        buffer_views.append({
            "buffer": 0,
            "byteOffset": len(blob),
            "byteLength": len(data),
            "target": 34962,
        })
        blob += data
        accessors.append({
            "bufferView": len(buffer_views) - 1,
            "componentType": 5126,
            "count": len(verts),
            "type": "VEC3",
            "min": verts.min(axis=0).tolist(),
            "max": verts.max(axis=0).tolist(),
        })
        primitive = {"attributes": {"POSITION": len(accessors) - 1}, "mode": 4}

        if len(verts) == 8:
            idx = BOX_FACES.ravel().tobytes()
            buffer_views.append({
                "buffer": 0,
                "byteOffset": len(blob),
                "byteLength": len(idx),
                "target": 34963,
            })
            blob += idx
            accessors.append({
                "bufferView": len(buffer_views) - 1,
                "componentType": 5125,
                "count": BOX_FACES.size,
                "type": "SCALAR",
            })
            primitive["indices"] = len(accessors) - 1

        gltf_meshes.append({"primitives": [primitive]})

    gltf: dict = {
        "asset": {"version": "2.0", "generator": "ardisplay tests"},
        "buffers": [{"byteLength": len(blob)}],
        "bufferViews": buffer_views,
        "accessors": accessors,
        "meshes": gltf_meshes,
        "nodes": nodes,
        "scenes": [{"nodes": roots} for roots in scenes],
    }
    if default_scene is not None:
        gltf["scene"] = default_scene
    return SceneDocument.from_gltf_json(gltf, bin_chunk=bytes(blob))


def box_document(
    extents: Sequence[float] = (1.0, 1.0, 1.0),
    center: Sequence[float] = (0.0, 0.0, 0.0),
    **node_fields,
) -> SceneDocument:
    """A single-scene document holding one box mesh node."""
    node = {"name": "box", "mesh": 0, **node_fields}
    return build_document([box_vertices(extents, center)], [node], [[0]])


def write_box_model(
    models_dir: Path,
    name: str,
    extents: Sequence[float] = (1.0, 1.0, 1.0),
    **node_fields,
) -> Path:
    """Write a box model into `models_dir` and return its path."""
    path = models_dir / name
    write_document(path, box_document(extents, **node_fields))
    return path


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    path = tmp_path / "models"
    path.mkdir()
    return path


@pytest.fixture
def service_config(models_dir: Path) -> ServiceConfig:
    return ServiceConfig(models_dir=models_dir)
