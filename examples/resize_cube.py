#!/usr/bin/env python3
"""Example: Resize a simple cube for AR viewing.

This script demonstrates the basic workflow for ardisplay:
1. Export a model into the models directory
2. Resize it to an explicit size
3. Request the same size again and hit the cache

Run with: python examples/resize_cube.py
"""

from pathlib import Path
import tempfile

import trimesh

from ardisplay import ServiceConfig, ResizeService, compute_scene_bounds, read_document


def create_test_cube(size: float = 0.2) -> trimesh.Trimesh:
    """Create a simple cube mesh for testing."""
    return trimesh.creation.box(extents=[size, size, size])


def main():
    workdir = Path(tempfile.mkdtemp(prefix="ardisplay-"))
    config = ServiceConfig(models_dir=workdir / "models")
    config.models_dir.mkdir(parents=True)

    print("ardisplay - Resize Cube Example")
    print("=" * 40)

    print("\n1. Exporting test cube...")
    mesh = create_test_cube(0.2)
    mesh.export(str(config.models_dir / "cube.glb"))
    print(f"   Mesh: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")
    print(f"   Size: {mesh.extents}")

    service = ResizeService(config)

    print("\n2. Resizing to 0.5 x 1.0 x 0.25...")
    result = service.resize("cube", {"width": 0.5, "height": 1.0, "depth": 0.25})
    print(f"   Scale: {tuple(round(s, 4) for s in result.scale)}")
    print(f"   Location: {result.location_path}")

    variant = service.cache.path_for(result.model_id, result.key)
    bounds = compute_scene_bounds(read_document(variant))
    print(f"   Resized size: {tuple(round(e, 4) for e in bounds.extents)}")

    print("\n3. Requesting the same size again...")
    again = service.resize("cube", {"width": 0.5, "height": 1.0, "depth": 0.25})
    print(f"   Cache hit: {again.cache_hit}")

    print("\n" + "=" * 40)
    print(f"Done! Files are in {config.models_dir}")


if __name__ == "__main__":
    main()
