"""Tests for ModelInspector."""

import numpy as np
import pytest
import trimesh

from ardisplay.mesh.inspect import ModelInspector


@pytest.fixture
def cube_path(tmp_path):
    path = tmp_path / "cube.glb"
    trimesh.creation.box(extents=[1.0, 2.0, 3.0]).export(str(path))
    return path


class TestModelInspector:
    """Test model statistics."""

    def test_stats(self, cube_path):
        stats = ModelInspector(cube_path).stats()
        assert stats["num_meshes"] == 1
        assert stats["num_faces"] == 12
        np.testing.assert_allclose(stats["size"], [1.0, 2.0, 3.0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ModelInspector(tmp_path / "missing.glb")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "cube.stl"
        trimesh.creation.box().export(str(path))
        with pytest.raises(ValueError):
            ModelInspector(path)
