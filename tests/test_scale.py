"""Tests for size specification parsing and scale resolution."""

import math

import pytest

from ardisplay.core.errors import DivisionByZeroError, GeometryError, ValidationError
from ardisplay.gltf.bounds import BoundingBox
from ardisplay.resize.scale import (
    ExplicitSize,
    ScaleVector,
    UniformScale,
    parse_size_spec,
    requires_bounds,
    resolve_scale,
)


def _box(extents):
    return BoundingBox(min=(0.0, 0.0, 0.0), max=tuple(float(e) for e in extents))


class TestParseSizeSpec:
    """Test request size validation."""

    def test_explicit_mapping(self):
        spec = parse_size_spec({"width": 1, "height": 2.5, "depth": 3})
        assert isinstance(spec, ExplicitSize)
        assert spec.as_tuple() == (1.0, 2.5, 3.0)
        assert requires_bounds(spec)

    def test_uniform_mapping(self):
        spec = parse_size_spec({"value": 2})
        assert spec == UniformScale(value=2.0)
        assert not requires_bounds(spec)

    def test_bare_number_is_uniform(self):
        assert parse_size_spec(0.5) == UniformScale(value=0.5)

    def test_model_passes_through(self):
        spec = ExplicitSize(width=1, height=1, depth=1)
        assert parse_size_spec(spec) is spec

    @pytest.mark.parametrize("raw", [
        {"width": 1, "height": 1},
        {"width": 1, "height": 1, "depth": 0},
        {"width": -1, "height": 1, "depth": 1},
        {"width": "1", "height": 1, "depth": 1},
        {"width": True, "height": 1, "depth": 1},
        {"width": math.inf, "height": 1, "depth": 1},
        {"width": math.nan, "height": 1, "depth": 1},
        {"width": 1, "height": 1, "depth": 1, "color": "red"},
        {"value": 0},
        {"value": None},
        {"value": 1, "width": 1},
        {},
        "big",
        [1, 2, 3],
        None,
        True,
    ])
    def test_rejected(self, raw):
        """Test malformed sizes raise ValidationError, never a default."""
        with pytest.raises(ValidationError):
            parse_size_spec(raw)

    def test_error_is_client_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_size_spec({"width": 0, "height": 1, "depth": 1})
        assert exc_info.value.status_code == 400
        assert "width" in exc_info.value.message


class TestResolveScale:
    """Test scale vector resolution."""

    def test_uniform_ignores_bounds(self):
        """Test uniform scale is exactly the requested value on every axis."""
        scale = resolve_scale(UniformScale(value=0.1), _box((7.0, 0.0, 3.0)))
        assert scale == ScaleVector(0.1, 0.1, 0.1)
        assert scale.is_uniform

    def test_uniform_without_bounds(self):
        assert resolve_scale(UniformScale(value=3.0)) == ScaleVector(3.0, 3.0, 3.0)

    def test_explicit_per_axis(self):
        spec = ExplicitSize(width=2.0, height=4.0, depth=6.0)
        scale = resolve_scale(spec, _box((1.0, 2.0, 3.0)))
        assert scale == ScaleVector(2.0, 2.0, 2.0)

    def test_explicit_non_uniform(self):
        spec = ExplicitSize(width=1.0, height=1.0, depth=1.0)
        scale = resolve_scale(spec, _box((2.0, 4.0, 0.5)))
        assert scale == pytest.approx((0.5, 0.25, 2.0))
        assert not scale.is_uniform

    def test_zero_extent_raises(self):
        spec = ExplicitSize(width=1.0, height=1.0, depth=1.0)
        with pytest.raises(DivisionByZeroError) as exc_info:
            resolve_scale(spec, _box((1.0, 0.0, 1.0)))
        assert "height" in exc_info.value.message

    def test_explicit_without_bounds_raises(self):
        with pytest.raises(GeometryError):
            resolve_scale(ExplicitSize(width=1.0, height=1.0, depth=1.0))

    def test_overflow_raises(self):
        spec = ExplicitSize(width=1e308, height=1.0, depth=1.0)
        with pytest.raises(GeometryError):
            resolve_scale(spec, _box((1e-300, 1.0, 1.0)))

    def test_scale_vector_list(self):
        assert ScaleVector(1, 2, 3).as_list() == [1.0, 2.0, 3.0]
