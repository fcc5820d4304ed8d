"""Desired size specifications and scale vector resolution.

A request asks either for an explicit bounding-box size (width, height,
depth in document units) or for a uniform scale factor. Both normalize to a
per-axis ScaleVector.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Mapping, NamedTuple, Union

from pydantic import BaseModel, BeforeValidator, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import DivisionByZeroError, GeometryError, ValidationError
from ..gltf.bounds import BoundingBox

AXES = ("width", "height", "depth")


def _require_number(value: Any) -> Any:
    # bool is an int subclass; JSON true/false must not pass as 1/0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    return value


Dimension = Annotated[
    float,
    BeforeValidator(_require_number),
    Field(gt=0, allow_inf_nan=False),
]


class ExplicitSize(BaseModel):
    """Target bounding-box size in document units."""

    width: Dimension
    height: Dimension
    depth: Dimension

    model_config = {"frozen": True, "extra": "forbid"}

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.width, self.height, self.depth)


class UniformScale(BaseModel):
    """Uniform multiplier applied equally to all three axes."""

    value: Dimension

    model_config = {"frozen": True, "extra": "forbid"}


SizeSpec = Union[ExplicitSize, UniformScale]


class ScaleVector(NamedTuple):
    """Per-axis scale factors applied by the wrapper node."""

    x: float
    y: float
    z: float

    @property
    def is_uniform(self) -> bool:
        return self.x == self.y == self.z

    def as_list(self) -> list[float]:
        return [float(self.x), float(self.y), float(self.z)]


def _format_errors(err: PydanticValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "size"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def parse_size_spec(raw: Any) -> SizeSpec:
    """Validate a raw size specification.

    Accepts `{"width", "height", "depth"}` for an explicit size,
    `{"value"}` for a uniform scale, a bare positive number for a uniform
    scale, or an already-validated model.

    Raises:
        ValidationError: If the input matches neither form, both forms, or
            has missing, non-numeric, non-positive or non-finite components
    """
    if isinstance(raw, (ExplicitSize, UniformScale)):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        raw = {"value": raw}
    if not isinstance(raw, Mapping):
        raise ValidationError(
            "Size must be an object with width, height and depth, or with a uniform value"
        )

    has_explicit = any(axis in raw for axis in AXES)
    has_uniform = "value" in raw
    if has_explicit and has_uniform:
        raise ValidationError("Size must give either width/height/depth or value, not both")
    if not has_explicit and not has_uniform:
        raise ValidationError("Size must give width, height and depth, or a uniform value")

    model = ExplicitSize if has_explicit else UniformScale
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid size: {_format_errors(e)}") from e


def requires_bounds(spec: SizeSpec) -> bool:
    """Whether resolving `spec` needs the model's bounding box."""
    return isinstance(spec, ExplicitSize)


def _check_positive(name: str, value: float) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be a positive finite number, got {value!r}")


def resolve_scale(spec: SizeSpec, bbox: BoundingBox | None = None) -> ScaleVector:
    """Resolve a size specification into a scale vector.

    Explicit sizes divide the desired extent by the original extent on each
    axis. Uniform scales ignore the bounding box entirely.

    Args:
        spec: Validated size specification
        bbox: Original bounding box (required for explicit sizes)

    Returns:
        ScaleVector of positive finite factors

    Raises:
        ValidationError: If a component is non-positive or non-finite
        GeometryError: If an explicit size is given without bounds, or the
            quotient overflows
        DivisionByZeroError: If an original extent is zero
    """
    if isinstance(spec, UniformScale):
        _check_positive("value", spec.value)
        s = float(spec.value)
        return ScaleVector(s, s, s)

    desired = spec.as_tuple()
    for axis, value in zip(AXES, desired):
        _check_positive(axis, value)

    if bbox is None:
        raise GeometryError("An explicit size requires the model's bounding box")

    factors = []
    for axis, target, extent in zip(AXES, desired, bbox.extents):
        if not extent > 0:
            raise DivisionByZeroError(f"Original {axis} of the model is zero; cannot scale to {target}")
        factor = target / extent
        if not math.isfinite(factor) or factor <= 0:
            raise GeometryError(f"Scale factor for {axis} is not representable ({target} / {extent})")
        factors.append(factor)

    return ScaleVector(*factors)
