"""Model resizing: scale resolution, wrapper injection, caching."""

from .cache import CachedVariant, ResizedVariantCache, canonical_scale, derive_key
from .injector import wrap_scenes
from .scale import (
    ExplicitSize,
    ScaleVector,
    SizeSpec,
    UniformScale,
    parse_size_spec,
    resolve_scale,
)
from .service import ResizeResult, ResizeService, ResizeState, resize_model

__all__ = [
    "CachedVariant",
    "ResizedVariantCache",
    "canonical_scale",
    "derive_key",
    "wrap_scenes",
    "ExplicitSize",
    "ScaleVector",
    "SizeSpec",
    "UniformScale",
    "parse_size_spec",
    "resolve_scale",
    "ResizeResult",
    "ResizeService",
    "ResizeState",
    "resize_model",
]
