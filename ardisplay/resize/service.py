"""Resize orchestration.

The ResizeService validates a request, consults the variant cache, and on a
miss loads the source model, computes its bounds (explicit sizes only),
resolves the scale vector, wraps every scene in a scaled node and persists
the result. Each call is an independent unit of work: the only shared state
is the on-disk source models and cache directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..core.config import ServiceConfig
from ..core.errors import InternalError, ModelIOError, NotFoundError, ResizeError, ValidationError
from ..gltf.bounds import BoundingBox, compute_scene_bounds
from ..gltf.document import SceneDocument, read_document
from .cache import ResizedVariantCache
from .injector import wrap_scenes
from .scale import ScaleVector, SizeSpec, parse_size_spec, requires_bounds, resolve_scale

logger = logging.getLogger(__name__)

MAX_MODEL_ID_LENGTH = 255


class ResizeState(str, Enum):
    """Stages of a resize request."""

    VALIDATING = "validating"
    CACHE_CHECK = "cache_check"
    LOADING = "loading"
    COMPUTING_BOUNDS = "computing_bounds"
    RESOLVING = "resolving"
    TRANSFORMING = "transforming"
    PERSISTING = "persisting"
    DONE = "done"
    ERROR = "error"


@dataclass
class ResizeResult:
    """Outcome of a successful resize request.

    Attributes:
        model_id: Normalized model identifier
        location_path: Public path of the resized variant
        scale: Applied scale vector
        key: Cache key of the variant
        cache_hit: True if the variant already existed
        bounds: Original bounds (explicit-size requests only)
        states: Stages the request went through, in order
    """

    model_id: str
    location_path: str
    scale: ScaleVector
    key: str
    cache_hit: bool
    bounds: BoundingBox | None = None
    states: list[ResizeState] = field(default_factory=list)


class _Run:
    """State tracker for one resize call."""

    def __init__(self, model_id: Any):
        self.model_id = model_id
        self.state = ResizeState.VALIDATING
        self.states = [ResizeState.VALIDATING]

    def enter(self, state: ResizeState) -> None:
        logger.debug(f"[{self.model_id}] {self.state.value} -> {state.value}")
        self.state = state
        self.states.append(state)


class ResizeService:
    """Resizes stored models and caches the results.

    Args:
        config: Storage and cache configuration
        cache: Variant cache (built from config if omitted)
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        cache: ResizedVariantCache | None = None,
    ):
        self.config = config or ServiceConfig()
        self.cache = cache or ResizedVariantCache.from_config(self.config)

    def validate_model_id(self, model_id: Any) -> str:
        """Check a model identifier and normalize its extension.

        Identifiers whose suffix is not a supported scene format get the
        default extension appended (`chair` -> `chair.glb`).

        Raises:
            ValidationError: If the identifier is missing or unsafe
        """
        if not isinstance(model_id, str) or not model_id.strip():
            raise ValidationError("modelId is required")
        if len(model_id) > MAX_MODEL_ID_LENGTH:
            raise ValidationError(f"modelId is longer than {MAX_MODEL_ID_LENGTH} characters")
        if "/" in model_id or "\\" in model_id or ".." in model_id:
            raise ValidationError("Invalid modelId: path separators and '..' are not allowed")
        if model_id.startswith("."):
            raise ValidationError("Invalid modelId: must not start with '.'")
        if any(ord(c) < 32 or ord(c) == 127 for c in model_id):
            raise ValidationError("Invalid modelId: control characters are not allowed")

        if Path(model_id).suffix.lower() not in self.config.allowed_extensions:
            model_id = f"{model_id}{self.config.default_extension}"
        return model_id

    def source_path(self, model_id: str) -> Path:
        """Path of a source model (identifier must already be validated)."""
        return self.config.models_dir / model_id

    def model_exists(self, model_id: Any) -> bool:
        """Check whether a source model is stored.

        Raises:
            ValidationError: If the identifier is unsafe
        """
        return self.source_path(self.validate_model_id(model_id)).is_file()

    def resize(self, model_id: Any, size: Any) -> ResizeResult:
        """Produce (or reuse) a resized variant of a model.

        Args:
            model_id: Model identifier, e.g. "chair" or "chair.glb"
            size: `{"width", "height", "depth"}`, `{"value"}`, a number, or
                a validated ExplicitSize / UniformScale

        Returns:
            ResizeResult with the variant's location

        Raises:
            ResizeError: Typed failure; `error.state` names the failing stage
        """
        run = _Run(model_id)
        try:
            return self._resize(run, model_id, size)
        except ResizeError as e:
            self._fail(run, model_id, e)
            raise
        except OSError as e:
            error = ModelIOError(str(e))
            self._fail(run, model_id, error)
            raise error from e
        except Exception as e:
            logger.exception(f"Unexpected failure resizing {model_id!r}")
            error = InternalError(f"Unexpected failure while {run.state.value}: {e}")
            self._fail(run, model_id, error)
            raise error from e

    @staticmethod
    def _fail(run: _Run, model_id: Any, error: ResizeError) -> None:
        """Tag `error` with the failing stage and move the run to ERROR."""
        failed = run.state.value
        if error.state is None:
            error.state = failed
        run.enter(ResizeState.ERROR)
        logger.warning(f"Resize of {model_id!r} failed while {failed}: {error.kind}: {error}")

    def _resize(self, run: _Run, raw_model_id: Any, size: Any) -> ResizeResult:
        model_id = self.validate_model_id(raw_model_id)
        run.model_id = model_id
        spec = parse_size_spec(size)
        source = self.source_path(model_id)
        if not source.is_file():
            raise NotFoundError(f"Model not found: {model_id}")

        document: SceneDocument | None = None
        bounds: BoundingBox | None = None

        if requires_bounds(spec):
            run.enter(ResizeState.LOADING)
            document = self._load(source, model_id)
            run.enter(ResizeState.COMPUTING_BOUNDS)
            bounds = compute_scene_bounds(document)
            logger.debug(f"[{model_id}] original extents: {bounds.extents}")

        run.enter(ResizeState.RESOLVING)
        scale = resolve_scale(spec, bounds)

        run.enter(ResizeState.CACHE_CHECK)
        key = self.cache.derive_key(model_id, scale)
        location = self.cache.lookup(model_id, key)
        if location is not None:
            return self._finish(run, model_id, location, scale, key, True, bounds)

        with self.cache.lock(key):
            # Another request may have written it while we waited
            location = self.cache.lookup(model_id, key)
            if location is not None:
                return self._finish(run, model_id, location, scale, key, True, bounds)

            if document is None:
                run.enter(ResizeState.LOADING)
                document = self._load(source, model_id)

            run.enter(ResizeState.TRANSFORMING)
            self._transform(document, scale)

            run.enter(ResizeState.PERSISTING)
            location = self.cache.store(model_id, key, document)

        return self._finish(run, model_id, location, scale, key, False, bounds)

    def _load(self, source: Path, model_id: str) -> SceneDocument:
        # The source may have been removed since validation
        if not source.is_file():
            raise NotFoundError(f"Model not found: {model_id}")
        return read_document(source)

    def _transform(self, document: SceneDocument, scale: ScaleVector) -> None:
        wrap_scenes(document, scale, name=self.config.wrapper_node_name)

    def _finish(
        self,
        run: _Run,
        model_id: str,
        location: str,
        scale: ScaleVector,
        key: str,
        cache_hit: bool,
        bounds: BoundingBox | None,
    ) -> ResizeResult:
        run.enter(ResizeState.DONE)
        if cache_hit:
            logger.info(f"Cache hit for {model_id} at scale {tuple(scale)}: {location}")
        else:
            logger.info(f"Resized {model_id} to scale {tuple(scale)}: {location}")
        return ResizeResult(
            model_id=model_id,
            location_path=location,
            scale=scale,
            key=key,
            cache_hit=cache_hit,
            bounds=bounds,
            states=list(run.states),
        )


def resize_model(config: ServiceConfig, model_id: str, size: SizeSpec | Any) -> ResizeResult:
    """Convenience function to run a single resize request."""
    return ResizeService(config).resize(model_id, size)
