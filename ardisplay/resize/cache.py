"""Content-addressed cache of resized model variants.

A variant is identified by a digest of the model identifier and the
canonical serialization of its scale vector. Variants are written once,
atomically, and then reused by every request with the same parameters.
They are never invalidated automatically; use `purge` when a source model
changes.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Sequence

from ..core.errors import ModelIOError
from ..gltf.document import SceneDocument, encode_document

if TYPE_CHECKING:
    from ..core.config import ServiceConfig

logger = logging.getLogger(__name__)

# Significant digits that round-trip every double
SCALE_DIGITS = 17


def canonical_scale(scale: Sequence[float]) -> str:
    """Serialize a scale vector in fixed order with full precision.

    Distinct vectors always serialize differently, down to the last bit.
    """
    return "[" + ",".join(format(float(v), f".{SCALE_DIGITS}g") for v in scale) + "]"


def derive_key(model_id: str, scale: Sequence[float], digest_length: int = 32) -> str:
    """Derive the cache key for a (model, scale) pair.

    Args:
        model_id: Normalized model identifier
        scale: Scale vector (x, y, z)
        digest_length: Number of hex characters to keep

    Returns:
        Hex digest string
    """
    hasher = hashlib.sha256()
    hasher.update(model_id.encode("utf-8"))
    hasher.update(canonical_scale(scale).encode("ascii"))
    return hasher.hexdigest()[:digest_length]


@dataclass
class CachedVariant:
    """A resized variant found on disk."""

    model_stem: str
    key: str
    path: Path
    size_bytes: int
    modified_at: str


class ResizedVariantCache:
    """Stores resized variants under a single directory.

    Variant files are named `<model stem>_<key><model suffix>` and are
    published under `location_prefix`.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        location_prefix: str = "/models/resized",
        digest_length: int = 32,
        lock_per_key: bool = True,
    ):
        self.cache_dir = Path(cache_dir)
        self.location_prefix = location_prefix.rstrip("/")
        self.digest_length = digest_length
        self.lock_per_key = lock_per_key

        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: ServiceConfig) -> ResizedVariantCache:
        return cls(
            cache_dir=config.resized_dir,
            location_prefix=f"{config.url_prefix}/{config.resized_subdir}",
            digest_length=config.digest_length,
            lock_per_key=config.lock_per_key,
        )

    def derive_key(self, model_id: str, scale: Sequence[float]) -> str:
        return derive_key(model_id, scale, self.digest_length)

    def variant_name(self, model_id: str, key: str) -> str:
        model = Path(model_id)
        return f"{model.stem}_{key}{model.suffix}"

    def path_for(self, model_id: str, key: str) -> Path:
        return self.cache_dir / self.variant_name(model_id, key)

    def location_for(self, model_id: str, key: str) -> str:
        return f"{self.location_prefix}/{self.variant_name(model_id, key)}"

    def lookup(self, model_id: str, key: str) -> str | None:
        """Return the variant's location if it has already been written."""
        if self.path_for(model_id, key).is_file():
            return self.location_for(model_id, key)
        return None

    def store(self, model_id: str, key: str, document: SceneDocument) -> str:
        """Write a transformed document as the variant for `key`.

        The document is written to a temporary file in the cache directory
        and renamed into place, so readers never see a partial file.

        Returns:
            Location of the written variant

        Raises:
            ModelIOError: If the file cannot be written
        """
        path = self.path_for(model_id, key)
        payload = encode_document(document, path.suffix, path.parent)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            temp_path = Path(temp_name)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                # Atomic rename
                temp_path.replace(path)
            except BaseException:
                temp_path.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ModelIOError(f"Cannot write resized model {path.name}: {e}") from e

        logger.info(f"Stored resized variant: {path.name} ({len(payload):,} bytes)")
        return self.location_for(model_id, key)

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold an in-process mutex for `key` (no-op if disabled)."""
        if not self.lock_per_key:
            yield
            return

        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def _parse_name(self, path: Path) -> tuple[str, str] | None:
        if path.name.startswith(".") or not path.is_file():
            return None
        stem, sep, key = path.stem.rpartition("_")
        if not sep or len(key) != self.digest_length:
            return None
        if any(c not in "0123456789abcdef" for c in key):
            return None
        return stem, key

    def list_variants(self, model_id: str | None = None) -> list[CachedVariant]:
        """List cached variants, optionally only those of one model.

        Returns:
            Variants sorted by modification time, most recent first
        """
        if not self.cache_dir.exists():
            return []

        model = Path(model_id) if model_id else None
        variants = []
        for path in self.cache_dir.iterdir():
            parsed = self._parse_name(path)
            if parsed is None:
                continue
            stem, key = parsed
            if model is not None and (stem != model.stem or path.suffix != model.suffix):
                continue
            stat = path.stat()
            variants.append(CachedVariant(
                model_stem=stem,
                key=key,
                path=path,
                size_bytes=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime).isoformat(),
            ))

        variants.sort(key=lambda v: v.modified_at, reverse=True)
        return variants

    def purge(self, model_id: str | None = None) -> int:
        """Delete cached variants of one model, or all of them.

        Returns:
            Number of files deleted
        """
        deleted = 0
        for variant in self.list_variants(model_id):
            variant.path.unlink(missing_ok=True)
            logger.info(f"Deleted resized variant: {variant.path.name}")
            deleted += 1
        return deleted
