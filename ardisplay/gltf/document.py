"""glTF 2.0 scene document reader and writer.

A SceneDocument keeps the glTF JSON verbatim except for the node table and
the scene list, which are parsed into an arena: nodes live in one list and
refer to each other by integer handle, so re-parenting a node is an index
update. Binary buffers are loaded lazily since only bounds computation needs
vertex data.

Supports binary GLB containers and JSON .gltf files with embedded (data URI)
or external buffers.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from ..core.errors import DocumentFormatError, ModelIOError, NotFoundError

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67  # b"glTF"
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

_HEADER = struct.Struct("<III")
_CHUNK_HEADER = struct.Struct("<II")

# Node keys parsed into typed fields; anything else is carried in `extra`
_NODE_FIELDS = ("name", "children", "mesh", "matrix", "translation", "rotation", "scale")


@dataclass
class Node:
    """A scene graph node.

    Transform fields are None when the source document omitted them, so a
    round trip writes back exactly what was read.
    """

    name: str | None = None
    children: list[int] = field(default_factory=list)
    mesh: int | None = None
    matrix: list[float] | None = None
    translation: list[float] | None = None
    rotation: list[float] | None = None
    scale: list[float] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Node:
        return cls(
            name=data.get("name"),
            children=[int(c) for c in data.get("children", [])],
            mesh=data.get("mesh"),
            matrix=data.get("matrix"),
            translation=data.get("translation"),
            rotation=data.get("rotation"),
            scale=data.get("scale"),
            extra={k: v for k, v in data.items() if k not in _NODE_FIELDS},
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name is not None:
            out["name"] = self.name
        if self.children:
            out["children"] = list(self.children)
        if self.mesh is not None:
            out["mesh"] = self.mesh
        for key in ("matrix", "translation", "rotation", "scale"):
            value = getattr(self, key)
            if value is not None:
                out[key] = [float(v) for v in value]
        out.update(self.extra)
        return out


@dataclass
class Scene:
    """A scene: an ordered list of root node handles."""

    name: str | None = None
    nodes: list[int] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Scene:
        return cls(
            name=data.get("name"),
            nodes=[int(n) for n in data.get("nodes", [])],
            extra={k: v for k, v in data.items() if k not in ("name", "nodes")},
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name is not None:
            out["name"] = self.name
        if self.nodes:
            out["nodes"] = list(self.nodes)
        out.update(self.extra)
        return out


@dataclass
class SceneDocument:
    """In-memory glTF document with an arena node table.

    Attributes:
        gltf: glTF JSON without "nodes", "scenes" and "scene"
        nodes: Node arena, indexed by handle
        scenes: Scenes referencing root node handles
        default_scene: Index of the default scene, if declared
        bin_chunk: GLB binary chunk (backs the URI-less first buffer)
        base_dir: Directory the document was read from
    """

    gltf: dict[str, Any]
    nodes: list[Node] = field(default_factory=list)
    scenes: list[Scene] = field(default_factory=list)
    default_scene: int | None = None
    bin_chunk: bytes | None = None
    base_dir: Path | None = None
    _buffer_cache: dict[int, bytes] = field(default_factory=dict, repr=False)

    @classmethod
    def from_gltf_json(
        cls,
        data: dict[str, Any],
        bin_chunk: bytes | None = None,
        base_dir: Path | None = None,
    ) -> SceneDocument:
        """Build a document from parsed glTF JSON.

        Raises:
            DocumentFormatError: If the JSON is not a glTF 2.0 document
        """
        if not isinstance(data, dict):
            raise DocumentFormatError("glTF JSON root must be an object")
        version = str(data.get("asset", {}).get("version", ""))
        if not version.startswith("2."):
            raise DocumentFormatError(f"Unsupported glTF version: {version or 'missing'}")

        gltf = {k: v for k, v in data.items() if k not in ("nodes", "scenes", "scene")}
        try:
            nodes = [Node.from_json(n) for n in data.get("nodes", [])]
            scenes = [Scene.from_json(s) for s in data.get("scenes", [])]
        except (TypeError, ValueError, AttributeError) as e:
            raise DocumentFormatError(f"Malformed node or scene entry: {e}") from e

        default_scene = data.get("scene")
        doc = cls(
            gltf=gltf,
            nodes=nodes,
            scenes=scenes,
            default_scene=int(default_scene) if default_scene is not None else None,
            bin_chunk=bin_chunk,
            base_dir=base_dir,
        )
        doc.check_references()
        return doc

    def check_references(self) -> None:
        """Verify that every node handle points into the arena."""
        count = len(self.nodes)
        for i, node in enumerate(self.nodes):
            for child in node.children:
                if not 0 <= child < count:
                    raise DocumentFormatError(f"Node {i} references missing child {child}")
        for i, scene in enumerate(self.scenes):
            for root in scene.nodes:
                if not 0 <= root < count:
                    raise DocumentFormatError(f"Scene {i} references missing node {root}")
        if self.default_scene is not None and not 0 <= self.default_scene < len(self.scenes):
            raise DocumentFormatError(f"Default scene {self.default_scene} does not exist")

    def to_gltf_json(self) -> dict[str, Any]:
        """Assemble the full glTF JSON for serialization."""
        out = dict(self.gltf)
        if self.nodes:
            out["nodes"] = [n.to_json() for n in self.nodes]
        if self.scenes:
            out["scenes"] = [s.to_json() for s in self.scenes]
        if self.default_scene is not None:
            out["scene"] = self.default_scene
        return out

    def add_node(self, node: Node) -> int:
        """Append a node to the arena and return its handle."""
        self.nodes.append(node)
        return len(self.nodes) - 1

    def parents(self) -> dict[int, int]:
        """Map each child handle to its parent handle."""
        return {
            child: index
            for index, node in enumerate(self.nodes)
            for child in node.children
        }

    @property
    def active_scene_index(self) -> int:
        """Default scene, falling back to the first scene."""
        if not self.scenes:
            raise DocumentFormatError("Document contains no scenes")
        return self.default_scene if self.default_scene is not None else 0

    def buffer_bytes(self, index: int) -> bytes:
        """Return the bytes of buffer `index`, loading them on first use.

        Raises:
            DocumentFormatError: If the buffer is missing or cannot be decoded
            ModelIOError: If an external buffer file cannot be read
        """
        if index in self._buffer_cache:
            return self._buffer_cache[index]

        buffers = self.gltf.get("buffers", [])
        if not 0 <= index < len(buffers):
            raise DocumentFormatError(f"Buffer {index} does not exist")
        buffer = buffers[index]
        uri = buffer.get("uri")

        if uri is None:
            if index != 0 or self.bin_chunk is None:
                raise DocumentFormatError(f"Buffer {index} has no URI and no GLB binary chunk")
            data = self.bin_chunk
        elif uri.startswith("data:"):
            data = _decode_data_uri(uri)
        else:
            if _has_scheme(uri):
                raise DocumentFormatError(f"Remote buffer URIs are not supported: {uri}")
            path = (self.base_dir or Path.cwd()) / unquote(uri)
            try:
                data = path.read_bytes()
            except OSError as e:
                raise ModelIOError(f"Cannot read buffer {path}: {e}") from e

        byte_length = int(buffer.get("byteLength", len(data)))
        if len(data) < byte_length:
            raise DocumentFormatError(
                f"Buffer {index} holds {len(data)} bytes, expected {byte_length}"
            )
        self._buffer_cache[index] = data
        return data


def _has_scheme(uri: str) -> bool:
    return "://" in uri or uri.startswith("data:")


def _decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not header.endswith(";base64"):
        raise DocumentFormatError("Only base64 data URIs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise DocumentFormatError(f"Invalid base64 data URI: {e}") from e


def parse_glb(data: bytes, base_dir: Path | None = None) -> SceneDocument:
    """Parse a binary glTF container.

    Args:
        data: Complete GLB file contents
        base_dir: Directory for resolving external URIs

    Returns:
        Parsed SceneDocument

    Raises:
        DocumentFormatError: If the container is malformed
    """
    if len(data) < _HEADER.size:
        raise DocumentFormatError("File too short for a GLB header")

    magic, version, length = _HEADER.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise DocumentFormatError("Not a GLB file (bad magic)")
    if version != GLB_VERSION:
        raise DocumentFormatError(f"Unsupported GLB version: {version}")
    if length > len(data):
        raise DocumentFormatError(f"GLB header declares {length} bytes, file has {len(data)}")

    offset = _HEADER.size
    json_chunk: bytes | None = None
    bin_chunk: bytes | None = None

    while offset + _CHUNK_HEADER.size <= length:
        chunk_length, chunk_type = _CHUNK_HEADER.unpack_from(data, offset)
        offset += _CHUNK_HEADER.size
        if offset + chunk_length > length:
            raise DocumentFormatError("GLB chunk extends past end of file")
        chunk = data[offset:offset + chunk_length]
        offset += chunk_length

        if chunk_type == CHUNK_JSON and json_chunk is None:
            json_chunk = chunk
        elif chunk_type == CHUNK_BIN and bin_chunk is None:
            bin_chunk = chunk
        # Unknown chunk types must be ignored

    if json_chunk is None:
        raise DocumentFormatError("GLB file has no JSON chunk")

    try:
        gltf = json.loads(json_chunk.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DocumentFormatError(f"Invalid GLB JSON chunk: {e}") from e

    return SceneDocument.from_gltf_json(gltf, bin_chunk=bin_chunk, base_dir=base_dir)


def parse_gltf(data: bytes, base_dir: Path | None = None) -> SceneDocument:
    """Parse a JSON .gltf document."""
    try:
        gltf = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DocumentFormatError(f"Invalid glTF JSON: {e}") from e
    return SceneDocument.from_gltf_json(gltf, base_dir=base_dir)


def read_document(path: str | Path) -> SceneDocument:
    """Load a scene document from disk.

    The container format is detected from the file's magic bytes, so a GLB
    stored with a .gltf suffix still loads.

    Raises:
        NotFoundError: If the file does not exist
        ModelIOError: If the file cannot be read
        DocumentFormatError: If the content is not valid glTF
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise NotFoundError(f"Model file not found: {path.name}") from e
    except OSError as e:
        raise ModelIOError(f"Cannot read {path}: {e}") from e

    base_dir = path.parent.resolve()
    if data[:4] == b"glTF":
        doc = parse_glb(data, base_dir=base_dir)
    else:
        doc = parse_gltf(data, base_dir=base_dir)

    logger.debug(f"Read {path.name}: {len(doc.nodes)} nodes, {len(doc.scenes)} scenes")
    return doc


def _rebase_uri(uri: str, source_dir: Path | None, target_dir: Path | None) -> str:
    """Rewrite a relative URI so it resolves from target_dir."""
    if _has_scheme(uri) or source_dir is None or target_dir is None:
        return uri
    absolute = Path(source_dir) / unquote(uri)
    relative = os.path.relpath(absolute, Path(target_dir).resolve())
    return quote(Path(relative).as_posix())


def _rebased_json(doc: SceneDocument, target_dir: Path | None) -> dict[str, Any]:
    gltf = doc.to_gltf_json()
    for key in ("buffers", "images"):
        if key not in gltf:
            continue
        entries = []
        for entry in gltf[key]:
            if "uri" in entry:
                entry = {**entry, "uri": _rebase_uri(entry["uri"], doc.base_dir, target_dir)}
            entries.append(entry)
        gltf[key] = entries
    return gltf


def _pad(data: bytes, fill: bytes) -> bytes:
    return data + fill * (-len(data) % 4)


def encode_glb(doc: SceneDocument, target_dir: Path | None = None) -> bytes:
    """Serialize a document as a GLB container."""
    gltf = _rebased_json(doc, target_dir)
    json_bytes = _pad(
        json.dumps(gltf, separators=(",", ":"), ensure_ascii=False).encode("utf-8"),
        b" ",
    )

    parts = [_CHUNK_HEADER.pack(len(json_bytes), CHUNK_JSON), json_bytes]
    if doc.bin_chunk is not None:
        bin_bytes = _pad(doc.bin_chunk, b"\x00")
        parts += [_CHUNK_HEADER.pack(len(bin_bytes), CHUNK_BIN), bin_bytes]

    body = b"".join(parts)
    return _HEADER.pack(GLB_MAGIC, GLB_VERSION, _HEADER.size + len(body)) + body


def encode_gltf(doc: SceneDocument, target_dir: Path | None = None) -> bytes:
    """Serialize a document as JSON .gltf.

    A GLB binary chunk has no file of its own, so it is embedded as a
    base64 data URI.
    """
    gltf = _rebased_json(doc, target_dir)
    if doc.bin_chunk is not None and gltf.get("buffers") and "uri" not in gltf["buffers"][0]:
        encoded = base64.b64encode(doc.bin_chunk).decode("ascii")
        gltf["buffers"][0] = {
            **gltf["buffers"][0],
            "uri": f"data:application/octet-stream;base64,{encoded}",
        }
    return json.dumps(gltf, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_document(doc: SceneDocument, suffix: str, target_dir: Path | None = None) -> bytes:
    """Serialize a document in the container format matching `suffix`.

    Args:
        doc: Document to serialize
        suffix: ".glb" or ".gltf"
        target_dir: Directory the output will live in (for URI rebasing)
    """
    suffix = suffix.lower()
    if suffix == ".glb":
        return encode_glb(doc, target_dir)
    if suffix == ".gltf":
        return encode_gltf(doc, target_dir)
    raise DocumentFormatError(f"Unsupported output format: {suffix}")


def write_document(path: str | Path, doc: SceneDocument) -> None:
    """Serialize a document to `path`, creating parent directories.

    Raises:
        ModelIOError: If the file cannot be written
    """
    path = Path(path)
    payload = encode_document(doc, path.suffix, path.parent)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
    except OSError as e:
        raise ModelIOError(f"Cannot write {path}: {e}") from e
