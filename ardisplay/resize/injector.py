"""Non-destructive scaling by wrapper node injection."""

from __future__ import annotations

import logging

from ..core.errors import InternalError
from ..gltf.document import Node, SceneDocument
from .scale import ScaleVector

logger = logging.getLogger(__name__)


def wrap_scenes(doc: SceneDocument, scale: ScaleVector, name: str = "parent") -> list[int]:
    """Re-parent every scene's roots under a new scaled wrapper node.

    Each scene gets exactly one wrapper whose children are the scene's
    former roots in their original order. Existing nodes are not modified.
    Calling this twice on the same document nests a second wrapper inside
    the scene, scaling twice.

    Args:
        doc: Document to mutate in place
        scale: Scale to set on each wrapper
        name: Wrapper node name

    Returns:
        Handles of the created wrapper nodes, one per scene

    Raises:
        InternalError: If a root node is shared by several scenes (a node
            can only have one parent)
    """
    seen: dict[int, int] = {}
    for scene_index, scene in enumerate(doc.scenes):
        for root in scene.nodes:
            if root in seen and seen[root] != scene_index:
                raise InternalError(
                    f"Node {root} is a root of scenes {seen[root]} and {scene_index}; "
                    "it cannot be wrapped in both"
                )
            seen[root] = scene_index

    wrappers = []
    for scene in doc.scenes:
        wrapper = doc.add_node(Node(
            name=name,
            children=list(scene.nodes),
            scale=scale.as_list(),
        ))
        scene.nodes = [wrapper]
        wrappers.append(wrapper)

    logger.debug(f"Wrapped {len(wrappers)} scene(s) with scale {tuple(scale)}")
    return wrappers
