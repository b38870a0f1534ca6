"""
Transformation tree module.

Holds all known transformation elements (each with its inverse sibling) and
finds chains of elements linking two frames.

Chain search:
    Breadth-first over frames, starting at the source frame, bounded by
    ``max_seek_depth`` levels. An element leading straight back to the
    frame the current node was reached from is skipped, which prevents
    trivial A -> B -> A reversals. There is no visited set: parallel
    elements between the same two frames (e.g. two independent dynamic
    sources) stay independently explorable. Elements are explored in the
    order they were added and the first chain found wins.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple
import logging

from .elements import TransformationElement, InverseTransformationElement, inverse_of

logger = logging.getLogger(__name__)

DEFAULT_MAX_SEEK_DEPTH = 20


@dataclass
class TransformationNode:
    """Search node: a frame reached through ``parent_element`` from ``parent``."""
    frame_name: str
    parent: Optional["TransformationNode"] = None
    parent_element: Optional[TransformationElement] = None
    children: List["TransformationNode"] = field(default_factory=list)

    def chain(self) -> List[TransformationElement]:
        """Elements from the root to this node, in multiplication order."""
        result = []
        node = self
        while node.parent is not None:
            result.append(node.parent_element)
            node = node.parent
        result.reverse()
        return result


def format_chain(chain: Sequence[TransformationElement]) -> str:
    """Render a chain as 'a -> b (static) -> c (dynamic, inverse)'."""
    if not chain:
        return "<empty chain>"

    parts = [chain[0].source_frame]
    for element in chain:
        if isinstance(element, InverseTransformationElement):
            label = f"{element.element.kind}, inverse"
        else:
            label = element.kind
        parts.append(f"{element.target_frame} ({label})")
    return " -> ".join(parts)


class TransformationTree:
    """
    Directed multigraph of transformation elements indexed by source frame.

    The tree owns its elements for its whole lifetime; elements are never
    removed, so chains handed out stay valid.
    """

    def __init__(self, max_seek_depth: int = DEFAULT_MAX_SEEK_DEPTH):
        """
        Args:
            max_seek_depth: Maximum number of elements in a chain
        """
        if max_seek_depth < 0:
            raise ValueError(f"max_seek_depth must be >= 0, got {max_seek_depth}")
        self.max_seek_depth = max_seek_depth
        self._elements: List[TransformationElement] = []

    def __len__(self) -> int:
        return len(self._elements)

    @property
    def elements(self) -> Tuple[TransformationElement, ...]:
        return tuple(self._elements)

    def frames(self) -> Set[str]:
        """All frame names referenced by known elements."""
        names = set()
        for element in self._elements:
            names.add(element.source_frame)
            names.add(element.target_frame)
        return names

    def elements_from(self, frame: str) -> List[TransformationElement]:
        """Elements whose source frame is ``frame``, in insertion order."""
        return [e for e in self._elements if e.source_frame == frame]

    def add(self, element: TransformationElement) -> None:
        """
        Add an element and its inverse sibling.

        Duplicates are allowed: several elements may link the same frames.

        Raises:
            ValueError: If ``element`` is itself an inverse element
        """
        if isinstance(element, InverseTransformationElement):
            raise ValueError(f"Add the underlying element instead of {element!r}")

        self._elements.append(element)
        self._elements.append(inverse_of(element))

    def _expand(self, node: TransformationNode) -> None:
        """Create child nodes for every element leaving node's frame."""
        for element in self._elements:
            if element.source_frame != node.frame_name:
                continue

            # don't walk straight back to where we came from
            if node.parent is not None and node.parent.frame_name == element.target_frame:
                continue

            node.children.append(TransformationNode(element.target_frame, node, element))

    def find_chain(self, from_frame: str, to_frame: str) -> Optional[List[TransformationElement]]:
        """
        Find a chain of elements from ``from_frame`` to ``to_frame``.

        Args:
            from_frame: Source frame name
            to_frame: Target frame name

        Returns:
            Elements in root-to-leaf order (empty if both frames are equal),
            or None if no chain exists within max_seek_depth
        """
        if from_frame == to_frame:
            return []

        root = TransformationNode(from_frame)
        current_level = [root]

        for _ in range(self.max_seek_depth):
            if not current_level:
                break

            next_level = []
            for node in current_level:
                self._expand(node)

                for child in node.children:
                    if child.frame_name == to_frame:
                        chain = child.chain()
                        logger.debug(
                            f"Found transformation chain from {from_frame} to {to_frame}: "
                            f"{format_chain(chain)}"
                        )
                        return chain

                next_level.extend(node.children)

            current_level = next_level

        logger.debug(f"Could not find transformation chain from {from_frame} to {to_frame}")
        return None
