"""
Transformation maker module.

A maker is a consumer's handle on one (source, target) frame pair. The
Transformer installs the chain of elements linking the pair; the maker
samples every element at the requested time and multiplies them together.
"""

from typing import List, Optional, Sequence, Tuple
import logging

from .elements import TransformationElement
from .rigid import RigidTransform, Transformation
from .tree import format_chain

logger = logging.getLogger(__name__)


class TransformationMaker:
    """
    Composes the transformation between two frames at a given time.

    Attributes:
        source_frame: Frame the composed transformation starts from
        target_frame: Frame the composed transformation leads to
    """

    def __init__(self, source_frame: str, target_frame: str):
        self.source_frame = source_frame
        self.target_frame = target_frame
        # None until a chain is resolved; [] is a valid chain for A -> A
        self._chain: Optional[List[TransformationElement]] = None

    @property
    def chain(self) -> Tuple[TransformationElement, ...]:
        return tuple(self._chain or ())

    @property
    def has_chain(self) -> bool:
        return self._chain is not None

    def matches(self, source_frame: str, target_frame: str) -> bool:
        return self.source_frame == source_frame and self.target_frame == target_frame

    def set_chain(self, chain: Sequence[TransformationElement]) -> None:
        """Install a chain, replacing any previous one."""
        self._chain = list(chain)
        logger.debug(
            f"Chain for {self.source_frame} -> {self.target_frame} set to {format_chain(self._chain)}"
        )

    def clear_chain(self) -> None:
        self._chain = None

    def get(self, time: float, interpolate: bool = False) -> Optional[Transformation]:
        """
        Compose the transformation at a given time.

        Args:
            time: Query time in seconds
            interpolate: Ask dynamic elements to interpolate their samples

        Returns:
            Transformation from source_frame to target_frame, or None if no
            chain is known or an element has no sample at ``time``
        """
        if self._chain is None:
            return None
        # an empty chain only links a frame to itself
        if not self._chain and self.source_frame != self.target_frame:
            return None

        transform = RigidTransform.identity()
        for element in self._chain:
            sample = element.sample(time, interpolate)
            if sample is None:
                return None
            transform = transform @ sample

        return Transformation(
            from_frame=self.source_frame,
            to_frame=self.target_frame,
            time=time,
            transform=transform,
        )

    def __repr__(self) -> str:
        state = format_chain(self._chain) if self._chain is not None else "unresolved"
        return f"TransformationMaker({self.source_frame!r} -> {self.target_frame!r}, {state})"
