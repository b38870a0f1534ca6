"""
Transformation elements.

An element is one known edge of the transformation graph: a rigid
transformation from a source frame to a target frame. Three kinds exist:

    - static:  fixed transform, independent of time
    - dynamic: backed by a stream of the sample aggregator
    - inverse: wraps another element and reverses its direction

Every element answers ``sample(time, interpolate)`` with a RigidTransform,
or None when no sample is available at that time.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

from .aggregator import StreamAggregator
from .rigid import RigidTransform

logger = logging.getLogger(__name__)

STATIC = 'static'
DYNAMIC = 'dynamic'
INVERSE = 'inverse'


class TransformationElement(ABC):
    """Base class for the three element kinds."""

    kind: str = ''

    def __init__(self, source_frame: str, target_frame: str):
        self.source_frame = source_frame
        self.target_frame = target_frame

    @abstractmethod
    def sample(self, time: float, interpolate: bool = False) -> Optional[RigidTransform]:
        """
        Get the transformation from source_frame to target_frame.

        Args:
            time: Query time in seconds
            interpolate: Interpolate between bracketing samples where applicable

        Returns:
            Transform, or None if no sample is available
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source_frame!r} -> {self.target_frame!r})"


class StaticTransformationElement(TransformationElement):
    """Element with a fixed transform."""

    kind = STATIC

    def __init__(self, source_frame: str, target_frame: str, transform: RigidTransform):
        super().__init__(source_frame, target_frame)
        self.transform = transform

    def sample(self, time: float, interpolate: bool = False) -> Optional[RigidTransform]:
        return self.transform


class DynamicTransformationElement(TransformationElement):
    """
    Element whose samples live in a stream of the aggregator.

    An element without an aggregator is a declaration only (used when planning
    chains from a configuration) and never has samples.
    """

    kind = DYNAMIC

    def __init__(
        self,
        source_frame: str,
        target_frame: str,
        aggregator: Optional[StreamAggregator],
        stream_index: Optional[int],
        producer: Optional[str] = None,
    ):
        super().__init__(source_frame, target_frame)
        self.aggregator = aggregator
        self.stream_index = stream_index
        self.producer = producer

    def sample(self, time: float, interpolate: bool = False) -> Optional[RigidTransform]:
        if self.aggregator is None:
            return None

        result = self.aggregator.query(self.stream_index, time, interpolate)
        if result is None:
            return None
        return result.transform

    def __repr__(self) -> str:
        return (
            f"DynamicTransformationElement({self.source_frame!r} -> {self.target_frame!r}, "
            f"stream={self.stream_index}, producer={self.producer!r})"
        )


class InverseTransformationElement(TransformationElement):
    """Element reversing the direction of another, non-inverse element."""

    kind = INVERSE

    def __init__(self, element: TransformationElement):
        if isinstance(element, InverseTransformationElement):
            raise ValueError(
                f"Cannot nest inverse elements ({element!r}); use inverse_of() instead"
            )
        super().__init__(element.target_frame, element.source_frame)
        self.element = element

    def sample(self, time: float, interpolate: bool = False) -> Optional[RigidTransform]:
        transform = self.element.sample(time, interpolate)
        if transform is None:
            return None
        return transform.inverse()

    def __repr__(self) -> str:
        return f"InverseTransformationElement(of {self.element!r})"


def inverse_of(element: TransformationElement) -> TransformationElement:
    """
    Get the element reversing ``element``.

    The inverse of an inverse element is its underlying element.
    """
    if isinstance(element, InverseTransformationElement):
        return element.element
    return InverseTransformationElement(element)


def underlying(element: TransformationElement) -> TransformationElement:
    """Strip an inverse wrapper, if any."""
    if isinstance(element, InverseTransformationElement):
        return element.element
    return element
