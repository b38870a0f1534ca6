"""
Transformer module.

The Transformer is the entry point of the package. Producers push static and
dynamic transformations into it; consumers register the frame pairs they
need and receive a TransformationMaker for each.

Workflow:
    1. Static transformations are added to the tree as static elements
    2. The first sample of a new dynamic (from, to) pair registers a stream
       in the aggregator, adds a dynamic element to the tree and re-resolves
       the chain of every registered maker
    3. Every dynamic sample is forwarded to the aggregator
    4. Makers compose their chain on demand at the requested time

Example usage:
    transformer = Transformer()
    transformer.push_static_transformation(body_to_laser)
    maker = transformer.register_transformation('odometry', 'laser')
    transformer.push_dynamic_transformation(odometry_to_body_sample)
    result = maker.get(sample_time, interpolate=True)
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging

from .aggregator import StreamAggregator
from .config import Configuration, TransformerSettings
from .elements import (
    TransformationElement,
    StaticTransformationElement,
    DynamicTransformationElement,
)
from .maker import TransformationMaker
from .rigid import Transformation
from .tree import TransformationTree, DEFAULT_MAX_SEEK_DEPTH

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 10.0


def _check_frame_names(from_frame: str, to_frame: str) -> None:
    for name in (from_frame, to_frame):
        if not isinstance(name, str) or not name:
            raise ValueError(f"Frame names must be non-empty strings, got {name!r}")


class Transformer:
    """
    Keeps the transformation tree and all registered makers in sync.

    Attributes:
        tree: Graph of known transformation elements
        aggregator: Sample storage for dynamic transformations
        lookback: Retention window passed to every new stream (seconds)
        reresolve_on_static: Also re-resolve makers when a static
            transformation is added
    """

    def __init__(
        self,
        aggregator: Optional[StreamAggregator] = None,
        max_seek_depth: int = DEFAULT_MAX_SEEK_DEPTH,
        lookback: float = DEFAULT_LOOKBACK,
        reresolve_on_static: bool = False,
    ):
        self.aggregator = aggregator if aggregator is not None else StreamAggregator()
        self.tree = TransformationTree(max_seek_depth)
        self.lookback = lookback
        self.reresolve_on_static = reresolve_on_static

        self._makers: List[TransformationMaker] = []
        self._stream_indices: Dict[Tuple[str, str], int] = {}
        self._producers: Dict[Tuple[str, str], str] = {}

    @classmethod
    def from_config(
        cls,
        config: Configuration,
        aggregator: Optional[StreamAggregator] = None,
    ) -> "Transformer":
        """
        Build a transformer from a configuration.

        Settings are applied, every static declaration is pushed, and the
        producers of dynamic declarations are remembered so that the dynamic
        elements created later carry them.
        """
        settings: TransformerSettings = config.settings
        transformer = cls(
            aggregator=aggregator,
            max_seek_depth=settings.max_seek_depth,
            lookback=settings.lookback,
            reresolve_on_static=settings.reresolve_on_static,
        )

        for declaration in config.static_transforms():
            transformer.push_static_transformation(
                Transformation(
                    from_frame=declaration.from_frame,
                    to_frame=declaration.to_frame,
                    time=0.0,
                    transform=declaration.transform,
                )
            )

        for declaration in config.dynamic_transforms():
            transformer._producers[(declaration.from_frame, declaration.to_frame)] = declaration.producer

        logger.info(
            f"Transformer built from configuration: "
            f"{len(transformer._producers)} dynamic declaration(s), "
            f"{len(transformer.tree) // 2} static element(s)"
        )
        return transformer

    @property
    def makers(self) -> Tuple[TransformationMaker, ...]:
        return tuple(self._makers)

    def stream_index(self, from_frame: str, to_frame: str) -> Optional[int]:
        """Aggregator stream index of a dynamic (from, to) pair, if registered."""
        return self._stream_indices.get((from_frame, to_frame))

    def _resolve(self, maker: TransformationMaker) -> bool:
        chain = self.tree.find_chain(maker.source_frame, maker.target_frame)
        if chain is None:
            return False
        maker.set_chain(chain)
        return True

    def _resolve_all(self) -> None:
        resolved = sum(self._resolve(maker) for maker in self._makers)
        logger.debug(f"Re-resolved chains: {resolved}/{len(self._makers)} maker(s) have a chain")

    def _register_transformation_stream(self) -> int:
        # no pop callback, unbounded buffer, no period, so that the latest
        # sample preceding any query stays available
        return self.aggregator.register_stream(
            on_pop=None,
            buffer_size=0,
            period=0.0,
            lookback=self.lookback,
        )

    def push_static_transformation(self, sample: Transformation) -> None:
        """
        Add a static transformation.

        Existing maker chains are left untouched unless reresolve_on_static
        is set.
        """
        _check_frame_names(sample.from_frame, sample.to_frame)

        self.tree.add(StaticTransformationElement(sample.from_frame, sample.to_frame, sample.transform))
        logger.debug(f"Added static transformation {sample.from_frame} -> {sample.to_frame}")

        if self.reresolve_on_static:
            self._resolve_all()

    def push_dynamic_transformation(self, sample: Transformation) -> bool:
        """
        Add a dynamic transformation sample.

        The first sample of a (from, to) pair creates its stream and its
        element, and re-resolves all maker chains before the sample is
        stored.

        Returns:
            True if the aggregator accepted the sample
        """
        key = (sample.from_frame, sample.to_frame)

        if key not in self._stream_indices:
            _check_frame_names(*key)

            stream_index = self._register_transformation_stream()
            self._stream_indices[key] = stream_index

            logger.info(
                f"Registering new stream for transformation from {sample.from_frame} "
                f"to {sample.to_frame}, index is {stream_index}"
            )

            element = DynamicTransformationElement(
                sample.from_frame,
                sample.to_frame,
                self.aggregator,
                stream_index,
                producer=self._producers.get(key),
            )
            self.tree.add(element)
            self._resolve_all()

        stream_index = self._stream_indices.get(key)
        if stream_index is None:
            raise RuntimeError(f"No stream index recorded for {key} after registration")

        return self.aggregator.push(stream_index, sample.time, sample)

    def register_transformation(self, from_frame: str, to_frame: str) -> TransformationMaker:
        """
        Register a consumer of the transformation from ``from_frame`` to ``to_frame``.

        The returned maker is resolved immediately if possible; otherwise its
        chain stays empty until a dynamic transformation makes it reachable.
        """
        _check_frame_names(from_frame, to_frame)

        maker = TransformationMaker(from_frame, to_frame)
        if not self._resolve(maker):
            logger.debug(f"No chain yet for {from_frame} -> {to_frame}")
        self._makers.append(maker)
        return maker

    def set_transformation_chain(
        self,
        from_frame: str,
        to_frame: str,
        chain: Sequence[TransformationElement],
    ) -> int:
        """
        Install an externally computed chain on every maker of the pair.

        Returns:
            Number of makers updated
        """
        updated = 0
        for maker in self._makers:
            if maker.matches(from_frame, to_frame):
                maker.set_chain(chain)
                updated += 1
        return updated

    push_static = push_static_transformation
    push_dynamic = push_dynamic_transformation
    register_maker = register_transformation
    set_chain = set_transformation_chain
