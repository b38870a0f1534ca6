"""
Configuration module for the frame transformer.

Handles loading and validation of the transformation configuration from YAML
files: which frames exist, which transformations are static (with their
value) and which are produced dynamically (and by whom).

The configuration can also be queried for transformation chains before any
data flows, to find out which static values and which producers a consumer
of a given frame pair depends on.
"""

import re
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
import logging

from .elements import (
    TransformationElement,
    StaticTransformationElement,
    DynamicTransformationElement,
    InverseTransformationElement,
    underlying,
)
from .rigid import RigidTransform
from .tree import TransformationTree, DEFAULT_MAX_SEEK_DEPTH

logger = logging.getLogger(__name__)

FRAME_NAME_PATTERN = re.compile(r'^\w+$')


class InvalidConfiguration(ValueError):
    """Raised when the configuration contains errors."""


class TransformationNotFound(ValueError):
    """Raised when no chain links two configured frames."""


@dataclass
class TransformerSettings:
    """Runtime settings of the Transformer."""
    max_seek_depth: int = DEFAULT_MAX_SEEK_DEPTH  # Maximum chain length
    lookback: float = 10.0  # Stream retention window (seconds)
    reresolve_on_static: bool = False  # Re-resolve makers on static pushes


@dataclass
class StaticTransformDeclaration:
    """A transformation with a fixed value."""
    from_frame: str
    to_frame: str
    transform: RigidTransform = field(default_factory=RigidTransform.identity)

    def describe(self) -> str:
        t = [round(float(v), 6) for v in self.transform.translation]
        q = [round(float(v), 6) for v in self.transform.as_quaternion()]
        return f"{self.from_frame}2{self.to_frame}: static, translation={t}, rotation={q}"


@dataclass
class DynamicTransformDeclaration:
    """A transformation produced at runtime by ``producer``."""
    from_frame: str
    to_frame: str
    producer: str

    def describe(self) -> str:
        return f"{self.from_frame}2{self.to_frame}: produced by {self.producer}"


Declaration = Union[StaticTransformDeclaration, DynamicTransformDeclaration]


@dataclass
class ChainPlan:
    """
    A chain of declared transformations linking two frames.

    Attributes:
        from_frame: Start of the chain
        to_frame: End of the chain
        links: Declarations in multiplication order
        inversions: For each link, True if it is traversed backwards
    """
    from_frame: str
    to_frame: str
    links: List[Declaration] = field(default_factory=list)
    inversions: List[bool] = field(default_factory=list)

    def partition(self) -> Tuple[List[StaticTransformDeclaration], List[DynamicTransformDeclaration]]:
        """Split the links into static and dynamic declarations."""
        static = [link for link in self.links if isinstance(link, StaticTransformDeclaration)]
        dynamic = [link for link in self.links if isinstance(link, DynamicTransformDeclaration)]
        return static, dynamic

    def producers(self) -> List[str]:
        """Producers this chain depends on, in chain order, without repetition."""
        result = []
        for link in self.partition()[1]:
            if link.producer not in result:
                result.append(link.producer)
        return result

    def is_static(self) -> bool:
        return not self.partition()[1]

    def describe(self) -> str:
        lines = [f"Transform chain: {self.from_frame} to {self.to_frame}", "  Links:"]
        if not self.links:
            lines.append("    (identity)")
        for link, inverse in zip(self.links, self.inversions):
            prefix = "(inv) " if inverse else ""
            lines.append(f"    {prefix}{link.describe()}")
        return "\n".join(lines)


class ConfigurationChecker:
    """
    Validates frames, transformations and producers of a configuration.

    Args:
        producer_check: Optional callable validating producer names; it
            should raise InvalidConfiguration for unacceptable producers
    """

    def __init__(self, producer_check: Optional[Callable[[str], None]] = None):
        self.producer_check = producer_check

    def check_frame(self, frame: str, frames: Optional[Iterable[str]] = None) -> None:
        frame = str(frame)
        if not FRAME_NAME_PATTERN.match(frame):
            raise InvalidConfiguration(
                f"frame names can only contain alphanumeric characters and _, got {frame!r}"
            )
        if frames is not None and frame not in frames:
            raise InvalidConfiguration(f"unknown frame {frame}")

    def check_transformation(self, frames: Iterable[str], declaration: Declaration) -> None:
        frames = set(frames)
        errors = []
        for frame in (declaration.from_frame, declaration.to_frame):
            if frame not in frames:
                errors.append(
                    f"transformation from {declaration.from_frame} to {declaration.to_frame} "
                    f"uses unknown frame {frame}, known frames: {', '.join(sorted(frames))}"
                )
        if errors:
            raise InvalidConfiguration(
                "transformation configuration contains errors:\n  " + "\n  ".join(errors)
            )

    def check_producer(self, producer: str) -> None:
        if not producer:
            raise InvalidConfiguration("dynamic transformations need a producer")
        if self.producer_check is not None:
            self.producer_check(producer)


class Configuration:
    """
    Declared frames and transformations.

    Declaring a transformation declares its frames. Declaring the same
    (from, to) pair twice replaces the first declaration.
    """

    def __init__(
        self,
        checker: Optional[ConfigurationChecker] = None,
        settings: Optional[TransformerSettings] = None,
    ):
        self.checker = checker or ConfigurationChecker()
        self.settings = settings or TransformerSettings()
        self.frames: set = set()
        self.transforms: Dict[Tuple[str, str], Declaration] = {}

    def declare_frames(self, *frames: str) -> None:
        for frame in frames:
            self.checker.check_frame(frame)
        self.frames.update(str(f) for f in frames)

    def has_frame(self, frame: str) -> bool:
        return str(frame) in self.frames

    def static_transform(
        self,
        from_frame: str,
        to_frame: str,
        transform: Optional[RigidTransform] = None,
    ) -> StaticTransformDeclaration:
        """Declare a static transformation (identity if no transform is given)."""
        self.declare_frames(from_frame, to_frame)
        declaration = StaticTransformDeclaration(
            from_frame, to_frame, transform if transform is not None else RigidTransform.identity()
        )
        self.checker.check_transformation(self.frames, declaration)
        self.transforms[(from_frame, to_frame)] = declaration
        return declaration

    def dynamic_transform(self, producer: str, from_frame: str, to_frame: str) -> DynamicTransformDeclaration:
        """Declare a transformation produced at runtime by ``producer``."""
        self.declare_frames(from_frame, to_frame)
        self.checker.check_producer(producer)
        declaration = DynamicTransformDeclaration(from_frame, to_frame, producer)
        self.checker.check_transformation(self.frames, declaration)
        self.transforms[(from_frame, to_frame)] = declaration
        return declaration

    def _check_known(self, from_frame: str, to_frame: str) -> None:
        for frame in (from_frame, to_frame):
            if not self.has_frame(frame):
                raise ValueError(f"{frame} is not a registered frame")

    def has_transformation(self, from_frame: str, to_frame: str) -> bool:
        """
        True if a transformation is declared for exactly this pair.

        Raises:
            ValueError: If either frame is not declared
        """
        if (from_frame, to_frame) in self.transforms:
            return True
        self._check_known(from_frame, to_frame)
        return False

    def transformation_for(self, from_frame: str, to_frame: str) -> Declaration:
        """
        Get the declaration of a pair.

        Raises:
            ValueError: If a frame is unknown or nothing is declared for the pair
        """
        declaration = self.transforms.get((from_frame, to_frame))
        if declaration is None:
            self._check_known(from_frame, to_frame)
            raise ValueError(f"there is no registered transformation between {from_frame} and {to_frame}")
        return declaration

    def static_transforms(self) -> List[StaticTransformDeclaration]:
        return [d for d in self.transforms.values() if isinstance(d, StaticTransformDeclaration)]

    def dynamic_transforms(self) -> List[DynamicTransformDeclaration]:
        return [d for d in self.transforms.values() if isinstance(d, DynamicTransformDeclaration)]

    def transformation_chain(
        self,
        from_frame: str,
        to_frame: str,
        additional_producers: Optional[Dict[Tuple[str, str], str]] = None,
    ) -> ChainPlan:
        """
        Find the chain of declarations linking two frames.

        Args:
            from_frame: Start frame
            to_frame: End frame
            additional_producers: Extra dynamic transformations {(from, to): producer};
                they take precedence over declarations of the same pair
                (in either direction)

        Returns:
            ChainPlan

        Raises:
            InvalidConfiguration: If a frame name is invalid or undeclared
            TransformationNotFound: If no chain exists within max_seek_depth
        """
        from_frame, to_frame = str(from_frame), str(to_frame)
        self.checker.check_frame(from_frame, self.frames)
        self.checker.check_frame(to_frame, self.frames)

        tree = TransformationTree(self.settings.max_seek_depth)
        declarations: Dict[int, Declaration] = {}
        known = set()

        def add(declaration: Declaration) -> None:
            element: TransformationElement
            if isinstance(declaration, StaticTransformDeclaration):
                element = StaticTransformationElement(
                    declaration.from_frame, declaration.to_frame, declaration.transform
                )
            else:
                element = DynamicTransformationElement(
                    declaration.from_frame, declaration.to_frame, None, None, declaration.producer
                )
            declarations[id(element)] = declaration
            tree.add(element)
            known.add((declaration.from_frame, declaration.to_frame))
            known.add((declaration.to_frame, declaration.from_frame))

        for (add_from, add_to), producer in (additional_producers or {}).items():
            add(DynamicTransformDeclaration(add_from, add_to, producer))

        for declaration in self.transforms.values():
            if (declaration.from_frame, declaration.to_frame) not in known:
                add(declaration)

        chain = tree.find_chain(from_frame, to_frame)
        if chain is None:
            raise TransformationNotFound(f"no transformation from '{from_frame}' to '{to_frame}' available")

        plan = ChainPlan(from_frame, to_frame)
        for element in chain:
            plan.links.append(declarations[id(underlying(element))])
            plan.inversions.append(isinstance(element, InverseTransformationElement))
        return plan

    def describe(self) -> str:
        """Text summary of frames and declared transformations."""
        lines = ["Transformer configuration", "  Available frames:"]
        lines.extend(f"    {frame}" for frame in sorted(self.frames))
        lines.append("  Static transforms:")
        lines.extend(f"    {d.describe()}" for d in self.static_transforms())
        lines.append("  Dynamic transforms:")
        lines.extend(f"    {d.describe()}" for d in self.dynamic_transforms())
        return "\n".join(lines)

    @staticmethod
    def _parse_static_transform(entry: Dict[str, Any]) -> RigidTransform:
        translation = entry.get('translation', [0.0, 0.0, 0.0])
        if len(translation) != 3:
            raise InvalidConfiguration(f"translation must have 3 components, got {translation}")

        if 'rotation' in entry and 'euler' in entry:
            raise InvalidConfiguration(
                f"transformation {entry['from']} -> {entry['to']} gives both rotation and euler"
            )

        if 'euler' in entry:
            euler = entry['euler']
            return RigidTransform.from_euler(
                euler.get('seq', 'xyz'),
                euler['angles'],
                translation,
                degrees=euler.get('degrees', True),
            )

        rotation = entry.get('rotation', [0.0, 0.0, 0.0, 1.0])
        if len(rotation) != 4:
            raise InvalidConfiguration(f"rotation must be a quaternion [x, y, z, w], got {rotation}")
        return RigidTransform.from_quaternion(rotation, translation)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        checker: Optional[ConfigurationChecker] = None,
    ) -> "Configuration":
        """
        Build a configuration from parsed YAML data.

        Raises:
            InvalidConfiguration: On malformed entries
        """
        data = data or {}
        settings = TransformerSettings(
            max_seek_depth=int(data.get('max_seek_depth', DEFAULT_MAX_SEEK_DEPTH)),
            lookback=float(data.get('lookback', 10.0)),
            reresolve_on_static=bool(data.get('reresolve_on_static', False)),
        )
        config = cls(checker=checker, settings=settings)

        # YAML scalars such as 1 or on are read as int / bool
        config.declare_frames(*(str(frame) for frame in cls._section(data, 'frames')))

        try:
            for entry in cls._section(data, 'static_transforms'):
                config.static_transform(
                    str(entry['from']), str(entry['to']), cls._parse_static_transform(entry)
                )
            for entry in cls._section(data, 'dynamic_transforms'):
                config.dynamic_transform(entry['producer'], str(entry['from']), str(entry['to']))
        except KeyError as e:
            raise InvalidConfiguration(f"transformation entry is missing the {e} key") from e

        return config

    @staticmethod
    def _section(data: Dict[str, Any], key: str) -> List[Any]:
        """Get a list section; an empty ``key:`` loads as None."""
        section = data.get(key)
        if section is None:
            return []
        if not isinstance(section, list):
            raise InvalidConfiguration(f"{key} must be a list, got {type(section).__name__}")
        return section

    @classmethod
    def from_yaml(
        cls,
        config_path: str,
        checker: Optional[ConfigurationChecker] = None,
    ) -> "Configuration":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file
            checker: Optional checker (e.g. with a producer check)

        Returns:
            Configuration object

        Example YAML structure:
            max_seek_depth: 20
            lookback: 10.0
            reresolve_on_static: false
            frames: [world, odometry, body, laser]
            static_transforms:
              - from: body
                to: laser
                translation: [0.2, 0.0, 0.3]
                rotation: [0.0, 0.0, 0.0, 1.0]
              - from: world
                to: odometry
                euler: {seq: xyz, angles: [0, 0, 90], degrees: true}
            dynamic_transforms:
              - from: odometry
                to: body
                producer: odometry_task
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        logger.info(f"Loading configuration from {config_path}")
        return cls.from_dict(data, checker=checker)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'max_seek_depth': self.settings.max_seek_depth,
            'lookback': self.settings.lookback,
            'reresolve_on_static': self.settings.reresolve_on_static,
            'frames': sorted(self.frames),
            'static_transforms': [
                {
                    'from': d.from_frame,
                    'to': d.to_frame,
                    'translation': [float(v) for v in d.transform.translation],
                    'rotation': [float(v) for v in d.transform.as_quaternion()],
                }
                for d in self.static_transforms()
            ],
            'dynamic_transforms': [
                {'from': d.from_frame, 'to': d.to_frame, 'producer': d.producer}
                for d in self.dynamic_transforms()
            ],
        }

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
