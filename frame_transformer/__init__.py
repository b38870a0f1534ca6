"""
Frame Transformer Package

Composes rigid transformations between named coordinate frames from a
stream of static and time-stamped dynamic transformations.

Transformation Chain:
    Known transformations (and their inverses) form a graph over frame
    names. For a requested (source, target) pair a bounded breadth-first
    search finds a chain of transformations, which is composed at the
    requested time with optional interpolation of dynamic samples.

Conventions:
    - Composition is right-multiplication: T_ac = T_ab @ T_bc
    - Quaternions are scalar-last (x, y, z, w)
    - Times are seconds (float)
    - Missing data is reported as None, never as an exception
"""

from .rigid import RigidTransform, Transformation
from .aggregator import StreamAggregator
from .elements import (
    TransformationElement,
    StaticTransformationElement,
    DynamicTransformationElement,
    InverseTransformationElement,
    inverse_of,
)
from .tree import TransformationTree, TransformationNode, format_chain
from .maker import TransformationMaker
from .config import (
    Configuration,
    ConfigurationChecker,
    TransformerSettings,
    ChainPlan,
    InvalidConfiguration,
    TransformationNotFound,
)
from .transformer import Transformer

__version__ = "0.1.0"
__all__ = [
    "RigidTransform",
    "Transformation",
    "StreamAggregator",
    "TransformationElement",
    "StaticTransformationElement",
    "DynamicTransformationElement",
    "InverseTransformationElement",
    "inverse_of",
    "TransformationTree",
    "TransformationNode",
    "format_chain",
    "TransformationMaker",
    "Configuration",
    "ConfigurationChecker",
    "TransformerSettings",
    "ChainPlan",
    "InvalidConfiguration",
    "TransformationNotFound",
    "Transformer",
]
